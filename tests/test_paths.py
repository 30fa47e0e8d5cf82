"""Tests for filesystem helpers."""

import os

from stm32_dev.paths import (
    ensure_dir,
    find_file,
    find_in_locations,
    is_executable,
    resolve_symlink,
)


def _executable(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n")
    path.chmod(0o755)
    return path


class TestFindFile:
    def test_finds_top_level_file(self, tmp_path):
        (tmp_path / "blinky.ioc").write_text("Mcu.Name=STM32F407VGTx\n")
        assert find_file(tmp_path, "*.ioc") == tmp_path / "blinky.ioc"

    def test_respects_max_depth(self, tmp_path):
        deep = tmp_path / "a" / "b"
        deep.mkdir(parents=True)
        (deep / "STM32F103C8Tx_FLASH.ld").write_text("")
        assert find_file(tmp_path, "*_FLASH.ld", max_depth=1) is None
        assert find_file(tmp_path, "*_FLASH.ld", max_depth=2) == deep / "STM32F103C8Tx_FLASH.ld"

    def test_depth_zero_is_directory_only(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "x.ioc").write_text("")
        assert find_file(tmp_path, "*.ioc", max_depth=0) is None

    def test_files_before_subdirectories(self, tmp_path):
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "first.ioc").write_text("")
        (tmp_path / "z.ioc").write_text("")
        assert find_file(tmp_path, "*.ioc") == tmp_path / "z.ioc"

    def test_skips_vcs_and_state_dirs(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "hidden.ioc").write_text("")
        (tmp_path / ".stm32dev").mkdir()
        (tmp_path / ".stm32dev" / "cached.ioc").write_text("")
        assert find_file(tmp_path, "*.ioc") is None

    def test_missing_directory(self, tmp_path):
        assert find_file(tmp_path / "nope", "*.ioc") is None


class TestExecutables:
    def test_is_executable(self, tmp_path):
        exe = _executable(tmp_path / "openocd")
        plain = tmp_path / "readme"
        plain.write_text("")
        assert is_executable(exe)
        assert not is_executable(plain)
        assert not is_executable(tmp_path / "missing")

    def test_find_in_locations_uses_bin(self, tmp_path):
        first = tmp_path / "first"
        second = tmp_path / "second"
        exe = _executable(second / "bin" / "arm-none-eabi-gcc")
        assert find_in_locations("arm-none-eabi-gcc", [first, second]) == exe

    def test_find_in_locations_none(self, tmp_path):
        assert find_in_locations("openocd", [tmp_path]) is None


class TestMisc:
    def test_resolve_symlink(self, tmp_path):
        target = tmp_path / "real"
        target.write_text("")
        link = tmp_path / "link"
        os.symlink(target, link)
        assert resolve_symlink(link) == target.resolve()

    def test_resolve_missing_returns_input(self, tmp_path):
        missing = tmp_path / "missing"
        assert resolve_symlink(missing) == missing

    def test_ensure_dir(self, tmp_path):
        path = ensure_dir(tmp_path / "a" / "b")
        assert path.is_dir()
