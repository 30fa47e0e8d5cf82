"""Tests for host platform strategies."""

from pathlib import Path
from unittest.mock import MagicMock

from stm32_dev.host import LinuxHost, MacHost, WindowsHost, detect_host


class TestDetectHost:
    def test_maps_platform_names(self):
        assert isinstance(detect_host("win32"), WindowsHost)
        assert isinstance(detect_host("darwin"), MacHost)
        assert isinstance(detect_host("linux"), LinuxHost)

    def test_unknown_platform_is_linux_like(self):
        assert isinstance(detect_host("freebsd13"), LinuxHost)


class TestLinuxHost:
    def test_install_roots_are_prefixes(self):
        roots = LinuxHost().install_roots()
        assert roots[0] == Path("/usr")
        assert Path("/opt/gcc-arm-none-eabi") in roots

    def test_prefers_gdb_multiarch(self):
        assert LinuxHost().debugger_candidates() == ["gdb-multiarch", "arm-none-eabi-gdb"]

    def test_usb_listing(self):
        assert LinuxHost().usb_listing_command() == (["lsusb"], 5)

    def test_executable_name_unchanged(self):
        assert LinuxHost().executable_name("openocd") == "openocd"

    def test_markers_in_priority_order(self):
        kinds = [kind for kind, _ in LinuxHost().programmer_markers()]
        assert kinds == ["stlink", "jlink", "cmsis-dap", "dfu"]


class TestWindowsHost:
    def test_executable_suffix(self):
        host = WindowsHost()
        assert host.executable_name("arm-none-eabi-gcc") == "arm-none-eabi-gcc.exe"
        assert host.executable_name("make.exe") == "make.exe"

    def test_jlink_commander_name(self):
        assert WindowsHost().jlink_commander == "JLink.exe"
        assert LinuxHost().jlink_commander == "JLinkExe"

    def test_lookup_and_kill(self):
        host = WindowsHost()
        assert host.lookup_command("openocd") == ["where", "openocd"]
        assert host.kill_command("openocd") == ["taskkill", "/F", "/IM", "openocd.exe"]

    def test_localappdata_xpack_root(self, monkeypatch):
        monkeypatch.setenv("LOCALAPPDATA", "C:\\Users\\dev\\AppData\\Local")
        roots = WindowsHost().install_roots()
        assert len(roots) == 5
        assert "xPacks" in str(roots[-1])

    def test_stlink_fallback_when_cli_installed(self):
        runner = MagicMock()
        runner.exists.return_value = True
        assert WindowsHost().enumeration_fallback(runner) == "stlink"
        runner.exists.assert_called_with("ST-LINK_CLI")

    def test_no_fallback_without_cli(self):
        runner = MagicMock()
        runner.exists.return_value = False
        assert WindowsHost().enumeration_fallback(runner) is None

    def test_stm32_marker_counts_as_stlink(self):
        markers = dict(WindowsHost().programmer_markers())
        assert "stm32" in markers["stlink"]


class TestMacHost:
    def test_usb_listing(self):
        assert MacHost().usb_listing_command() == (["system_profiler", "SPUSBDataType"], 10)

    def test_homebrew_root(self):
        assert Path("/opt/homebrew") in MacHost().install_roots()

    def test_no_enumeration_fallback(self):
        assert MacHost().enumeration_fallback(MagicMock()) is None
