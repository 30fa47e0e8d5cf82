"""Shared test doubles for stm32-dev."""

from pathlib import Path

import pytest

from stm32_dev.cache import DetectionCache
from stm32_dev.host import LinuxHost
from stm32_dev.process import CommandResult, ProcessRunner
from stm32_dev.toolchain import ToolchainSnapshot, ToolDescriptor


class IsolatedLinuxHost(LinuxHost):
    """Linux host whose install prefixes point only where the test says."""

    def __init__(self, roots=()):
        self.roots = [Path(r) for r in roots]

    def install_roots(self):
        return list(self.roots)


class FakeRunner(ProcessRunner):
    """ProcessRunner that answers from a table instead of spawning processes.

    `responses` maps a program's base name to a CommandResult, or to a callable
    taking the argv and returning one. Lookups (`which`/`where`) succeed for
    names in `on_path`. Unknown programs behave like a missing executable.
    """

    def __init__(self, responses=None, on_path=(), host=None):
        super().__init__(host or IsolatedLinuxHost())
        self.responses = dict(responses or {})
        self.on_path = set(on_path)
        self.calls = []
        self.options = []

    def run(self, args, cwd=None, timeout=30):
        args = [str(a) for a in args]
        self.calls.append(args)
        self.options.append({"cwd": cwd, "timeout": timeout})
        program = Path(args[0]).name
        if program in ("which", "where"):
            found = args[1] in self.on_path
            return CommandResult(stdout=args[1] if found else "", stderr="", exit_code=0 if found else 1)
        response = self.responses.get(program)
        if callable(response):
            return response(args)
        if response is None:
            return CommandResult(stdout="", stderr=f"{program}: command not found", exit_code=127)
        return response

    def programs(self):
        return [Path(c[0]).name for c in self.calls]


def ok(stdout="", stderr=""):
    return CommandResult(stdout=stdout, stderr=stderr, exit_code=0)


def failed(stderr="", stdout="", exit_code=1):
    return CommandResult(stdout=stdout, stderr=stderr, exit_code=exit_code)


def make_snapshot(missing=(), paths=None):
    """A ToolchainSnapshot with every tool found except the keys in `missing`."""
    paths = paths or {}
    names = {"gcc": "arm-none-eabi-gcc", "gdb": "arm-none-eabi-gdb", "openocd": "openocd",
             "make": "make", "cmake": "cmake"}
    tools = {}
    for key, name in names.items():
        if key in missing:
            tools[key] = ToolDescriptor(name=name, found=False, error=f"{name} not found in PATH or common locations")
        else:
            tools[key] = ToolDescriptor(name=name, found=True, path=paths.get(key, name), version="1.0.0")
    return ToolchainSnapshot(**tools)


@pytest.fixture
def cache():
    return DetectionCache()


@pytest.fixture
def stm32_project(tmp_path):
    """A CubeMX-style Makefile project targeting STM32F407VG."""
    (tmp_path / "Makefile").write_text(
        "TARGET = blinky\n"
        "C_DEFS = -DUSE_HAL_DRIVER -DSTM32F407VGxx\n"
    )
    return tmp_path
