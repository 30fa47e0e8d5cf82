"""ARM toolchain detection for stm32-dev."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path

from stm32_dev.cache import DetectionCache
from stm32_dev.host import HostPlatform
from stm32_dev.paths import find_in_locations, is_executable
from stm32_dev.process import ProcessRunner

logger = logging.getLogger(__name__)

# (snapshot key, name reported as missing), in detection order.
REQUIRED_TOOLS: list[tuple[str, str]] = [
    ("gcc", "arm-none-eabi-gcc"),
    ("gdb", "gdb"),
    ("openocd", "openocd"),
    ("make", "make"),
]

_LABELS = {"gcc": "GCC", "gdb": "GDB", "openocd": "OpenOCD", "make": "Make", "cmake": "CMake"}

_INSTALL_INSTRUCTIONS: dict[str, dict[str, str]] = {
    "arm-none-eabi-gcc": {
        "linux": "sudo apt install gcc-arm-none-eabi",
        "darwin": "brew install arm-none-eabi-gcc",
        "win32": "Download from: https://developer.arm.com/tools-and-software/open-source-software/developer-tools/gnu-toolchain/gnu-rm",
    },
    "gdb": {
        "linux": "sudo apt install gdb-multiarch",
        "darwin": "brew install arm-none-eabi-gdb",
        "win32": "Included with ARM GCC toolchain",
    },
    "openocd": {
        "linux": "sudo apt install openocd",
        "darwin": "brew install openocd",
        "win32": "Download from: https://github.com/xpack-dev-tools/openocd-xpack/releases",
    },
    "make": {
        "linux": "sudo apt install build-essential",
        "darwin": "xcode-select --install",
        "win32": 'Install MinGW or use "make" from xPack Windows Build Tools',
    },
    "cmake": {
        "linux": "sudo apt install cmake",
        "darwin": "brew install cmake",
        "win32": "Download from: https://cmake.org/download/",
    },
}


@dataclass(frozen=True)
class ToolDescriptor:
    """Result of probing for one tool."""
    name: str
    found: bool
    path: str | None = None
    version: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ToolchainSnapshot:
    gcc: ToolDescriptor
    gdb: ToolDescriptor
    openocd: ToolDescriptor
    make: ToolDescriptor
    cmake: ToolDescriptor | None = None

    def tools(self) -> dict[str, ToolDescriptor]:
        """Tool key -> descriptor, in detection order, omitting absent optional tools."""
        tools = {"gcc": self.gcc, "gdb": self.gdb, "openocd": self.openocd, "make": self.make}
        if self.cmake is not None:
            tools["cmake"] = self.cmake
        return tools

    def to_dict(self) -> dict:
        return {key: asdict(tool) for key, tool in self.tools().items()}


@dataclass(frozen=True)
class ValidationResult:
    all_satisfied: bool
    missing: list[str]


class ToolchainDetector:
    """Locates compiler, debugger, OpenOCD and build generators.

    Each tool is searched on PATH first, then under the host's common install
    prefixes. The finished snapshot is stored in the shared `DetectionCache`
    and reused until `clear_cache()` is called.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        cache: DetectionCache,
        host: HostPlatform | None = None,
        overrides: dict[str, str] | None = None,
    ):
        self.runner = runner
        self.cache = cache
        self.host = host or runner.host
        # Tool key ("gcc", "openocd", ...) -> user-configured executable path.
        self.overrides = {k: v for k, v in (overrides or {}).items() if v}

    def detect(self) -> ToolchainSnapshot:
        if self.cache.toolchain is not None:
            return self.cache.toolchain

        snapshot = ToolchainSnapshot(
            gcc=self._find_tool("arm-none-eabi-gcc", key="gcc"),
            gdb=self._find_debugger(),
            openocd=self._find_tool("openocd", key="openocd"),
            make=self._find_tool("make", key="make"),
            cmake=self._find_tool("cmake", key="cmake"),
        )
        self.cache.toolchain = snapshot
        return snapshot

    def validate(self) -> ValidationResult:
        snapshot = self.detect()
        tools = snapshot.tools()
        missing = [name for key, name in REQUIRED_TOOLS if not tools[key].found]
        return ValidationResult(all_satisfied=not missing, missing=missing)

    def clear_cache(self) -> None:
        self.cache.clear_toolchain()

    def path_of(self, key: str) -> str | None:
        """Resolved path of a tool by snapshot key, or None if it was not found."""
        tool = self.detect().tools().get(key)
        return tool.path if tool and tool.found else None

    def objcopy_path(self) -> str:
        """arm-none-eabi-objcopy living next to the detected compiler."""
        gcc = self.path_of("gcc")
        objcopy = self.host.executable_name("arm-none-eabi-objcopy")
        if gcc and Path(gcc).is_absolute():
            return str(Path(gcc).with_name(objcopy))
        return objcopy

    def install_instructions(self, tool_name: str) -> str:
        instructions = _INSTALL_INSTRUCTIONS.get(tool_name)
        if not instructions:
            return f"No installation instructions available for {tool_name}"
        return instructions.get(self.host.name) or instructions["linux"]

    def format_report(self) -> str:
        """Human-readable toolchain summary, one line per tool."""
        lines = ["=== ARM Toolchain Info ==="]
        for key, tool in self.detect().tools().items():
            label = _LABELS[key]
            if tool.found:
                version = f" ({tool.version})" if tool.version else ""
                lines.append(f"[OK] {label}: {tool.path}{version}")
            else:
                lines.append(f"[!!] {label}: {tool.error or 'Not found'}")
        return "\n".join(lines)

    # -- Private helpers ------------------------------------------------------

    def _find_tool(self, tool_name: str, key: str | None = None) -> ToolDescriptor:
        executable = self.host.executable_name(tool_name)

        # 0. User-configured path
        override = self.overrides.get(key) if key else None
        if override:
            if is_executable(override):
                logger.debug("%s: using configured path %s", tool_name, override)
                return ToolDescriptor(
                    name=tool_name, found=True, path=override,
                    version=self.runner.version(override),
                )
            logger.warning("Configured path for %s is not executable: %s", tool_name, override)

        # 1. PATH
        if self.runner.exists(executable):
            logger.debug("%s: found on PATH", tool_name)
            return ToolDescriptor(
                name=tool_name, found=True, path=executable,
                version=self.runner.version(executable),
            )

        # 2. Common installation directories
        candidate = find_in_locations(executable, self.host.install_roots())
        if candidate:
            logger.debug("%s: found at %s", tool_name, candidate)
            return ToolDescriptor(
                name=tool_name, found=True, path=str(candidate),
                version=self.runner.version(str(candidate)),
            )

        # 3. Not found
        logger.debug("%s: not found", tool_name)
        return ToolDescriptor(
            name=tool_name, found=False,
            error=f"{tool_name} not found in PATH or common locations",
        )

    def _find_debugger(self) -> ToolDescriptor:
        result = None
        for candidate in self.host.debugger_candidates():
            result = self._find_tool(candidate, key="gdb")
            if result.found:
                return result
        return result
