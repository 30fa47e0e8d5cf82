"""Host platform strategies for stm32-dev.

Everything that differs between Linux, macOS and Windows lives here: executable
naming, how to look up and kill commands, where toolchains are usually installed,
and how connected USB devices are enumerated. A strategy is picked once with
``detect_host()`` and handed to the detectors.
"""

from __future__ import annotations

import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path

# Substring markers (lowercase) per programmer kind, in priority order.
_DEFAULT_MARKERS: list[tuple[str, tuple[str, ...]]] = [
    ("stlink", ("st-link",)),
    ("jlink", ("j-link", "segger")),
    ("cmsis-dap", ("cmsis-dap",)),
    ("dfu", ("dfu mode",)),
]


class HostPlatform(ABC):
    """Abstract base class for operating-system specific behaviour."""

    exe_suffix = ""
    jlink_commander = "JLinkExe"

    @property
    @abstractmethod
    def name(self) -> str:
        """Platform key used for instruction tables ('linux', 'darwin', 'win32')."""

    @abstractmethod
    def lookup_command(self, command: str) -> list[str]:
        """Return the native command that checks whether `command` is on PATH."""

    @abstractmethod
    def kill_command(self, process_name: str) -> list[str]:
        """Return the command that force-kills every process named `process_name`."""

    @abstractmethod
    def install_roots(self) -> list[Path]:
        """Common toolchain installation prefixes, in search order.

        Executables are looked up as ``<root>/bin/<name>``.
        """

    @abstractmethod
    def usb_listing_command(self) -> tuple[list[str], float]:
        """Return (argv, timeout seconds) for listing connected USB devices."""

    def executable_name(self, base_name: str) -> str:
        if self.exe_suffix and not base_name.endswith(self.exe_suffix):
            return base_name + self.exe_suffix
        return base_name

    def debugger_candidates(self) -> list[str]:
        """GDB names to try, most preferred first."""
        return ["arm-none-eabi-gdb"]

    def programmer_markers(self) -> list[tuple[str, tuple[str, ...]]]:
        return list(_DEFAULT_MARKERS)

    def enumeration_fallback(self, runner) -> str | None:
        """Programmer kind to assume when USB enumeration fails, if any."""
        return None


class LinuxHost(HostPlatform):

    @property
    def name(self):
        return "linux"

    def lookup_command(self, command: str) -> list[str]:
        return ["which", command]

    def kill_command(self, process_name: str) -> list[str]:
        return ["pkill", "-9", process_name]

    def install_roots(self) -> list[Path]:
        home = Path.home()
        return [
            Path("/usr"),
            Path("/usr/local"),
            home / ".local",
            Path("/opt/gcc-arm-none-eabi"),
            home / ".local" / "xPacks" / "@xpack-dev-tools" / "arm-none-eabi-gcc",
        ]

    def usb_listing_command(self) -> tuple[list[str], float]:
        return ["lsusb"], 5

    def debugger_candidates(self) -> list[str]:
        return ["gdb-multiarch", "arm-none-eabi-gdb"]


class MacHost(HostPlatform):

    @property
    def name(self):
        return "darwin"

    def lookup_command(self, command: str) -> list[str]:
        return ["which", command]

    def kill_command(self, process_name: str) -> list[str]:
        return ["pkill", "-9", process_name]

    def install_roots(self) -> list[Path]:
        return [
            Path("/usr/local"),
            Path("/opt/homebrew"),
            Path("/Applications/ARM"),
            Path.home() / ".local" / "xPacks" / "@xpack-dev-tools" / "arm-none-eabi-gcc",
        ]

    def usb_listing_command(self) -> tuple[list[str], float]:
        return ["system_profiler", "SPUSBDataType"], 10

    def programmer_markers(self) -> list[tuple[str, tuple[str, ...]]]:
        # The ST-Link enumerates as "STM32 STLink" on macOS.
        markers = list(_DEFAULT_MARKERS)
        markers[0] = ("stlink", ("st-link", "stm32"))
        return markers


class WindowsHost(HostPlatform):

    exe_suffix = ".exe"
    jlink_commander = "JLink.exe"

    @property
    def name(self):
        return "win32"

    def lookup_command(self, command: str) -> list[str]:
        return ["where", command]

    def kill_command(self, process_name: str) -> list[str]:
        return ["taskkill", "/F", "/IM", f"{process_name}.exe"]

    def install_roots(self) -> list[Path]:
        roots = [
            Path("C:\\Program Files (x86)\\GNU Arm Embedded Toolchain"),
            Path("C:\\Program Files\\GNU Arm Embedded Toolchain"),
            Path("C:\\xPack\\arm-none-eabi-gcc"),
            Path("C:\\tools\\arm-none-eabi-gcc"),
        ]
        local_appdata = os.environ.get("LOCALAPPDATA")
        if local_appdata:
            roots.append(Path(local_appdata) / "xPacks" / "@xpack-dev-tools" / "arm-none-eabi-gcc")
        return roots

    def usb_listing_command(self) -> tuple[list[str], float]:
        return [
            "wmic", "path", "Win32_PnPEntity",
            "where", "DeviceID like '%USB%'",
            "get", "Caption",
        ], 10

    def programmer_markers(self) -> list[tuple[str, tuple[str, ...]]]:
        markers = list(_DEFAULT_MARKERS)
        markers[0] = ("stlink", ("st-link", "stm32"))
        return markers

    def enumeration_fallback(self, runner) -> str | None:
        if runner.exists("ST-LINK_CLI"):
            return "stlink"
        return None


def detect_host(platform: str | None = None) -> HostPlatform:
    """Return the strategy for the given (or current) ``sys.platform`` value."""
    platform = platform or sys.platform
    if platform == "win32":
        return WindowsHost()
    if platform == "darwin":
        return MacHost()
    return LinuxHost()
