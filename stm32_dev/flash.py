"""Firmware flashing for stm32-dev."""

from __future__ import annotations

import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path

from stm32_dev.device import DEFAULT_LINE, DeviceIdentifier
from stm32_dev.errors import ErrorKind, Stm32Error
from stm32_dev.process import ProcessRunner, format_command
from stm32_dev.programmer import (
    ProgrammerDescriptor,
    ProgrammerDetector,
    ProgrammerKind,
    descriptor_for,
)
from stm32_dev.toolchain import ToolchainDetector

logger = logging.getLogger(__name__)

DEFAULT_TARGET = f"target/{DEFAULT_LINE}.cfg"
DEFAULT_JLINK_DEVICE = "STM32F407VG"
JLINK_SUCCESS_MARKER = "O.K."
FLASH_TIMEOUT = 60
OBJCOPY_TIMEOUT = 30
CONNECT_TIMEOUT = 15


@dataclass
class FlashOutcome:
    success: bool
    output: str
    duration_ms: int = 0
    error: str | None = None
    error_kind: ErrorKind | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "output": self.output,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


def find_elf(project_root: Path | str) -> Path | None:
    """First ``*.elf`` in the project's build directory."""
    build_dir = Path(project_root) / "build"
    if not build_dir.is_dir():
        return None
    elves = sorted(build_dir.glob("*.elf"))
    return elves[0] if elves else None


def jlink_script(hex_file: Path | str) -> str:
    """J-Link Commander script: reset, halt, load, reset, go, quit."""
    return "\n".join(["r", "h", f"loadfile {hex_file}", "r", "g", "q"]) + "\n"


class FlashOrchestrator:
    """Picks a flashing strategy for the attached probe and runs it.

    ST-Link and CMSIS-DAP probes are driven through OpenOCD; J-Link probes
    through SEGGER's J-Link Commander with a generated script.
    """

    def __init__(
        self,
        toolchain: ToolchainDetector,
        devices: DeviceIdentifier,
        programmers: ProgrammerDetector,
        runner: ProcessRunner,
        preferred_programmer: str | None = None,
    ):
        self.toolchain = toolchain
        self.devices = devices
        self.programmers = programmers
        self.runner = runner
        # "auto" or None means detect on every call.
        self.preferred_programmer = None if preferred_programmer in (None, "", "auto") else preferred_programmer

    def flash(self, project_root: Path | str, elf_file: Path | str | None = None) -> FlashOutcome:
        """Flash the built firmware. Failures are returned, never raised."""
        start = time.monotonic()
        project_root = Path(project_root)
        try:
            elf = Path(elf_file) if elf_file else find_elf(project_root)
            if elf is None or not elf.exists():
                raise Stm32Error(ErrorKind.FLASH_FAILED, "No .elf file found in build directory")
            logger.info("Binary: %s", elf)

            programmer = self.programmer()
            logger.info("Programmer: %s%s", programmer.kind.value, f" {programmer.version}" if programmer.version else "")
            if programmer.kind is ProgrammerKind.UNKNOWN:
                raise Stm32Error(
                    ErrorKind.DEVICE_NOT_CONNECTED,
                    "No programmer detected. Please connect ST-Link, J-Link, or CMSIS-DAP.",
                )
            if programmer.kind is ProgrammerKind.DFU:
                raise Stm32Error(
                    ErrorKind.FLASH_FAILED,
                    "Device is in DFU bootloader mode; flashing over USB DFU is not supported. "
                    "Connect an ST-Link, J-Link or CMSIS-DAP probe.",
                )

            device = self.devices.identify(project_root)
            if programmer.kind is ProgrammerKind.JLINK:
                outcome = self._flash_with_jlink(elf, device.name if device else None)
            else:
                target = device.debug_target if device else DEFAULT_TARGET
                outcome = self._flash_with_openocd(elf, programmer, target)
        except Stm32Error as e:
            logger.info("Flash aborted: %s", e.message)
            outcome = FlashOutcome(success=False, output="", error=e.message, error_kind=e.kind)

        outcome.duration_ms = int((time.monotonic() - start) * 1000)
        if outcome.success:
            logger.info("Flash successful in %dms", outcome.duration_ms)
        else:
            logger.info("Flash failed after %dms", outcome.duration_ms)
        return outcome

    def test_connection(self, project_root: Path | str) -> bool:
        """Check that OpenOCD can reach and halt the target. Never raises."""
        try:
            programmer = self.programmer()
        except Stm32Error as e:
            logger.warning("%s", e.message)
            return False
        if programmer.kind is ProgrammerKind.UNKNOWN:
            logger.info("No programmer detected")
            return False

        openocd = self.toolchain.path_of("openocd")
        if not openocd:
            logger.info("OpenOCD not found")
            return False

        device = self.devices.identify(project_root)
        target = device.debug_target if device else DEFAULT_TARGET
        args = [openocd, "-f", programmer.interface, "-f", target, "-c", "init; reset halt; exit"]
        logger.info("> %s", format_command(args))
        result = self.runner.run(args, timeout=CONNECT_TIMEOUT)
        return result.ok

    def disconnect(self) -> bool:
        """Kill any running OpenOCD. Returns whether something was terminated."""
        killed = self.runner.terminate_by_name("openocd")
        logger.info("Disconnected from device" if killed else "No active connections found")
        return killed

    def programmer(self) -> ProgrammerDescriptor:
        if self.preferred_programmer:
            try:
                return descriptor_for(self.preferred_programmer)
            except ValueError:
                raise Stm32Error(
                    ErrorKind.INVALID_PROJECT, f"Unknown programmer: {self.preferred_programmer}"
                ) from None
        return self.programmers.detect()

    # -- Strategies -----------------------------------------------------------

    def _flash_with_openocd(self, elf: Path, programmer: ProgrammerDescriptor, target: str) -> FlashOutcome:
        openocd = self.toolchain.path_of("openocd")
        if not openocd:
            raise Stm32Error(ErrorKind.TOOLCHAIN_NOT_FOUND, "OpenOCD not found. Please install OpenOCD.")

        args = [openocd, "-f", programmer.interface, "-f", target, "-c", f"program {elf} verify reset exit"]
        logger.info("> %s", format_command(args))
        result = self.runner.run(args, timeout=FLASH_TIMEOUT)
        if result.ok:
            return FlashOutcome(success=True, output=result.output)
        return FlashOutcome(
            success=False,
            output=result.output,
            error=result.stderr.strip() or f"openocd exited with code {result.exit_code}",
            error_kind=ErrorKind.OPENOCD_ERROR,
        )

    def _flash_with_jlink(self, elf: Path, device_name: str | None) -> FlashOutcome:
        hex_file = elf.with_suffix(".hex")
        if not hex_file.exists():
            args = [self.toolchain.objcopy_path(), "-O", "ihex", str(elf), str(hex_file)]
            logger.info("> %s", format_command(args))
            converted = self.runner.run(args, timeout=OBJCOPY_TIMEOUT)
            if not converted.ok:
                raise Stm32Error(
                    ErrorKind.FLASH_FAILED,
                    "Failed to convert ELF to HEX for J-Link",
                    details={"output": converted.output},
                )

        try:
            fd, script_path = tempfile.mkstemp(prefix="jlink_flash_", suffix=".jlink")
        except OSError as e:
            raise Stm32Error(ErrorKind.FLASH_FAILED, f"Could not create J-Link script: {e}") from e
        try:
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(jlink_script(hex_file))
            except OSError as e:
                raise Stm32Error(ErrorKind.FLASH_FAILED, f"Could not write J-Link script: {e}") from e

            args = [
                self.runner.host.jlink_commander,
                "-device", device_name or DEFAULT_JLINK_DEVICE,
                "-if", "SWD",
                "-speed", "4000",
                "-CommanderScript", script_path,
            ]
            logger.info("> %s", format_command(args))
            result = self.runner.run(args, timeout=FLASH_TIMEOUT)
        finally:
            try:
                os.unlink(script_path)
            except OSError:
                logger.warning("Could not remove J-Link script %s", script_path)

        if result.ok and JLINK_SUCCESS_MARKER not in result.stdout:
            # Exit status is the primary signal; the marker check is a known heuristic.
            logger.warning("J-Link Commander exited cleanly but did not report %s", JLINK_SUCCESS_MARKER)
        success = result.ok and JLINK_SUCCESS_MARKER in result.stdout
        return FlashOutcome(
            success=success,
            output=result.output,
            error=None if success else (result.stderr.strip() or "J-Link Commander did not confirm the download"),
            error_kind=None if success else ErrorKind.FLASH_FAILED,
        )
