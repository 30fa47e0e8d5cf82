"""Debug probe (programmer) detection for stm32-dev."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import serial

from stm32_dev.host import HostPlatform
from stm32_dev.parsing import extract_probe_version
from stm32_dev.ports import probe_serial_number
from stm32_dev.process import ProcessRunner

logger = logging.getLogger(__name__)


class ProgrammerKind(str, Enum):
    STLINK = "stlink"
    JLINK = "jlink"
    CMSIS_DAP = "cmsis-dap"
    DFU = "dfu"
    UNKNOWN = "unknown"


# OpenOCD interface config per probe kind.
INTERFACES: dict[ProgrammerKind, str] = {
    ProgrammerKind.STLINK: "interface/stlink.cfg",
    ProgrammerKind.JLINK: "interface/jlink.cfg",
    ProgrammerKind.CMSIS_DAP: "interface/cmsis-dap.cfg",
}
DEFAULT_INTERFACE = INTERFACES[ProgrammerKind.STLINK]


@dataclass(frozen=True)
class ProgrammerDescriptor:
    kind: ProgrammerKind
    interface: str
    version: str | None = None
    serial: str | None = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "interface": self.interface,
            "version": self.version,
            "serial": self.serial,
        }


def descriptor_for(kind: ProgrammerKind | str) -> ProgrammerDescriptor:
    """Build a descriptor for an explicitly chosen probe kind."""
    kind = ProgrammerKind(kind)
    return ProgrammerDescriptor(kind=kind, interface=INTERFACES.get(kind, DEFAULT_INTERFACE))


class ProgrammerDetector:
    """Identifies the attached probe from the host's USB device listing.

    Not cached: probes come and go between calls.
    """

    def __init__(self, runner: ProcessRunner, host: HostPlatform | None = None):
        self.runner = runner
        self.host = host or runner.host

    def detect(self) -> ProgrammerDescriptor:
        argv, timeout = self.host.usb_listing_command()
        result = self.runner.run(argv, timeout=timeout)

        if not result.ok:
            logger.debug("USB enumeration failed (exit %d): %s", result.exit_code, result.stderr.strip())
            fallback = self.host.enumeration_fallback(self.runner)
            if fallback:
                return descriptor_for(fallback)
            return ProgrammerDescriptor(kind=ProgrammerKind.UNKNOWN, interface=DEFAULT_INTERFACE)

        return self.match(result.stdout)

    def match(self, listing: str) -> ProgrammerDescriptor:
        """Classify a raw USB listing using the host's marker priority."""
        lowered = listing.lower()
        for kind_name, markers in self.host.programmer_markers():
            if any(marker in lowered for marker in markers):
                kind = ProgrammerKind(kind_name)
                version = extract_probe_version(listing) if kind is ProgrammerKind.STLINK else None
                logger.debug("Detected programmer: %s", kind.value)
                return ProgrammerDescriptor(
                    kind=kind,
                    interface=INTERFACES.get(kind, DEFAULT_INTERFACE),
                    version=version,
                    serial=_serial_number(kind),
                )
        return ProgrammerDescriptor(kind=ProgrammerKind.UNKNOWN, interface=DEFAULT_INTERFACE)


def _serial_number(kind: ProgrammerKind) -> str | None:
    """Probe serial number from its virtual COM port; best effort."""
    try:
        return probe_serial_number(kind.value)
    except (OSError, serial.SerialException):
        return None
