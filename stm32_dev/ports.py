"""Serial port listing for stm32-dev.

Most debug probes also expose a virtual COM port; its USB identity tells us
which probe it belongs to and carries the probe's serial number.
"""

from __future__ import annotations

from dataclasses import dataclass

from serial.tools.list_ports import comports

_ST_VID = 0x0483
_SEGGER_VID = 0x1366
# ST-Link/V2-1, V3 and V3-MINIE VCP product ids.
_STLINK_PIDS = {0x374B, 0x3752, 0x374E, 0x374F, 0x3753, 0x3754}


@dataclass
class PortInfo:
    device: str
    description: str
    hwid: str
    serial_number: str | None = None
    probe: str | None = None


def probe_kind(vid: int | None, pid: int | None, product: str | None) -> str | None:
    """Return the programmer kind a serial port belongs to, if any."""
    if vid == _ST_VID and pid in _STLINK_PIDS:
        return "stlink"
    if vid == _SEGGER_VID:
        return "jlink"
    if product and "cmsis-dap" in product.lower():
        return "cmsis-dap"
    return None


def list_serial_ports() -> list[PortInfo]:
    """List available serial ports, labelling those provided by debug probes."""
    ports = []
    for p in comports():
        ports.append(PortInfo(
            device=p.device,
            description=p.description,
            hwid=p.hwid,
            serial_number=p.serial_number,
            probe=probe_kind(p.vid, p.pid, p.product),
        ))
    return ports


def probe_serial_number(kind: str) -> str | None:
    """Serial number of the first connected probe of `kind`, if it exposes a VCP."""
    for port in list_serial_ports():
        if port.probe == kind and port.serial_number:
            return port.serial_number
    return None
