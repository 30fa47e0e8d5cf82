"""Parsers for tool output: versions, memory usage tables and diagnostics.

Kept free of subprocess calls so each pattern can be tested on literal text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_VERSION = re.compile(r"(\d+\.\d+\.\d+)")
_PROBE_VERSION = re.compile(r"V(\d+)", re.IGNORECASE)

# One row of the GNU ld --print-memory-usage table, e.g.
#   FLASH:       12345 B       512 KB      2.35%
_MEMORY_HEADER = re.compile(r"Memory region\s+Used Size")
_MEMORY_ROW = re.compile(
    r"^\s*([A-Za-z_][\w.]*):\s+(\d+)\s*([KMG]?B)\s+(\d+)\s*([KMG]?B)\s+([\d.]+)%",
    re.MULTILINE,
)
_UNITS = {"B": 1, "KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3}

ERROR_MARKERS = ("error:", "ERROR:")
WARNING_MARKERS = ("warning:",)


@dataclass(frozen=True)
class MemoryRegion:
    used: int
    total: int
    percentage: float

    def to_dict(self) -> dict:
        return {"used": self.used, "total": self.total, "percentage": self.percentage}


@dataclass(frozen=True)
class MemoryUsage:
    flash: MemoryRegion
    ram: MemoryRegion

    def to_dict(self) -> dict:
        return {"flash": self.flash.to_dict(), "ram": self.ram.to_dict()}


def extract_version(output: str) -> str | None:
    """Return the first dotted version on the first output line.

    Falls back to the trimmed line itself, or None if there is no output.
    """
    lines = output.strip().splitlines()
    if not lines:
        return None
    first = lines[0].strip()
    match = _VERSION.search(first)
    return match.group(1) if match else first


def extract_probe_version(output: str) -> str | None:
    """Extract a probe hardware revision such as "V2" from a USB listing."""
    match = _PROBE_VERSION.search(output)
    return f"V{match.group(1)}" if match else None


def parse_memory_usage(output: str) -> MemoryUsage | None:
    """Parse the linker's memory usage table into bytes.

    Both a FLASH and a RAM row are required; otherwise None is returned.
    """
    header = _MEMORY_HEADER.search(output)
    if not header:
        return None

    regions: dict[str, MemoryRegion] = {}
    for match in _MEMORY_ROW.finditer(output, header.end()):
        name = match.group(1).upper()
        used = int(match.group(2)) * _UNITS[match.group(3).upper()]
        total = int(match.group(4)) * _UNITS[match.group(5).upper()]
        regions.setdefault(name, MemoryRegion(used=used, total=total, percentage=float(match.group(6))))

    flash = regions.get("FLASH")
    ram = regions.get("RAM")
    if flash is None or ram is None:
        return None
    return MemoryUsage(flash=flash, ram=ram)


def classify_line(line: str) -> str | None:
    """Return "error", "warning" or None. Errors win over warnings."""
    if any(marker in line for marker in ERROR_MARKERS):
        return "error"
    if any(marker in line for marker in WARNING_MARKERS):
        return "warning"
    return None


def parse_diagnostics(output: str) -> tuple[list[str], list[str]]:
    """Split build output into (errors, warnings) lines, trimmed."""
    errors: list[str] = []
    warnings: list[str] = []
    for line in output.splitlines():
        kind = classify_line(line)
        if kind == "error":
            errors.append(line.strip())
        elif kind == "warning":
            warnings.append(line.strip())
    return errors, warnings
