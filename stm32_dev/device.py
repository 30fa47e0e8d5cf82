"""Target microcontroller identification for stm32-dev."""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, replace
from pathlib import Path

from stm32_dev.cache import DetectionCache
from stm32_dev.paths import find_file

logger = logging.getLogger(__name__)

DEFAULT_FAMILY = "STM32F4"
DEFAULT_LINE = "stm32f4x"
DEFAULT_FLASH_KB = 512
DEFAULT_RAM_KB = 128

_IOC_DEVICE = re.compile(r"Mcu\.Name=(STM32[A-Z0-9]+)")
_MAKEFILE_DEVICE = re.compile(r"-D(STM32[A-Z0-9]+xx)|TARGET\s*[=:]\s*(STM32[A-Z0-9]+)", re.IGNORECASE)
_LINKER_DEVICE = re.compile(r"(STM32[A-Z0-9]+)_FLASH\.ld", re.IGNORECASE)

_FAMILY = re.compile(r"STM32([A-Z]\d)")
# STM32 <type><core> <line digits> <pin count letter> <flash size code>, e.g. STM32F407VG.
_SIZE_CODE = re.compile(r"STM32[A-Z]+\d+[A-Z]([0-9A-Z])")

# Rough flash sizes (KB) by size-code character.
FLASH_SIZES_KB: dict[str, int] = {
    "4": 16, "6": 32, "8": 64, "B": 128, "Z": 192, "C": 256, "D": 384,
    "E": 512, "F": 768, "G": 1024, "H": 1536, "I": 2048,
}

# Rough RAM sizes (KB) by family code.
RAM_SIZES_KB: dict[str, int] = {
    "F0": 8, "F1": 20, "F2": 128, "F3": 40,
    "F4": 192, "F7": 320, "G0": 36, "G4": 128,
    "H7": 1024, "L0": 8, "L1": 16, "L4": 128, "L5": 256,
}


@dataclass(frozen=True)
class DeviceDescriptor:
    name: str              # e.g. "STM32F407VG"
    family: str            # e.g. "STM32F4"
    line: str              # e.g. "stm32f4x"
    flash_kb: int
    ram_kb: int
    debug_target: str      # OpenOCD target config, e.g. "target/stm32f4x.cfg"
    svd_path: str | None = None

    def with_svd(self, svd_path: Path | str | None) -> DeviceDescriptor:
        return replace(self, svd_path=str(svd_path) if svd_path else None)

    def to_dict(self) -> dict:
        return asdict(self)


def estimate_flash_kb(device_name: str) -> int:
    match = _SIZE_CODE.search(device_name.upper())
    if not match:
        return DEFAULT_FLASH_KB
    return FLASH_SIZES_KB.get(match.group(1), DEFAULT_FLASH_KB)


def estimate_ram_kb(device_name: str) -> int:
    match = _FAMILY.search(device_name.upper())
    family = match.group(1) if match else "F4"
    return RAM_SIZES_KB.get(family, DEFAULT_RAM_KB)


def parse_device_name(device_name: str) -> DeviceDescriptor:
    """Derive family, debug target and memory estimates from a part number.

    Never fails: anything that cannot be parsed falls back to STM32F4 defaults.
    """
    name = device_name.upper()
    match = _FAMILY.search(name)
    if match:
        family = f"STM32{match.group(1)}"
        line = f"stm32{match.group(1).lower()}x"
    else:
        family = DEFAULT_FAMILY
        line = DEFAULT_LINE

    return DeviceDescriptor(
        name=name,
        family=family,
        line=line,
        flash_kb=estimate_flash_kb(name),
        ram_kb=estimate_ram_kb(name),
        debug_target=f"target/{line}.cfg",
    )


def device_from_ioc(content: str) -> str | None:
    match = _IOC_DEVICE.search(content)
    return match.group(1) if match else None


def device_from_makefile(content: str) -> str | None:
    match = _MAKEFILE_DEVICE.search(content)
    if not match:
        return None
    if match.group(1):
        # -DSTM32F407xx names the device with a generic "xx" suffix.
        return re.sub("xx", "", match.group(1), count=1, flags=re.IGNORECASE)
    return match.group(2)


def device_from_linker_script(file_name: str) -> str | None:
    match = _LINKER_DEVICE.search(file_name)
    return match.group(1) if match else None


class DeviceIdentifier:
    """Infers the target MCU from project files.

    Sources are tried in order: CubeMX ``.ioc`` project, top-level
    ``Makefile``, then a ``*_FLASH.ld`` linker script. The first hit is cached
    until `clear_cache()`.
    """

    def __init__(self, cache: DetectionCache):
        self.cache = cache

    def identify(self, project_root: Path | str) -> DeviceDescriptor | None:
        if self.cache.device is not None:
            return self.cache.device

        project_root = Path(project_root)
        for source in (self._from_ioc, self._from_makefile, self._from_linker_script):
            name = source(project_root)
            if name:
                device = parse_device_name(name)
                logger.debug("Identified %s via %s", device.name, source.__name__)
                self.cache.device = device
                return device
        return None

    def clear_cache(self) -> None:
        self.cache.clear_device()

    # -- Private helpers ------------------------------------------------------

    def _from_ioc(self, root: Path) -> str | None:
        ioc = find_file(root, "*.ioc", max_depth=1)
        if not ioc:
            return None
        try:
            return device_from_ioc(ioc.read_text(errors="ignore"))
        except OSError:
            return None

    def _from_makefile(self, root: Path) -> str | None:
        makefile = root / "Makefile"
        if not makefile.is_file():
            return None
        try:
            return device_from_makefile(makefile.read_text(errors="ignore"))
        except OSError:
            return None

    def _from_linker_script(self, root: Path) -> str | None:
        script = find_file(root, "*_FLASH.ld", max_depth=2)
        if not script:
            return None
        return device_from_linker_script(script.name)
