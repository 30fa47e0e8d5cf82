"""Process-wide detection cache for stm32-dev."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stm32_dev.device import DeviceDescriptor
    from stm32_dev.toolchain import ToolchainSnapshot


class DetectionCache:
    """Holds the last toolchain snapshot and the last identified device.

    Values are written in one assignment once detection has finished, so a
    reader sees either nothing or a complete result.
    """

    def __init__(self):
        self.toolchain: ToolchainSnapshot | None = None
        self.device: DeviceDescriptor | None = None

    def clear_toolchain(self) -> None:
        self.toolchain = None

    def clear_device(self) -> None:
        self.device = None

    def clear(self) -> None:
        self.clear_toolchain()
        self.clear_device()
