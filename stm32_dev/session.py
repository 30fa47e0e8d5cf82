"""Wiring of the stm32-dev engine components."""

from __future__ import annotations

from pathlib import Path

from stm32_dev.build import BuildOrchestrator
from stm32_dev.cache import DetectionCache
from stm32_dev.config import ProjectConfig, load_or_default
from stm32_dev.device import DeviceIdentifier
from stm32_dev.flash import FlashOrchestrator
from stm32_dev.host import HostPlatform, detect_host
from stm32_dev.process import ProcessRunner
from stm32_dev.programmer import ProgrammerDetector
from stm32_dev.svd import SvdCache
from stm32_dev.toolchain import ToolchainDetector


class Session:
    """One set of detectors and orchestrators sharing a DetectionCache."""

    def __init__(
        self,
        config: ProjectConfig | None = None,
        host: HostPlatform | None = None,
        runner: ProcessRunner | None = None,
        cache: DetectionCache | None = None,
    ):
        self.config = config or ProjectConfig()
        self.host = host or (runner.host if runner else detect_host())
        self.runner = runner or ProcessRunner(self.host)
        self.cache = cache or DetectionCache()

        self.toolchain = ToolchainDetector(
            self.runner, self.cache, host=self.host,
            overrides=self.config.tools.overrides(),
        )
        self.programmers = ProgrammerDetector(self.runner, host=self.host)
        self.devices = DeviceIdentifier(self.cache)
        self.svd = SvdCache(self.config.svd.cache_dir)
        self.builder = BuildOrchestrator(self.toolchain, self.runner)
        self.flasher = FlashOrchestrator(
            self.toolchain, self.devices, self.programmers, self.runner,
            preferred_programmer=self.config.flash.programmer,
        )

    @classmethod
    def from_config(cls, project_dir: Path | str, **kwargs) -> Session:
        """Build a session from the project's stm32dev.toml (defaults if absent)."""
        return cls(config=load_or_default(project_dir), **kwargs)

    def clear_caches(self) -> None:
        self.cache.clear()
