"""Build orchestration for stm32-dev."""

from __future__ import annotations

import logging
import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path

from stm32_dev.errors import ErrorKind, Stm32Error
from stm32_dev.parsing import MemoryUsage, parse_diagnostics, parse_memory_usage
from stm32_dev.paths import ensure_dir
from stm32_dev.process import CommandResult, ProcessRunner, format_command
from stm32_dev.toolchain import ToolchainDetector

logger = logging.getLogger(__name__)

BUILD_SYSTEMS = ("makefile", "cmake")
LINKER_FLAGS = "-Wl,--gc-sections -Wl,--print-memory-usage"
BUILD_DIR = "build"
BUILD_TIMEOUT = 120
CONFIGURE_TIMEOUT = 60
CLEAN_TIMEOUT = 30

# make output when there is no clean target or no makefile at all.
_NOTHING_TO_CLEAN = (
    "No rule to make target 'clean'",
    "No rule to make target `clean'",
    "No targets specified and no makefile found",
)


@dataclass(frozen=True)
class BuildProfile:
    name: str
    flags: tuple[str, ...]
    description: str


PROFILES: dict[str, BuildProfile] = {
    "O0": BuildProfile(
        name="O0",
        flags=("-O0", "-g3", "-DDEBUG"),
        description="No optimization - Best for debugging",
    ),
    "O1": BuildProfile(
        name="O1",
        flags=("-O1", "-g2"),
        description="Basic optimization",
    ),
    "O2": BuildProfile(
        name="O2",
        flags=("-O2", "-g1", "-flto", "-ffunction-sections", "-fdata-sections"),
        description="Standard optimization - Recommended for production",
    ),
    "O3": BuildProfile(
        name="O3",
        flags=("-O3", "-flto", "-ffunction-sections", "-fdata-sections", "-funroll-loops", "-finline-functions"),
        description="Aggressive optimization - Maximum speed",
    ),
    "Os": BuildProfile(
        name="Os",
        flags=("-Os", "-flto", "-ffunction-sections", "-fdata-sections", "-fno-exceptions"),
        description="Size optimization - Minimum flash usage",
    ),
    "Og": BuildProfile(
        name="Og",
        flags=("-Og", "-g3", "-DDEBUG"),
        description="Debug-friendly optimization",
    ),
}


@dataclass
class BuildOutcome:
    success: bool
    output: str
    duration_ms: int
    memory_usage: MemoryUsage | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "output": self.output,
            "duration_ms": self.duration_ms,
            "memory_usage": self.memory_usage.to_dict() if self.memory_usage else None,
            "errors": self.errors,
            "warnings": self.warnings,
        }


def get_profile(name: str) -> BuildProfile | None:
    return PROFILES.get(name)


def list_profiles() -> list[BuildProfile]:
    return list(PROFILES.values())


def detect_build_system(project_root: Path | str) -> str:
    """Guess the build system from project files: CMakeLists.txt wins, else Makefile."""
    project_root = Path(project_root)
    if (project_root / "CMakeLists.txt").exists() and not (project_root / "Makefile").exists():
        return "cmake"
    return "makefile"


def parallel_jobs() -> int:
    return max(1, os.cpu_count() or 1)


class BuildOrchestrator:
    """Validates the toolchain, runs make or CMake, and parses the result."""

    def __init__(self, toolchain: ToolchainDetector, runner: ProcessRunner):
        self.toolchain = toolchain
        self.runner = runner

    def build(self, project_root: Path | str, profile: str = "O2", build_system: str = "makefile") -> BuildOutcome:
        """Build the project. Raises Stm32Error when the build cannot start.

        A build that runs and fails (including a timeout) is returned as an
        unsuccessful BuildOutcome, not raised.
        """
        project_root = Path(project_root)
        build_profile = get_profile(profile)
        if build_profile is None:
            raise Stm32Error(
                ErrorKind.BUILD_FAILED,
                f"Invalid build profile: {profile}. Available: {', '.join(PROFILES)}",
            )
        if build_system not in BUILD_SYSTEMS:
            raise Stm32Error(
                ErrorKind.INVALID_PROJECT,
                f"Unknown build system: {build_system}. Available: {', '.join(BUILD_SYSTEMS)}",
            )

        validation = self.toolchain.validate()
        if not validation.all_satisfied:
            raise Stm32Error(
                ErrorKind.TOOLCHAIN_NOT_FOUND,
                f"Missing toolchain components: {', '.join(validation.missing)}",
                details=validation.missing,
            )

        logger.info("Building %s with %s profile (%s)", project_root, profile, build_system)
        start = time.monotonic()
        if build_system == "cmake":
            result = self._build_with_cmake(project_root, build_profile)
        else:
            result = self._build_with_make(project_root, build_profile)
        return self._outcome(result, start)

    def clean(self, project_root: Path | str, build_system: str = "makefile") -> bool:
        """Remove build artifacts. Returns False if cleaning failed; never raises."""
        project_root = Path(project_root)
        if build_system == "cmake":
            build_dir = project_root / BUILD_DIR
            if build_dir.exists():
                shutil.rmtree(build_dir, ignore_errors=True)
                logger.info("Removed %s", build_dir)
            return not build_dir.exists()

        args = [self._tool("make"), "clean"]
        logger.info("> %s", format_command(args))
        result = self.runner.run(args, cwd=project_root, timeout=CLEAN_TIMEOUT)
        if result.ok:
            return True
        if any(marker in result.output for marker in _NOTHING_TO_CLEAN):
            logger.info("Nothing to clean in %s", project_root)
            return True
        logger.warning("make clean failed (exit %d)", result.exit_code)
        return False

    def make_command(self, profile: BuildProfile, jobs: int | None = None) -> list[str]:
        jobs = jobs or parallel_jobs()
        return [
            self._tool("make"),
            f"-j{jobs}",
            f"OPT={' '.join(profile.flags)}",
            f"LDFLAGS+={LINKER_FLAGS}",
        ]

    # -- Private helpers ------------------------------------------------------

    def _tool(self, key: str) -> str:
        return self.toolchain.path_of(key) or key

    def _build_with_make(self, root: Path, profile: BuildProfile) -> CommandResult:
        args = self.make_command(profile)
        logger.info("> %s", format_command(args))
        return self.runner.run(args, cwd=root, timeout=BUILD_TIMEOUT)

    def _build_with_cmake(self, root: Path, profile: BuildProfile) -> CommandResult:
        try:
            build_dir = ensure_dir(root / BUILD_DIR)
        except OSError as e:
            raise Stm32Error(ErrorKind.BUILD_FAILED, f"Could not create build directory: {e}") from e
        cmake = self._tool("cmake")

        configure = [cmake, f"-DCMAKE_BUILD_TYPE={profile.name}", f"-DBUILD_PROFILE={profile.name}", ".."]
        logger.info("> %s", format_command(configure))
        configured = self.runner.run(configure, cwd=build_dir, timeout=CONFIGURE_TIMEOUT)
        if not configured.ok:
            raise Stm32Error(
                ErrorKind.CMAKE_ERROR,
                f"CMake configuration failed: {configured.stderr.strip()}",
                details={"output": configured.output, "exit_code": configured.exit_code},
            )

        args = [cmake, "--build", ".", f"-j{parallel_jobs()}"]
        logger.info("> %s", format_command(args))
        return self.runner.run(args, cwd=build_dir, timeout=BUILD_TIMEOUT)

    def _outcome(self, result: CommandResult, start: float) -> BuildOutcome:
        duration_ms = int((time.monotonic() - start) * 1000)
        output = result.output
        errors, warnings = parse_diagnostics(output)

        if not result.ok:
            if result.timed_out:
                errors.append(f"Build timed out after {BUILD_TIMEOUT}s")
            elif not errors:
                errors.append(f"Build command exited with code {result.exit_code}")
            logger.info("Build failed after %dms", duration_ms)
            return BuildOutcome(
                success=False,
                output=output,
                duration_ms=duration_ms,
                errors=errors,
                warnings=warnings,
            )

        logger.info("Build successful in %dms", duration_ms)
        return BuildOutcome(
            success=True,
            output=output,
            duration_ms=duration_ms,
            memory_usage=parse_memory_usage(output),
            errors=errors,
            warnings=warnings,
        )
