"""Subprocess execution for stm32-dev."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from stm32_dev.host import HostPlatform, detect_host
from stm32_dev.parsing import extract_version

logger = logging.getLogger(__name__)

_ASSIGNMENT = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*\+?=)(.*)$", re.DOTALL)


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, skipping whichever is empty."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def format_command(args: list[str]) -> str:
    """Render an argv as a shell-style command line for display.

    ``OPT=-O2 -g1`` becomes ``OPT="-O2 -g1"`` and other arguments containing
    whitespace are wrapped in double quotes.
    """
    parts = []
    for arg in args:
        arg = str(arg)
        if not any(ch.isspace() for ch in arg):
            parts.append(arg)
            continue
        match = _ASSIGNMENT.match(arg)
        if match:
            parts.append(f'{match.group(1)}"{match.group(2)}"')
        else:
            parts.append(f'"{arg}"')
    return " ".join(parts)


class ProcessRunner:
    """Runs external commands and captures their output. Never raises."""

    def __init__(self, host: HostPlatform | None = None):
        self.host = host or detect_host()

    def run(
        self,
        args: list[str],
        cwd: Path | str | None = None,
        timeout: float = 30,
    ) -> CommandResult:
        """Run `args` and wait for it, killing the child if `timeout` elapses.

        A missing executable is reported as exit code 127. A missing working
        directory and other OS errors give 1. A timeout gives -1 with whatever
        output was captured before the kill.
        """
        args = [str(a) for a in args]
        logger.debug("run: %s (cwd=%s, timeout=%ss)", format_command(args), cwd, timeout)
        if cwd is not None and not Path(cwd).is_dir():
            return CommandResult(stdout="", stderr=f"Working directory not found: {cwd}", exit_code=1)
        try:
            completed = subprocess.run(
                args,
                cwd=str(cwd) if cwd is not None else None,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except FileNotFoundError as e:
            return CommandResult(stdout="", stderr=str(e), exit_code=127)
        except subprocess.TimeoutExpired as e:
            logger.warning("Command timed out after %ss: %s", timeout, format_command(args))
            stderr = _text(e.stderr)
            note = f"Command timed out after {timeout}s"
            return CommandResult(
                stdout=_text(e.stdout),
                stderr=f"{stderr}\n{note}" if stderr else note,
                exit_code=-1,
                timed_out=True,
            )
        except OSError as e:
            return CommandResult(stdout="", stderr=str(e), exit_code=1)

        return CommandResult(
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            exit_code=completed.returncode,
        )

    def exists(self, command: str) -> bool:
        """Return True if `command` is found on PATH by the platform lookup tool."""
        result = self.run(self.host.lookup_command(command), timeout=10)
        return result.ok

    def terminate_by_name(self, process_name: str) -> bool:
        """Force-kill every process called `process_name`. True if anything was killed."""
        result = self.run(self.host.kill_command(process_name), timeout=10)
        return result.ok

    def version(self, command: str, flag: str = "--version") -> str | None:
        """Best-effort version string for `command`, or None."""
        result = self.run([command, flag], timeout=5)
        if not result.ok:
            return None
        # OpenOCD prints its banner on stderr.
        text = result.stdout if result.stdout.strip() else result.stderr
        return extract_version(text)
