"""Filesystem helpers for stm32-dev."""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path

# Directories never worth descending into when looking for project files.
_SKIP_DIRS = {".git", ".svn", "node_modules", ".stm32dev", "__pycache__"}


def is_executable(path: Path | str) -> bool:
    path = Path(path)
    return path.is_file() and os.access(path, os.X_OK)


def resolve_symlink(path: Path | str) -> Path:
    """Return the real path, or the input unchanged if it cannot be resolved."""
    try:
        return Path(os.path.realpath(path, strict=True))
    except OSError:
        return Path(path)


def find_in_locations(executable: str, roots: list[Path]) -> Path | None:
    """Return the first ``<root>/bin/<executable>`` that exists and is executable."""
    for root in roots:
        candidate = root / "bin" / executable
        if is_executable(candidate):
            return candidate
    return None


def find_file(directory: Path | str, pattern: str, max_depth: int = 3) -> Path | None:
    """Find the first file matching the glob `pattern` under `directory`.

    `max_depth` counts subdirectory levels below `directory` (0 means only the
    directory itself). Files are checked before descending, entries are visited
    in sorted order, and unreadable directories are skipped.
    """

    def search(current: Path, depth: int) -> Path | None:
        if depth > max_depth:
            return None
        try:
            entries = sorted(current.iterdir())
        except OSError:
            return None

        subdirs = []
        for entry in entries:
            try:
                if entry.is_file() and fnmatch.fnmatch(entry.name, pattern):
                    return entry
                if entry.is_dir() and entry.name not in _SKIP_DIRS:
                    subdirs.append(entry)
            except OSError:
                continue

        for subdir in subdirs:
            found = search(subdir, depth + 1)
            if found:
                return found
        return None

    return search(Path(directory), 0)


def ensure_dir(path: Path | str) -> Path:
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
