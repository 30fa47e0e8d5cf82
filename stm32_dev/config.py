"""Project configuration for stm32-dev."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    try:
        import tomli as tomllib  # type: ignore[no-redef]
    except ImportError:
        tomllib = None  # type: ignore[assignment]

CONFIG_FILE = "stm32dev.toml"


@dataclass
class BuildConfig:
    profile: str = "O2"
    system: str = "makefile"


@dataclass
class FlashConfig:
    auto_flash: bool = False
    programmer: str = "auto"


@dataclass
class ToolsConfig:
    gcc_path: str = ""
    openocd_path: str = ""

    def overrides(self) -> dict[str, str]:
        """Tool key -> configured path, for the toolchain detector."""
        return {k: v for k, v in (("gcc", self.gcc_path), ("openocd", self.openocd_path)) if v}


@dataclass
class SvdConfig:
    cache_dir: str = "~/.stm32dev/svd"


@dataclass
class ProjectConfig:
    build: BuildConfig = field(default_factory=BuildConfig)
    flash: FlashConfig = field(default_factory=FlashConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    svd: SvdConfig = field(default_factory=SvdConfig)


def _read_toml(toml_path: Path) -> dict:
    if tomllib is None:
        raise ImportError("No TOML parser available (need Python 3.11+ or tomli)")
    with open(toml_path, "rb") as f:
        return tomllib.load(f)


def load_project_config(project_dir: Path | str) -> ProjectConfig:
    """Parse stm32dev.toml and return a typed ProjectConfig."""
    project_dir = Path(project_dir)
    toml_path = project_dir / CONFIG_FILE
    if not toml_path.exists():
        raise FileNotFoundError(f"{CONFIG_FILE} not found in {project_dir}")

    data = _read_toml(toml_path)
    build_data = data.get("build", {})
    flash_data = data.get("flash", {})
    tools_data = data.get("tools", {})
    svd_data = data.get("svd", {})

    return ProjectConfig(
        build=BuildConfig(
            profile=build_data.get("profile", "O2"),
            system=build_data.get("system", "makefile"),
        ),
        flash=FlashConfig(
            auto_flash=bool(flash_data.get("auto_flash", False)),
            programmer=flash_data.get("programmer", "auto"),
        ),
        tools=ToolsConfig(
            gcc_path=tools_data.get("gcc_path", ""),
            openocd_path=tools_data.get("openocd_path", ""),
        ),
        svd=SvdConfig(
            cache_dir=svd_data.get("cache_dir", "~/.stm32dev/svd"),
        ),
    )


def load_or_default(project_dir: Path | str) -> ProjectConfig:
    """Like load_project_config, but a missing file yields the defaults."""
    try:
        return load_project_config(project_dir)
    except FileNotFoundError:
        return ProjectConfig()


def get_config_value(project_dir: Path | str, key: str):
    """Dotted key lookup, e.g. 'build.profile', 'flash.auto_flash'."""
    toml_path = Path(project_dir) / CONFIG_FILE
    if not toml_path.exists() or tomllib is None:
        return None

    data = _read_toml(toml_path)
    parts = key.split(".", 1)
    if len(parts) == 2:
        section, k = parts
        return data.get(section, {}).get(k)
    return data.get(key)


def _coerce(value):
    if not isinstance(value, str):
        return value
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    try:
        return int(value)
    except ValueError:
        return value


def _format_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return str(value)


def set_config_value(project_dir: Path | str, key: str, value) -> None:
    """Write a value to stm32dev.toml using line-based editing."""
    toml_path = Path(project_dir) / CONFIG_FILE

    parts = key.split(".", 1)
    if len(parts) != 2:
        raise ValueError(f"Key must be dotted (section.key), got: {key}")
    section, k = parts
    val_str = _format_value(_coerce(value))

    lines = toml_path.read_text().splitlines(keepends=True) if toml_path.exists() else []

    section_header = f"[{section}]"
    section_idx = None
    key_idx = None
    next_section_idx = None

    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped == section_header:
            section_idx = i
        elif section_idx is not None and next_section_idx is None:
            if stripped.startswith("[") and stripped.endswith("]"):
                next_section_idx = i
            elif re.match(rf"^{re.escape(k)}\s*=", stripped):
                key_idx = i

    if key_idx is not None:
        lines[key_idx] = f"{k} = {val_str}\n"
    elif section_idx is not None:
        insert_at = next_section_idx if next_section_idx is not None else len(lines)
        if insert_at > 0 and not lines[insert_at - 1].endswith("\n"):
            lines[insert_at - 1] += "\n"
        lines.insert(insert_at, f"{k} = {val_str}\n")
    else:
        if lines and not lines[-1].endswith("\n"):
            lines[-1] += "\n"
        if lines:
            lines.append("\n")
        lines.append(f"{section_header}\n")
        lines.append(f"{k} = {val_str}\n")

    toml_path.write_text("".join(lines))


def list_config(project_dir: Path | str) -> dict:
    """Return a flat dotted-key dict of all config values."""
    toml_path = Path(project_dir) / CONFIG_FILE
    if not toml_path.exists() or tomllib is None:
        return {}

    result = {}
    for section, values in _read_toml(toml_path).items():
        if isinstance(values, dict):
            for k, v in values.items():
                result[f"{section}.{k}"] = v
        else:
            result[section] = values
    return result
