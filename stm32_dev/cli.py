"""CLI entry point for stm32-dev."""

import json as jsonmod
import logging
from pathlib import Path

import click

from stm32_dev.build import BUILD_SYSTEMS, detect_build_system, list_profiles
from stm32_dev.config import CONFIG_FILE, get_config_value, list_config, set_config_value
from stm32_dev.errors import ErrorKind, Stm32Error
from stm32_dev.ports import list_serial_ports
from stm32_dev.programmer import ProgrammerKind
from stm32_dev.session import Session

_PROGRAMMER_CHOICES = ["auto"] + [k.value for k in ProgrammerKind if k is not ProgrammerKind.UNKNOWN]


def _session(project_dir: Path) -> Session:
    try:
        return Session.from_config(project_dir)
    except ValueError as e:
        _fail(_config_error(e), use_json=False)


def _config_error(error: ValueError) -> Stm32Error:
    # tomllib.TOMLDecodeError is a ValueError.
    return Stm32Error(ErrorKind.INVALID_PROJECT, f"Invalid {CONFIG_FILE}: {error}")


def _fail(error: Stm32Error, use_json: bool):
    """Report a Stm32Error on stderr and exit with its code."""
    if use_json:
        click.echo(jsonmod.dumps(error.to_dict()), err=True)
    else:
        click.echo(f"Error: {error.message}", err=True)
        if isinstance(error.details, list):
            for item in error.details:
                click.echo(f"  - {item}", err=True)
    raise SystemExit(error.exit_code)


def _build_system(project_dir: Path, system):
    return system or get_config_value(project_dir, "build.system") or detect_build_system(project_dir)


def _echo_memory(usage):
    for label, region in (("FLASH", usage.flash), ("RAM", usage.ram)):
        click.echo(f"  {label:<6} {region.used:>9} / {region.total:<9} bytes ({region.percentage:.1f}%)")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Show subprocess commands and detection details.")
def main(verbose):
    """Build, flash and inspect STM32 firmware projects."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def doctor(use_json):
    """Check your environment for STM32 development."""
    session = _session(Path.cwd())
    snapshot = session.toolchain.detect()
    validation = session.toolchain.validate()
    programmer = session.programmers.detect()

    if use_json:
        click.echo(jsonmod.dumps({
            "ok": validation.all_satisfied,
            "missing": validation.missing,
            "toolchain": snapshot.to_dict(),
            "programmer": programmer.to_dict(),
        }, indent=2))
        return

    click.echo(session.toolchain.format_report())
    for name in validation.missing:
        click.echo(f"     Install {name}: {session.toolchain.install_instructions(name)}")

    if programmer.kind is ProgrammerKind.UNKNOWN:
        click.echo("[!!] No programmer detected. Is an ST-Link, J-Link or CMSIS-DAP connected?")
    else:
        version = f" {programmer.version}" if programmer.version else ""
        click.echo(f"[OK] Programmer: {programmer.kind.value}{version}")

    if validation.all_satisfied:
        click.echo("\nAll checks passed. Ready for STM32 development.")
    else:
        click.echo("\nSome checks failed. Fix the issues above.")


@main.command()
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def toolchain(use_json):
    """Show detected ARM toolchain components."""
    session = _session(Path.cwd())
    if use_json:
        click.echo(jsonmod.dumps(session.toolchain.detect().to_dict(), indent=2))
    else:
        click.echo(session.toolchain.format_report())


@main.command()
@click.option("--svd", "fetch_svd", is_flag=True, help="Also fetch the SVD debug data file.")
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def device(fetch_svd, use_json):
    """Identify the target microcontroller of this project."""
    project_dir = Path.cwd()
    session = _session(project_dir)
    found = session.devices.identify(project_dir)
    if found is None:
        _fail(Stm32Error(
            ErrorKind.INVALID_PROJECT,
            "Could not identify the target device (no .ioc, Makefile or *_FLASH.ld found).",
        ), use_json)

    if fetch_svd:
        svd_path = session.svd.get(found)
        if svd_path is None:
            click.echo(f"Warning: no SVD file available for {found.name}", err=True)
        found = found.with_svd(svd_path)

    if use_json:
        click.echo(jsonmod.dumps(found.to_dict(), indent=2))
        return
    click.echo(f"Device: {found.name}")
    click.echo(f"  Family:       {found.family}")
    click.echo(f"  Flash:        {found.flash_kb} KB")
    click.echo(f"  RAM:          {found.ram_kb} KB")
    click.echo(f"  Debug target: {found.debug_target}")
    if found.svd_path:
        click.echo(f"  SVD:          {found.svd_path}")


@main.command()
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def profiles(use_json):
    """List build profiles."""
    if use_json:
        data = [{"name": p.name, "flags": list(p.flags), "description": p.description} for p in list_profiles()]
        click.echo(jsonmod.dumps(data, indent=2))
        return
    for p in list_profiles():
        click.echo(f"  {p.name:<4} {' '.join(p.flags):<70} {p.description}")


@main.command()
@click.option("--profile", type=str, help="Build profile (O0, O1, O2, O3, Os, Og).")
@click.option("--system", type=click.Choice(BUILD_SYSTEMS), help="Build system.")
@click.option("--flash/--no-flash", "auto_flash", default=None, help="Flash after a successful build.")
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def build(profile, system, auto_flash, use_json):
    """Build the firmware."""
    project_dir = Path.cwd()
    session = _session(project_dir)
    profile = profile or session.config.build.profile
    system = _build_system(project_dir, system)
    if auto_flash is None:
        auto_flash = session.config.flash.auto_flash

    try:
        outcome = session.builder.build(project_dir, profile=profile, build_system=system)
    except Stm32Error as e:
        _fail(e, use_json)

    flash_outcome = None
    if outcome.success and auto_flash:
        flash_outcome = session.flasher.flash(project_dir)

    if use_json:
        data = outcome.to_dict()
        if flash_outcome is not None:
            data["flash"] = flash_outcome.to_dict()
        click.echo(jsonmod.dumps(data, indent=2))
    else:
        for line in outcome.warnings:
            click.echo(line)
        for line in outcome.errors:
            click.echo(line, err=True)
        if outcome.success:
            click.echo(f"Build successful in {outcome.duration_ms}ms ({profile}, {system})")
            if outcome.memory_usage:
                _echo_memory(outcome.memory_usage)
        else:
            click.echo(f"Build failed after {outcome.duration_ms}ms", err=True)
        if flash_outcome is not None:
            _echo_flash(flash_outcome)

    if not outcome.success or (flash_outcome is not None and not flash_outcome.success):
        raise SystemExit(1)


@main.command()
@click.option("--system", type=click.Choice(BUILD_SYSTEMS), help="Build system.")
def clean(system):
    """Remove build artifacts."""
    project_dir = Path.cwd()
    session = _session(project_dir)
    if session.builder.clean(project_dir, build_system=_build_system(project_dir, system)):
        click.echo("Clean complete.")
    else:
        click.echo("Warning: clean did not complete, see --verbose for details.", err=True)


def _echo_flash(outcome):
    if outcome.success:
        click.echo(f"Flash successful in {outcome.duration_ms}ms")
    else:
        click.echo(f"Error: {outcome.error}", err=True)


@main.command()
@click.option("--elf", "elf_file", type=click.Path(exists=True, dir_okay=False), help="ELF file to flash.")
@click.option("--programmer", type=click.Choice(_PROGRAMMER_CHOICES), help="Programmer (overrides detection).")
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def flash(elf_file, programmer, use_json):
    """Flash firmware to the target."""
    project_dir = Path.cwd()
    session = _session(project_dir)
    if programmer:
        session.flasher.preferred_programmer = None if programmer == "auto" else programmer

    outcome = session.flasher.flash(project_dir, elf_file)
    if use_json:
        click.echo(jsonmod.dumps(outcome.to_dict(), indent=2))
    else:
        _echo_flash(outcome)
    if not outcome.success:
        raise SystemExit(1)


@main.command()
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def connect(use_json):
    """Check that the debug probe can reach the target."""
    project_dir = Path.cwd()
    session = _session(project_dir)
    connected = session.flasher.test_connection(project_dir)
    if use_json:
        click.echo(jsonmod.dumps({"connected": connected}))
    elif connected:
        click.echo("Connected to target.")
    if not connected:
        _fail(Stm32Error(
            ErrorKind.DEVICE_NOT_CONNECTED,
            "Could not connect to the target. Check the probe, cabling and power.",
        ), use_json)


@main.command()
def disconnect():
    """Stop any running OpenOCD session."""
    session = _session(Path.cwd())
    if session.flasher.disconnect():
        click.echo("Disconnected from device.")
    else:
        click.echo("No active connections found.")


@main.command()
@click.option("--json", "use_json", is_flag=True, help="Output JSON.")
def probes(use_json):
    """Show the attached debug probe and serial ports."""
    session = _session(Path.cwd())
    programmer = session.programmers.detect()
    ports = list_serial_ports()

    if use_json:
        click.echo(jsonmod.dumps({
            "programmer": programmer.to_dict(),
            "ports": [
                {"device": p.device, "description": p.description, "hwid": p.hwid,
                 "serial_number": p.serial_number, "probe": p.probe}
                for p in ports
            ],
        }, indent=2))
        return

    if programmer.kind is ProgrammerKind.UNKNOWN:
        click.echo("No programmer detected.")
    else:
        details = [d for d in (programmer.version, programmer.serial) if d]
        suffix = f" ({', '.join(details)})" if details else ""
        click.echo(f"Programmer: {programmer.kind.value}{suffix}")
        click.echo(f"  Interface: {programmer.interface}")

    if not ports:
        click.echo("No serial ports found.")
        return
    click.echo("Serial ports:")
    for p in ports:
        label = f" ({p.probe})" if p.probe else ""
        click.echo(f"  {p.device:<25} {p.description}{label}")


@main.command("config")
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--list", "show_list", is_flag=True, help="Show all config values.")
def config_cmd(key, value, show_list):
    """Get or set stm32dev.toml configuration values."""
    project_dir = Path.cwd()

    if show_list:
        try:
            values = list_config(project_dir)
        except ValueError as e:
            _fail(_config_error(e), use_json=False)
        if not values:
            click.echo("No configuration found.")
            return
        for k, v in sorted(values.items()):
            click.echo(f"  {k} = {v}")
        return

    if key and value is not None:
        try:
            set_config_value(project_dir, key, value)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1)
        click.echo(f"Set {key} = {value}")
        return

    if key:
        try:
            val = get_config_value(project_dir, key)
        except ValueError as e:
            _fail(_config_error(e), use_json=False)
        if val is None:
            click.echo(f"{key} is not set.")
        else:
            click.echo(f"{key} = {val}")
        return

    click.echo("Usage: stm32dev config <KEY> [VALUE] or stm32dev config --list")
