"""CLI commands for hosttop."""

import dataclasses
import json
import time
from pathlib import Path

import click

from hosttop.config import Config
from hosttop.errors import HostMetricsUnavailable
from hosttop.logging import configure
from hosttop.models import SystemSnapshot
from hosttop.source import create_source
from hosttop.system import System


def _build_system(config: Config) -> System:
    monitor = config.monitor
    return System(create_source(monitor.source, monitor.proc_root, monitor.etc_root))


@click.group(invoke_without_command=True)
@click.version_option(package_name="hosttop")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.toml.",
)
@click.pass_context
def main(ctx: click.Context, config_path: Path | None) -> None:
    """Live host CPU, memory and process monitor."""
    try:
        config = Config.load(config_path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    configure(config.logging)
    ctx.obj = config

    if ctx.invoked_subcommand is None:
        ctx.invoke(tui)


@main.command()
@click.pass_obj
def tui(config: Config) -> None:
    """Launch the interactive process table."""
    from hosttop.app import run_app

    run_app(config)


@main.command()
@click.option("--interval", default=1.0, show_default=True, help="Seconds between the two samples.")
@click.option("--limit", default=10, show_default=True, help="Number of processes to show.")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table.")
@click.pass_obj
def once(config: Config, interval: float, limit: int, as_json: bool) -> None:
    """Sample twice and print host metrics and the busiest processes."""
    system = _build_system(config)
    try:
        # The first refresh only sets the CPU baselines
        system.refresh()
        time.sleep(max(interval, 0.0))
        system.refresh()
    except HostMetricsUnavailable as e:
        raise click.ClickException(f"Host metrics unavailable: {e}") from e

    snapshot = system.snapshot()
    if limit > 0:
        snapshot = SystemSnapshot(host=snapshot.host, processes=snapshot.processes[:limit])

    if as_json:
        click.echo(json.dumps(dataclasses.asdict(snapshot), indent=2))
    else:
        click.echo(format_report(snapshot))


def format_report(snapshot: SystemSnapshot) -> str:
    """Plain-text report of one snapshot."""
    host = snapshot.host
    lines = [
        f"OS: {host.os_name}",
        f"Kernel: {host.kernel}",
        f"CPU: {host.cpu_utilization * 100:.1f}%",
        f"Memory: {host.memory_utilization * 100:.1f}%",
        f"Processes: {host.total_processes} total, {host.running_processes} running",
        f"Uptime: {int(host.uptime)}s",
        "",
        f"{'PID':>7} {'USER':<10} {'CPU%':>6} {'RAM[MB]':>8} {'TIME+':>8}  COMMAND",
    ]
    for proc in snapshot.processes:
        lines.append(
            f"{proc.pid:>7} {proc.user[:10]:<10} {proc.cpu_utilization * 100:>6.1f} "
            f"{proc.ram:>8} {proc.uptime:>8}  {proc.command[:60]}"
        )
    return "\n".join(lines)


@main.group("config")
def config_group() -> None:
    """Configuration management."""
    pass


@config_group.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
@click.pass_obj
def config_init(config: Config, force: bool) -> None:
    """Write a config file with default values."""
    root = click.get_current_context().find_root()
    path = root.params.get("config_path") or config.config_path
    if path.exists() and not force:
        raise click.ClickException(f"Config already exists at {path} (use --force)")
    Config().save(path)
    click.echo(f"Created config at {path}")


if __name__ == "__main__":
    main()
