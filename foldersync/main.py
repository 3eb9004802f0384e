"""
Folder Sync — CLI Entry Point

Usage:
    foldersync run [--max-passes N]
    foldersync sync
    foldersync config [--json]
    foldersync health [--json]

Global options (``--source``, ``--replica``, ``--interval``, ``--log-file``)
override the SOURCE_FOLDER, REPLICA_FOLDER, SYNC_INTERVAL_SECONDS and
LOG_FILE_PATH environment variables.
"""

from __future__ import annotations

# Load .env FIRST, before anything reads the environment
from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(usecwd=True))

from pathlib import Path
from typing import Callable, Optional

import click

from .cli.config import show_config
from .cli.ops import health
from .config.loader import SyncConfig, ensure_default_folders, load_config
from .config.validator import check_config_on_startup
from .engine.sync_pass import PassResult, run_pass
from .logging_config import setup_logging
from .observability.metrics import write_metrics_file
from .scheduler.service import SyncService


def _metrics_writer(
    metrics_file: Optional[Path],
    metrics_format: str,
) -> Optional[Callable[[PassResult], None]]:
    if metrics_file is None:
        return None

    def _write(result: PassResult) -> None:
        write_metrics_file(metrics_file, metrics_format)

    return _write


metrics_file_option = click.option(
    "--metrics-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Rewrite this file with metrics after every pass",
)
metrics_format_option = click.option(
    "--metrics-format",
    type=click.Choice(["prometheus", "json"]),
    default="prometheus",
    show_default=True,
)


@click.group()
@click.option("--source", type=click.Path(path_type=Path), default=None, help="Folder to mirror from")
@click.option("--replica", type=click.Path(path_type=Path), default=None, help="Folder to mirror to")
@click.option(
    "--interval",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds to wait between passes",
)
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Audit log file")
@click.option("--log-level", default=None, help="Console log level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--log-format", type=click.Choice(["text", "json"]), default=None, help="Console log format")
@click.pass_context
def cli(
    ctx: click.Context,
    source: Optional[Path],
    replica: Optional[Path],
    interval: Optional[float],
    log_file: Optional[Path],
    log_level: Optional[str],
    log_format: Optional[str],
) -> None:
    """Folder Sync — one-way periodic mirroring of a folder tree."""
    setup_logging(level=log_level, format_type=log_format)

    config = load_config().with_overrides(
        source=source.absolute() if source else None,
        replica=replica.absolute() if replica else None,
        interval_seconds=interval,
        log_file=log_file.absolute() if log_file else None,
    )

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


def _prepare(config: SyncConfig) -> None:
    ensure_default_folders(config)
    check_config_on_startup(config)


@cli.command()
@click.option("--max-passes", type=click.IntRange(min=1), default=None, help="Stop after N passes")
@metrics_file_option
@metrics_format_option
@click.pass_context
def run(
    ctx: click.Context,
    max_passes: Optional[int],
    metrics_file: Optional[Path],
    metrics_format: str,
) -> None:
    """Run sync passes every interval until stopped (Ctrl+C / SIGTERM)."""
    config: SyncConfig = ctx.obj["config"]
    _prepare(config)

    service = SyncService(config, on_pass=_metrics_writer(metrics_file, metrics_format))
    service.install_signal_handlers()
    results = service.run_forever(max_passes=max_passes)

    failed = sum(1 for r in results if r.outcome == "failed")
    click.echo(f"Stopped after {service.passes_run} pass(es), {failed} failed")


@cli.command()
@metrics_file_option
@metrics_format_option
@click.pass_context
def sync(ctx: click.Context, metrics_file: Optional[Path], metrics_format: str) -> None:
    """Run a single sync pass and exit."""
    config: SyncConfig = ctx.obj["config"]
    _prepare(config)

    result = run_pass(config)
    writer = _metrics_writer(metrics_file, metrics_format)
    if writer is not None:
        writer(result)

    click.echo("")
    click.echo(f"  Pass ID:  {result.pass_id}")
    click.echo(f"  Outcome:  {result.outcome}")
    click.echo(f"  Duration: {result.duration_ms}ms")
    click.echo(f"  Actions:  {result.summary()}")

    if result.outcome == "failed":
        click.secho(f"\n✗ {result.error}", fg="red", bold=True)
        raise SystemExit(1)
    if result.errors:
        click.secho(f"\n⚠ {len(result.errors)} action(s) failed, see the audit log", fg="yellow")
    else:
        click.secho("\n✓ Replica is in sync", fg="green")


cli.add_command(show_config)
cli.add_command(health)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
