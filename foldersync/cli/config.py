"""
CLI config command — show the resolved configuration and its problems.

Usage:
    foldersync config [--json]
"""

from __future__ import annotations

import click


@click.command("config")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show_config(ctx: click.Context, as_json: bool) -> None:
    """Show resolved configuration and check it."""
    from ..config.validator import ConfigValidator

    config = ctx.obj["config"]
    results = ConfigValidator(config).validate_all()

    if as_json:
        import json
        payload = config.to_dict()
        payload["checks"] = {name: status.to_dict() for name, status in results.items()}
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo("\n📋 Folder Sync Configuration\n")
    click.echo(f"  Source:   {config.source}{' (default)' if config.source_defaulted else ''}")
    click.echo(f"  Replica:  {config.replica}{' (default)' if config.replica_defaulted else ''}")
    click.echo(f"  Interval: {config.interval_seconds:g}s")
    click.echo(f"  Log file: {config.log_file}{' (default)' if config.log_file_defaulted else ''}")

    for note in config.fallbacks:
        click.secho(f"  ⚠ {note}", fg="yellow")

    click.echo("\n🔎 Checks\n")
    problems = []
    for name, status in results.items():
        if status.ok:
            click.secho(f"  ✓ {name}", fg="green", nl=False)
            click.echo(f" — {status.message}")
        else:
            problems.append(status)
            click.secho(f"  ✗ {name}", fg="red", nl=False)
            click.echo(f" — {status.message}")

    click.echo()
    click.secho(f"Summary: {len(results) - len(problems)} ok, {len(problems)} with problems", bold=True)

    if problems:
        click.echo("\n📖 How to fix:\n")
        for status in problems:
            if status.guidance:
                click.echo(f"  {status.check}:")
                click.echo(f"    → {status.guidance}")
