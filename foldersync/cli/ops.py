"""
CLI ops commands — service health.

Usage:
    foldersync health [--json]
"""

from __future__ import annotations

import click


@click.command("health")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def health(ctx: click.Context, as_json: bool) -> None:
    """Check service health status."""
    from ..observability.health import HealthChecker, HealthStatus

    checker = HealthChecker(ctx.obj["config"])
    result = checker.check()

    if as_json:
        import json
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        status_colors = {
            HealthStatus.HEALTHY: ("✅", "green"),
            HealthStatus.DEGRADED: ("⚠️", "yellow"),
            HealthStatus.UNHEALTHY: ("❌", "red"),
        }
        icon, color = status_colors.get(result.status, ("❓", "white"))

        click.echo()
        click.secho(f"{icon} Sync Health: {result.status.value.upper()}", fg=color, bold=True)
        click.echo()

        click.echo("Components:")
        for component in result.components:
            c_icon, c_color = status_colors.get(component.status, ("❓", "white"))
            click.echo(f"  {c_icon} ", nl=False)
            click.secho(f"{component.name}", fg=c_color, bold=True, nl=False)
            click.echo(f": {component.message}")
            if component.latency_ms:
                click.echo(f"      Latency: {component.latency_ms:.1f}ms")

        click.echo()

    # Exit code based on health
    if result.status == HealthStatus.UNHEALTHY:
        raise SystemExit(1)
