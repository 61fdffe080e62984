"""
declarative-alpine — CLI entrypoint.

Usage:
    python -m declarative_alpine.main --help
    declarative-alpine diff -c config.toml
    declarative-alpine apply -c config.toml --dry-run
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any

import click

from declarative_alpine import __version__
from declarative_alpine.core.config.loader import DEFAULT_CONFIG_FILE
from declarative_alpine.core.observability.logging_config import setup_logging

_config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="Desired-state document.",
)


@click.group()
@click.version_option(version=__version__, prog_name="declarative-alpine")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool) -> None:
    """declarative-alpine — converge this host toward config.toml."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("DALP_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("DALP_LOG_FILE"),
        log_file_level=os.environ.get("DALP_LOG_FILE_LEVEL"),
        syslog=os.environ.get("DALP_SYSLOG") == "1",
    )


# ── Output helpers ──────────────────────────────────────────────


def echo_diff(domain: str, diff: Any) -> None:
    """Print one domain's diff."""
    data = diff.to_dict()
    click.secho(f"\n🔍 {domain}", fg="cyan", bold=True)

    if diff.is_empty:
        click.echo("   (in sync)")
        return

    if domain == "packages":
        for atom in data["to_install"]:
            click.secho(f"   + {atom}", fg="green")
        for atom in data["to_remove"]:
            click.secho(f"   - {atom}", fg="red")
        return

    for user in data["to_add"]:
        groups = ",".join(user["groups"]) or "-"
        click.secho(f"   + {user['username']}", fg="green", nl=False)
        click.echo(f"  home={user['home']} shell={user['shell']} groups={groups}")
    for user in data["to_update"]:
        groups = ",".join(user["groups"]) or "-"
        click.secho(f"   ~ {user['username']}", fg="yellow", nl=False)
        reassert = "  (password reasserted)" if user["password"] else ""
        click.echo(f"  home={user['home']} shell={user['shell']} groups={groups}{reassert}")
    for name in data["to_remove"]:
        click.secho(f"   - {name}", fg="red")


def _fail(error: str, failed_domain: str | None) -> None:
    where = f" ({failed_domain})" if failed_domain else ""
    click.secho(f"❌ {error}{where}", fg="red", err=True)
    sys.exit(1)


# ── Verbs ───────────────────────────────────────────────────────


@cli.command()
@_config_option
@click.option("--dry-run", is_flag=True, help="Show what would change, change nothing.")
@click.pass_context
def apply(ctx: click.Context, config_path: Path, dry_run: bool) -> None:
    """Reconcile the host toward the desired state."""
    from declarative_alpine.core.use_cases.reconcile import run_apply

    result = run_apply(config_path=config_path, dry_run=dry_run, report=echo_diff)

    quiet = ctx.obj.get("quiet", False)
    if not quiet:
        for report in result.reports:
            if report.result is None or not report.result.changed:
                continue
            label = "Planned" if dry_run else "Applied"
            click.secho(f"\n   {label} {report.domain}:", fg="white", bold=True)
            for change in report.result.changes:
                click.echo(f"     {change}")
            if ctx.obj.get("verbose"):
                for backup in report.result.backups:
                    click.echo(f"     💾 {backup}")

    if result.error:
        _fail(result.error, result.failed_domain)

    click.echo()
    if dry_run:
        click.secho("   [dry-run] nothing was changed", fg="yellow")
    else:
        click.secho("✅ Host converged", fg="green", bold=True)


@cli.command()
@_config_option
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def diff(config_path: Path, as_json: bool) -> None:
    """Show what apply would change."""
    from declarative_alpine.core.use_cases.reconcile import run_diff

    result = run_diff(config_path=config_path)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    for report in result.reports:
        echo_diff(report.domain, report.diff)

    if result.error:
        _fail(result.error, result.failed_domain)

    click.echo()


if __name__ == "__main__":
    cli()
