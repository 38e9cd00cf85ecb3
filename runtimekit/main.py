"""
runtimekit — CLI entrypoint.

Usage:
    runtimekit --help
    runtimekit packages status
    runtimekit packages search express --type dependency
    runtimekit -c path/to/project.yml packages outdated
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from runtimekit import __version__
from runtimekit.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="runtimekit")
@click.option("--verbose", "-v", is_flag=True, help="Log progress (INFO).")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option("--debug", is_flag=True, help="Log everything, including cache hits and process calls.")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="project.yml to use instead of searching upward from the cwd.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: Path | None,
) -> None:
    """runtimekit — manage runtimes, services and packages of a project."""
    obj = ctx.ensure_object(dict)
    obj.update(verbose=verbose, quiet=quiet, debug=debug, config_path=config_path)

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
        quiet_third_party=not debug,
    )


@cli.command()
@click.pass_context
def adapters(ctx: click.Context) -> None:
    """Show which ecosystem tools are available."""
    from runtimekit.ui.cli.packages import get_manager

    manager = get_manager(ctx)
    for name, info in manager.registry.adapter_status().items():
        icon = "✅" if info["available"] else "❌"
        manifest = "manifest found" if info["manifest"] else "no manifest"
        click.echo(f"   {icon} {name:<8} ({info['type']}, {manifest})")


# ── Register sub-groups ─────────────────────────────────────────

from runtimekit.ui.cli.packages import packages  # noqa: E402

cli.add_command(packages)


if __name__ == "__main__":
    cli()
