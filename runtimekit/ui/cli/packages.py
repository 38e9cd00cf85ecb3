"""
CLI commands for package management.

Thin wrappers over ``runtimekit.core.services.package_manager``.
"""

from __future__ import annotations

import json
import sys
from typing import Any

import click

from runtimekit.core.errors import RuntimekitError, UnknownEcosystemError
from runtimekit.core.models.package import DependencyNode, Ecosystem, SearchOptions
from runtimekit.core.services.package_manager import PackageManager


def get_manager(ctx: click.Context) -> PackageManager:
    """The process-wide PackageManager, built on first use.

    Tests inject one through ``obj={"manager": ...}``.
    """
    root = ctx.find_root()
    obj = root.ensure_object(dict)
    manager = obj.get("manager")
    if manager is not None:
        return manager

    from runtimekit.core.config.loader import ConfigError, load_context

    try:
        context = load_context(config_path=obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    manager = PackageManager(context)
    obj["manager"] = manager
    root.call_on_close(manager.cleanup)
    return manager


def _dump(data: Any) -> None:
    if isinstance(data, list):
        payload = [item.model_dump(mode="json") for item in data]
    else:
        payload = data.model_dump(mode="json")
    click.echo(json.dumps(payload, indent=2))


def _fail(message: str) -> None:
    click.secho(f"❌ {message}", fg="red")
    sys.exit(1)


@click.group()
def packages() -> None:
    """Packages — status, search, add, install, remove, outdated, update, tree."""


# ── Observe ─────────────────────────────────────────────────────


@packages.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show runtimes, services and dependencies of the project."""
    result = get_manager(ctx).get_package_status()

    if as_json:
        _dump(result)
        return

    if result.runtimes:
        click.secho("⚙️  Runtimes:", fg="cyan", bold=True)
        for rt in result.runtimes:
            icon = "✅" if rt.active else ("⚠️" if rt.installed else "❌")
            detected = rt.detected_version or "not installed"
            manager = f" via {rt.manager}" if rt.manager else ""
            click.echo(f"   {icon} {rt.name:<10} wants {rt.version:<8} has {detected}{manager}")
        click.echo()

    if result.services:
        click.secho("🗄️  Services:", fg="cyan", bold=True)
        for svc in result.services:
            icon = "✅" if svc.known else "❓"
            click.echo(f"   {icon} {svc.name:<14} {svc.version}")
        click.echo()

    if result.dependencies:
        click.secho(f"📦 Dependencies ({len(result.dependencies)}):", fg="cyan", bold=True)
        for rec in result.dependencies:
            installed = rec.installed_version or "not installed"
            dev = " (dev)" if rec.dev else ""
            click.echo(f"   {rec.name:<30} {installed:<14} [{rec.ecosystem.value}]{dev}")
        click.echo()
    elif not result.runtimes and not result.services:
        click.secho("⚠️  No packages detected", fg="yellow")

    for eco, message in result.errors.items():
        click.secho(f"   ⚠️  {eco}: {message}", fg="yellow")


@packages.command()
@click.argument("query")
@click.option(
    "--type", "pkg_type",
    type=click.Choice(["runtime", "service", "dependency", "tool"]),
    default=None,
    help="Only this kind of result.",
)
@click.option("--category", default=None, help="Only this category (database, cache, …).")
@click.option("--runtime", "-r", default=None, help="Only this ecosystem's registry.")
@click.option("--limit", "-n", default=20, show_default=True, type=click.IntRange(min=1))
@click.option(
    "--sort",
    "sort_by",
    type=click.Choice(["relevance", "downloads", "updated", "name"]),
    default="relevance",
    show_default=True,
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    pkg_type: str | None,
    category: str | None,
    runtime: str | None,
    limit: int,
    sort_by: str,
    as_json: bool,
) -> None:
    """Search runtimes, services and package registries."""
    try:
        options = SearchOptions(
            type=pkg_type,
            category=category,
            runtime_ecosystem=Ecosystem.parse(runtime) if runtime else None,
            limit=limit,
            sort_by=sort_by,
        )
    except UnknownEcosystemError as e:
        _fail(str(e))
        return

    results = get_manager(ctx).search_packages(query, options)

    if as_json:
        _dump(results)
        return

    if not results:
        click.secho(f"No results for '{query}'", fg="yellow")
        return

    click.secho(f"🔎 {len(results)} result(s) for '{query}':", fg="cyan", bold=True)
    for r in results:
        eco = f" [{r.ecosystem.value}]" if r.ecosystem else ""
        version = f" {r.version}" if r.version else ""
        click.echo(f"   {r.name}{version}  ({r.type}{eco}, score {r.score:.0f})")
        if r.description:
            click.echo(f"      {r.description[:100]}")


@packages.command()
@click.argument("name", required=False)
@click.option("--runtime", "-r", default=None, help="Ecosystem (default: all).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def outdated(ctx: click.Context, name: str | None, runtime: str | None, as_json: bool) -> None:
    """Check for outdated packages."""
    try:
        candidates = get_manager(ctx).check_for_updates(name, runtime=runtime)
    except UnknownEcosystemError as e:
        _fail(str(e))
        return

    if as_json:
        _dump(candidates)
        return

    if not candidates:
        click.secho("✅ All packages up to date", fg="green")
        return

    click.secho(f"📦 Outdated ({len(candidates)}):", fg="yellow", bold=True)
    for c in candidates:
        flag = "  ⚠️ breaking" if c.breaking else ""
        click.echo(
            f"   {c.name:<30} {c.current_version:<12} → {c.latest_version:<12}"
            f" [{c.ecosystem.value}]{flag}"
        )
    click.echo()


def _print_tree(node: DependencyNode) -> None:
    for depth, n in node.walk():
        indent = "   " + "  " * depth
        prefix = "└─ " if depth else ""
        click.echo(f"{indent}{prefix}{n.name}@{n.version}")


@packages.command()
@click.argument("name", required=False)
@click.option("--runtime", "-r", default=None, help="Ecosystem (default: auto-detect).")
@click.option("--depth", "max_depth", default=None, type=click.IntRange(min=1), help="Maximum depth.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def tree(
    ctx: click.Context,
    name: str | None,
    runtime: str | None,
    max_depth: int | None,
    as_json: bool,
) -> None:
    """Show the dependency tree of a package or of the project."""
    try:
        root = get_manager(ctx).get_dependency_tree(name, runtime=runtime, max_depth=max_depth)
    except RuntimekitError as e:
        _fail(str(e))
        return

    if as_json:
        _dump(root)
        return
    _print_tree(root)


@packages.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def stats(ctx: click.Context, as_json: bool) -> None:
    """Show cache statistics for this process."""
    result = get_manager(ctx).get_stats()
    if as_json:
        payload = result.model_dump(mode="json")
        payload["hit_rate"] = result.hit_rate
        click.echo(json.dumps(payload, indent=2))
        return
    click.echo(f"   Requests: {result.total_requests}")
    click.echo(f"   Hits:     {result.cache_hits}")
    click.echo(f"   Misses:   {result.cache_misses}")
    click.echo(f"   Hit rate: {result.hit_rate:.0%}")


# ── Act ─────────────────────────────────────────────────────────


@packages.command()
@click.argument("name")
@click.option("--runtime", "-r", default=None, help="Ecosystem (default: auto-detect).")
@click.option("--version", "version", default=None, help="Version or constraint.")
@click.option("--dev", "-D", is_flag=True, help="Add as a development dependency.")
@click.pass_context
def add(ctx: click.Context, name: str, runtime: str | None, version: str | None, dev: bool) -> None:
    """Install a package (NAME or NAME@VERSION)."""
    try:
        result = get_manager(ctx).add_package(name, runtime=runtime, version=version, dev=dev)
    except UnknownEcosystemError as e:
        _fail(str(e))
        return

    if not result.success:
        _fail(result.error or f"Failed to add {name}")
        return

    pkg = result.package
    installed = f"@{pkg.installed_version}" if pkg and pkg.installed_version else ""
    eco = f" ({pkg.ecosystem.value})" if pkg else ""
    click.secho(f"✅ Added {pkg.name if pkg else name}{installed}{eco}", fg="green")


@packages.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(ctx: click.Context, as_json: bool) -> None:
    """Install every declared dependency of the project."""
    results = get_manager(ctx).install_all()
    failed = [r for r in results if not r.success]

    if as_json:
        _dump(results)
        sys.exit(1 if failed else 0)
        return

    if not results:
        click.secho("⚠️  No declared dependencies", fg="yellow")
        return

    for r in results:
        pkg = r.package
        label = f"{pkg.name} ({pkg.ecosystem.value})" if pkg else "?"
        if r.success:
            version = f"@{pkg.installed_version}" if pkg and pkg.installed_version else ""
            click.secho(f"   ✅ {label}{version}", fg="green")
        else:
            click.secho(f"   ❌ {label}: {r.error}", fg="red")

    click.echo(f"\n   {len(results) - len(failed)}/{len(results)} installed")
    if failed:
        sys.exit(1)


@packages.command()
@click.argument("name")
@click.option("--runtime", "-r", default=None, help="Ecosystem (default: wherever it is installed).")
@click.option("--force", "-f", is_flag=True, help="Remove even if not declared.")
@click.pass_context
def remove(ctx: click.Context, name: str, runtime: str | None, force: bool) -> None:
    """Remove a package."""
    try:
        removed = get_manager(ctx).remove_package(name, runtime=runtime, force=force)
    except UnknownEcosystemError as e:
        _fail(str(e))
        return

    if removed:
        click.secho(f"✅ Removed {name}", fg="green")
    else:
        click.secho(f"⚠️  {name} was not removed (not installed?)", fg="yellow")
        sys.exit(1)


@packages.command()
@click.argument("name", required=False)
@click.option("--latest", is_flag=True, help="Allow moving to the latest major version.")
@click.option("--force", "-f", is_flag=True, help="Apply breaking updates (with --latest).")
@click.option("--dry-run", is_flag=True, help="Show what would be updated.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def update(
    ctx: click.Context,
    name: str | None,
    latest: bool,
    force: bool,
    dry_run: bool,
    as_json: bool,
) -> None:
    """Update packages (non-breaking only unless --latest --force)."""
    report = get_manager(ctx).update_packages(name, latest=latest, force=force, dry_run=dry_run)

    if as_json:
        _dump(report)
        sys.exit(0 if report.ok else 1)
        return

    if not (report.updated or report.skipped or report.failed):
        click.secho("✅ Nothing to update", fg="green")
        return

    verb = "Would update" if dry_run else "Updated"
    for c in report.updated:
        click.secho(f"   ✅ {verb} {c.name} {c.current_version} → {c.latest_version}", fg="green")
    for s in report.skipped:
        c = s.candidate
        click.secho(
            f"   ⏭️  Skipped {c.name} {c.current_version} → {c.latest_version}: {s.reason}",
            fg="yellow",
        )
    for f in report.failed:
        click.secho(f"   ❌ {f.name}: {f.error}", fg="red")

    if not report.ok:
        sys.exit(1)
