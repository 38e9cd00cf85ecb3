"""
Package manager — the orchestrator and sole public entry point.

Combines the ecosystem adapters, the result cache, the dependency tree
builder, the search aggregator and the runtime/service catalog behind
one object, constructed once per process from a ``RuntimeContext``.

Cache keys::

    status                    aggregated PackageStatus      (status TTL)
    installed:<eco>           adapter.list_installed()      (status TTL)
    registry:<eco>:<name>     adapter.query_registry()      (registry TTL)
    deps:<eco>:<name>         adapter.dependency_info()     (registry TTL)
    search:<eco>:<limit>:<q>  adapter.search()              (registry TTL)
    catalog:search:<q>        catalog.search()              (process lifetime)
    updates:<eco>:<name>      check_for_updates()           (status TTL)

Every mutation (add, remove, update, install) drops the entries it can affect,
so a read right after a write never sees stale state.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, TypeVar

from runtimekit.adapters.base import EcosystemAdapter
from runtimekit.adapters.registry import AdapterRegistry, default_registry
from runtimekit.adapters.shell.command import ProcessRunner
from runtimekit.core.context import RuntimeContext
from runtimekit.core.errors import (
    ManifestReadError,
    OperationError,
    RegistryUnavailableError,
    RuntimekitError,
    UnknownEcosystemError,
)
from runtimekit.core.models.package import (
    DependencyNode,
    Ecosystem,
    FailedUpdate,
    InstallResult,
    PackageRecord,
    PackageStatus,
    RegistryInfo,
    SearchOptions,
    SearchResult,
    SkippedUpdate,
    Stats,
    UpdateCandidate,
    UpdateReport,
)
from runtimekit.core.services.catalog import Catalog, StaticCatalog
from runtimekit.core.services.dependency_tree import DependencyTreeBuilder
from runtimekit.core.services.detection import primary_ecosystem
from runtimekit.core.services.result_cache import ResultCache
from runtimekit.core.services.search import SearchAggregator, SearchSource
from runtimekit.core.services.versioning import clean_version, is_breaking, is_newer

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROJECT_ROOT_VERSION = "local"


def split_spec(spec: str) -> tuple[str, str | None]:
    """Split ``name@version`` (or ``name==version``) into its parts.

    A leading ``@`` belongs to an npm scope: ``@types/node@20`` →
    ``("@types/node", "20")``.
    """
    spec = spec.strip()
    if "==" in spec:
        name, _, version = spec.partition("==")
        return name.strip(), version.strip() or None
    at = spec.rfind("@")
    if at > 0:
        return spec[:at], spec[at + 1:] or None
    return spec, None


def _as_operation_error(exc: Exception) -> RuntimekitError:
    """Keep runtimekit errors as they are; wrap anything else."""
    if isinstance(exc, RuntimekitError):
        return exc
    error = OperationError(f"Unexpected {type(exc).__name__}: {exc}")
    error.__cause__ = exc
    return error


class PackageManager:
    """Cross-ecosystem package operations with caching.

    Args:
        context:  Project root, settings and declared runtimes/services.
        registry: Adapters by ecosystem; the built-in set when omitted.
        catalog:  Runtime/service catalog; the static JSON catalog when omitted.
        cache:    Result cache; a fresh one when omitted.
        runner:   Process runner shared by the default adapters and catalog.
    """

    def __init__(
        self,
        context: RuntimeContext,
        *,
        registry: AdapterRegistry | None = None,
        catalog: Catalog | None = None,
        cache: ResultCache | None = None,
        runner: ProcessRunner | None = None,
    ):
        self.context = context
        self.settings = context.settings
        self.runner = runner or ProcessRunner()
        self.registry = registry or default_registry(context.project_root, self.runner)
        self.catalog = catalog or StaticCatalog(runner=self.runner)
        self.cache = cache or ResultCache()
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    # ── Resources ───────────────────────────────────────────────

    @property
    def executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.settings.max_workers,
                    thread_name_prefix="runtimekit",
                )
            return self._executor

    def cleanup(self) -> None:
        """Drop cached entries and stop the worker pool. Idempotent."""
        self.cache.clear()
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
        self.registry.close()
        logger.debug("Package manager cleaned up")

    def __enter__(self) -> PackageManager:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.cleanup()

    def _fan_out(self, fn: Callable[..., T], items: list[Any]) -> list[Future]:
        """Submit ``fn(item)`` for every item; futures in item order."""
        pool = self.executor
        return [pool.submit(fn, item) for item in items]

    # ── Cached primitives ───────────────────────────────────────

    def _installed(self, eco: Ecosystem) -> list[PackageRecord]:
        adapter = self.registry.get(eco)
        return self.cache.get_or_compute(
            f"installed:{eco.value}", self.settings.status_ttl, adapter.list_installed
        )

    def _registry_info(self, eco: Ecosystem, name: str) -> RegistryInfo:
        adapter = self.registry.get(eco)
        return self.cache.get_or_compute(
            f"registry:{eco.value}:{name}",
            self.settings.registry_ttl,
            lambda: adapter.query_registry(name),
        )

    def _dependency_info(self, eco: Ecosystem, name: str) -> RegistryInfo:
        adapter = self.registry.get(eco)
        return self.cache.get_or_compute(
            f"deps:{eco.value}:{name}",
            self.settings.registry_ttl,
            lambda: adapter.dependency_info(name),
        )

    def _installed_or_empty(self, eco: Ecosystem) -> list[PackageRecord]:
        try:
            return self._installed(eco)
        except ManifestReadError as e:
            logger.warning("%s", e)
            return []

    def _declared_names(self, eco: Ecosystem) -> list[str]:
        return [r.name for r in self._installed_or_empty(eco)]

    def _invalidate(self, eco: Ecosystem, name: str) -> None:
        self.cache.invalidate("status")
        self.cache.invalidate(f"installed:{eco.value}")
        self.cache.invalidate(f"registry:{eco.value}:{name}")
        self.cache.invalidate(f"deps:{eco.value}:{name}")
        self.cache.invalidate_prefix("updates:")

    def _invalidate_ecosystem(self, eco: Ecosystem) -> None:
        self.cache.invalidate("status")
        self.cache.invalidate(f"installed:{eco.value}")
        self.cache.invalidate_prefix(f"registry:{eco.value}:")
        self.cache.invalidate_prefix(f"deps:{eco.value}:")
        self.cache.invalidate_prefix("updates:")

    def _resolve_ecosystem(self, runtime: str | Ecosystem | None) -> Ecosystem | None:
        """Ecosystem for an explicit runtime, or detected from the project.

        Raises:
            UnknownEcosystemError: ``runtime`` is given but unknown.
        """
        if runtime:
            return self.registry.get(runtime).ecosystem
        detected = primary_ecosystem(
            self.context.project_root,
            self.settings.detection,
            declared=self._declared_names,
        )
        if detected is not None and detected in self.registry:
            return detected
        with_manifest = [a.ecosystem for a in self.registry if a.has_manifest()]
        if len(with_manifest) == 1:
            return with_manifest[0]
        adapters = list(self.registry)
        return adapters[0].ecosystem if len(adapters) == 1 else None

    # ═══════════════════════════════════════════════════════════════
    #  Status
    # ═══════════════════════════════════════════════════════════════

    def get_package_status(self) -> PackageStatus:
        """Runtimes, services and dependencies of the project.

        One adapter failing (malformed manifest, unexpected error) is
        recorded under ``errors`` and the others still report.  The
        returned object is a copy; changing it leaves the cache intact.
        """
        status = self.cache.get_or_compute("status", self.settings.status_ttl, self._compute_status)
        return status.model_copy(deep=True)

    def _compute_status(self) -> PackageStatus:
        adapters = list(self.registry)
        listed = self._fan_out(lambda a: self._installed(a.ecosystem), adapters)
        packages = self.context.packages
        runtimes = self.executor.submit(self.catalog.runtime_status, packages.runtimes)

        status = PackageStatus()
        for adapter, future in zip(adapters, listed):
            try:
                status.dependencies.extend(future.result())
            except ManifestReadError as e:
                logger.warning("%s", e)
                status.errors[adapter.name] = str(e)
            except Exception as e:
                logger.warning("Listing %s packages failed: %s", adapter.name, e)
                status.errors[adapter.name] = f"{type(e).__name__}: {e}"

        self._merge_declared(status)

        try:
            status.runtimes = runtimes.result()
        except Exception as e:
            logger.warning("Runtime status failed: %s", e)
            status.errors["runtimes"] = str(e)
        status.services = self.catalog.service_status(packages.services)
        return status

    def _merge_declared(self, status: PackageStatus) -> None:
        """Add project.yml dependencies that no native manifest lists."""
        for decl in self.context.packages.dependencies:
            try:
                eco = self._resolve_ecosystem(decl.runtime)
            except UnknownEcosystemError as e:
                status.errors[f"project.yml:{decl.name}"] = str(e)
                continue
            if eco is None or status.find(decl.name, eco) is not None:
                continue
            status.dependencies.append(PackageRecord(
                name=decl.name,
                ecosystem=eco,
                declared_constraint=decl.version,
                dev=decl.dev,
            ))

    # ═══════════════════════════════════════════════════════════════
    #  Add / remove
    # ═══════════════════════════════════════════════════════════════

    def add_package(
        self,
        name: str,
        *,
        runtime: str | Ecosystem | None = None,
        version: str | None = None,
        dev: bool = False,
    ) -> InstallResult:
        """Install a package and invalidate the state it affects.

        Failures come back as ``InstallResult(success=False)``; only an
        unknown ``runtime`` raises.
        """
        pkg_name, spec_version = split_spec(name)
        version = version or spec_version
        if not pkg_name:
            return InstallResult.failure("Package name is required")

        if runtime is None and self.catalog.is_service(pkg_name):
            return InstallResult.failure(
                f"'{pkg_name}' is a service; declare it under packages.services in project.yml"
            )
        if runtime is None and self.catalog.is_runtime(pkg_name):
            return InstallResult.failure(
                f"'{pkg_name}' is a runtime; declare it under packages.runtimes in project.yml"
            )

        eco = self._resolve_ecosystem(runtime)
        if eco is None:
            return InstallResult.failure(
                f"Cannot detect the ecosystem for '{pkg_name}'; pass a runtime "
                f"({', '.join(self.registry.list_adapters())})"
            )

        adapter = self.registry.get(eco)
        logger.info("Adding %s%s to %s", pkg_name, f"@{version}" if version else "", eco.value)
        result = self._install_isolated(adapter, pkg_name, version, dev)
        if result.success:
            self._invalidate(eco, pkg_name)
        else:
            logger.warning("Adding %s failed: %s", pkg_name, result.error)
        return result

    def remove_package(
        self,
        name: str,
        *,
        runtime: str | Ecosystem | None = None,
        force: bool = False,
    ) -> bool:
        """Remove a package; True when anything was removed."""
        pkg_name, _ = split_spec(name)

        if runtime:
            ecosystems = [self.registry.get(runtime).ecosystem]
        else:
            ecosystems = [
                a.ecosystem for a in self.registry
                if any(r.name == pkg_name for r in self._installed_or_empty(a.ecosystem))
            ]
            if not ecosystems and force:
                detected = self._resolve_ecosystem(None)
                ecosystems = [detected] if detected else []
            if not ecosystems:
                logger.info("%s is not installed in any ecosystem", pkg_name)
                return False

        removed = False
        for eco in ecosystems:
            adapter = self.registry.get(eco)
            try:
                done = adapter.remove(pkg_name, force=force)
            except Exception as e:
                error = _as_operation_error(e)
                logger.error(
                    "Removing %s from %s failed: %s", pkg_name, eco.value, error,
                    exc_info=error is not e,
                )
                continue
            if done:
                logger.info("Removed %s from %s", pkg_name, eco.value)
                self._invalidate(eco, pkg_name)
                removed = True
        return removed

    # ═══════════════════════════════════════════════════════════════
    #  Updates and installs
    # ═══════════════════════════════════════════════════════════════

    def check_for_updates(
        self,
        name: str | None = None,
        *,
        runtime: str | Ecosystem | None = None,
    ) -> list[UpdateCandidate]:
        """Installed packages with a newer registry version.

        Registry lookups run concurrently; a package whose lookup fails
        is logged and left out.  Sorted by ``(ecosystem, name)``.
        """
        eco = self.registry.get(runtime).ecosystem if runtime else None
        key = f"updates:{eco.value if eco else '*'}:{name or '*'}"
        candidates = self.cache.get_or_compute(
            key, self.settings.status_ttl, lambda: self._compute_updates(name, eco)
        )
        return [c.model_copy() for c in candidates]

    def _update_targets(self, name: str | None, eco: Ecosystem | None) -> list[PackageRecord]:
        adapters: list[EcosystemAdapter] = [self.registry.get(eco)] if eco else list(self.registry)
        targets = []
        for adapter in adapters:
            for record in self._installed_or_empty(adapter.ecosystem):
                if name is not None and record.name != name:
                    continue
                if not record.installed_version:
                    continue
                targets.append(record)
        return targets

    def _compute_updates(self, name: str | None, eco: Ecosystem | None) -> list[UpdateCandidate]:
        targets = self._update_targets(name, eco)
        if not targets:
            if name:
                logger.info("%s is not installed", name)
            return []

        lookups = self._fan_out(lambda r: self._registry_info(r.ecosystem, r.name), targets)
        candidates = []
        for record, future in zip(targets, lookups):
            try:
                info = future.result()
            except RegistryUnavailableError as e:
                logger.warning("Skipping update check for %s: %s", record.name, e)
                continue
            except Exception as e:
                logger.warning("Update check for %s failed: %s", record.name, e)
                continue

            current = record.installed_version or ""
            if not is_newer(info.latest_version, current):
                continue
            candidates.append(UpdateCandidate(
                name=record.name,
                ecosystem=record.ecosystem,
                current_version=current,
                latest_version=info.latest_version,
                breaking=is_breaking(current, info.latest_version),
                description=info.description,
            ))

        candidates.sort(key=lambda c: (c.ecosystem.value, c.name))
        return candidates

    def update_packages(
        self,
        name: str | None = None,
        *,
        latest: bool = False,
        force: bool = False,
        dry_run: bool = False,
    ) -> UpdateReport:
        """Apply available updates.

        Non-breaking updates are installed at the latest version.  A
        breaking update is installed only with both ``latest`` and
        ``force``; otherwise it is reported under ``skipped``.
        """
        report = UpdateReport(dry_run=dry_run)
        candidates = self.check_for_updates(name)
        dev_flags = {r.identity: r.dev for r in self._update_targets(name, None)}

        for candidate in candidates:
            if candidate.breaking and not (latest and force):
                reason = (
                    "breaking update; pass force to apply"
                    if latest
                    else "breaking update; pass latest and force to apply"
                )
                logger.info(
                    "Skipping %s %s → %s: %s",
                    candidate.name, candidate.current_version, candidate.latest_version, reason,
                )
                report.skipped.append(SkippedUpdate(candidate=candidate, reason=reason))
                continue

            if dry_run:
                report.updated.append(candidate)
                continue

            adapter = self.registry.get(candidate.ecosystem)
            dev = dev_flags.get((candidate.ecosystem.value, candidate.name), False)
            result = self._install_isolated(adapter, candidate.name, candidate.latest_version, dev)

            if result.success:
                logger.info(
                    "Updated %s %s → %s",
                    candidate.name, candidate.current_version, candidate.latest_version,
                )
                report.updated.append(candidate)
                self._invalidate(candidate.ecosystem, candidate.name)
            else:
                report.failed.append(FailedUpdate(
                    name=candidate.name,
                    ecosystem=candidate.ecosystem,
                    error=result.error or "install failed",
                ))
        return report

    def _install_isolated(
        self,
        adapter: EcosystemAdapter,
        name: str,
        version: str | None,
        dev: bool,
    ) -> InstallResult:
        """``adapter.install`` with any exception turned into a failed result."""
        try:
            return adapter.install(name, version, dev=dev)
        except Exception as e:
            error = _as_operation_error(e)
            logger.error(
                "Installing %s with %s failed: %s", name, adapter.name, error,
                exc_info=error is not e,
            )
            return InstallResult.failure(
                str(error),
                package=PackageRecord(
                    name=name, ecosystem=adapter.ecosystem, declared_constraint=version, dev=dev
                ),
            )

    def install_all(self) -> list[InstallResult]:
        """Install every declared dependency of the project.

        Declared packages come from each adapter's manifests plus the
        ``packages.dependencies`` of project.yml.  Ecosystems install in
        parallel, packages within one ecosystem one after another.  A
        failing package is reported in its result and the rest go on.
        Results are in registry order, then declaration order.
        """
        plan = self._install_plan()
        if not plan:
            logger.info("No declared dependencies to install")
            return []

        def install_group(item: tuple[Ecosystem, list[PackageRecord]]) -> list[InstallResult]:
            eco, records = item
            adapter = self.registry.get(eco)
            logger.info("Installing %d %s package(s)", len(records), eco.value)
            return [
                self._install_isolated(adapter, r.name, r.declared_constraint, r.dev)
                for r in records
            ]

        results: list[InstallResult] = []
        for future in self._fan_out(install_group, list(plan.items())):
            results.extend(future.result())

        for eco in plan:
            self._invalidate_ecosystem(eco)
        ok = sum(1 for r in results if r.success)
        logger.info("Installed %d/%d package(s)", ok, len(results))
        return results

    def _install_plan(self) -> dict[Ecosystem, list[PackageRecord]]:
        """Declared packages per ecosystem, manifests first."""
        plan = {a.ecosystem: list(self._installed_or_empty(a.ecosystem)) for a in self.registry}

        for decl in self.context.packages.dependencies:
            try:
                eco = self._resolve_ecosystem(decl.runtime)
            except UnknownEcosystemError as e:
                logger.warning("Skipping %s from project.yml: %s", decl.name, e)
                continue
            if eco is None:
                logger.warning("Skipping %s from project.yml: cannot detect its ecosystem", decl.name)
                continue
            if any(r.name == decl.name for r in plan[eco]):
                continue
            plan[eco].append(PackageRecord(
                name=decl.name,
                ecosystem=eco,
                declared_constraint=decl.version,
                dev=decl.dev,
            ))

        return {eco: records for eco, records in plan.items() if records}

    # ═══════════════════════════════════════════════════════════════
    #  Search
    # ═══════════════════════════════════════════════════════════════

    def _search_sources(self) -> list[SearchSource]:
        def catalog_fetch(query: str, limit: int) -> list[SearchResult]:
            return self.cache.get_or_compute(
                f"catalog:search:{query.strip().lower()}", None, lambda: self.catalog.search(query)
            )

        def adapter_fetch(adapter: EcosystemAdapter) -> Callable[[str, int], list[SearchResult]]:
            def fetch(query: str, limit: int) -> list[SearchResult]:
                return self.cache.get_or_compute(
                    f"search:{adapter.name}:{limit}:{query.strip().lower()}",
                    self.settings.registry_ttl,
                    lambda: adapter.search(query, limit),
                )
            return fetch

        sources = [SearchSource("catalog", catalog_fetch, types=("runtime", "service", "tool"))]
        for adapter in self.registry:
            sources.append(SearchSource(
                adapter.name,
                adapter_fetch(adapter),
                types=("dependency",),
                ecosystem=adapter.ecosystem,
            ))
        return sources

    def search_packages(self, query: str, options: SearchOptions | None = None) -> list[SearchResult]:
        """Search the catalog and every registry; see ``SearchAggregator``."""
        aggregator = SearchAggregator(
            self._search_sources(),
            max_workers=self.settings.max_workers,
            executor=self.executor,
        )
        return aggregator.search(query, options)

    # ═══════════════════════════════════════════════════════════════
    #  Dependency tree
    # ═══════════════════════════════════════════════════════════════

    def get_dependency_tree(
        self,
        name: str | None = None,
        *,
        runtime: str | Ecosystem | None = None,
        max_depth: int | None = None,
    ) -> DependencyNode:
        """Dependency tree of one package, or of the whole project.

        Without ``name`` the root is the project (version ``local``) and
        its children are the declared packages of the selected ecosystem,
        at their installed versions.

        Raises:
            CyclicDependencyError: the registry metadata contains a cycle.
            RegistryUnavailableError: ``name`` cannot be resolved.
            OperationError: no ecosystem can be determined.
        """
        limit = max_depth if max_depth is not None else self.settings.max_tree_depth
        builder = DependencyTreeBuilder(self._dependency_info, self.settings.max_tree_depth)

        if name:
            pkg_name, _ = split_spec(name)
            eco = self._ecosystem_for(pkg_name, runtime)
            return builder.build(pkg_name, eco, limit)

        eco = self._ecosystem_for(None, runtime)
        root = DependencyNode(name=self.context.project_name, version=PROJECT_ROOT_VERSION)
        for record in self._installed_or_empty(eco):
            version = record.installed_version or clean_version(record.declared_constraint) or "*"
            child = DependencyNode(name=record.name, version=version)
            if limit > 1:
                try:
                    subtree = builder.build(record.name, eco, limit - 1)
                    child = subtree.model_copy(update={"version": version})
                except RegistryUnavailableError as e:
                    logger.warning("Cannot resolve %s: %s", record.name, e)
            root.dependencies.append(child)
        return root

    def _ecosystem_for(self, name: str | None, runtime: str | Ecosystem | None) -> Ecosystem:
        if runtime:
            return self.registry.get(runtime).ecosystem
        if name:
            for adapter in self.registry:
                if any(r.name == name for r in self._installed_or_empty(adapter.ecosystem)):
                    return adapter.ecosystem
        eco = self._resolve_ecosystem(None)
        if eco is None:
            raise OperationError(
                "Cannot determine the ecosystem; pass a runtime "
                f"({', '.join(self.registry.list_adapters())})"
            )
        return eco

    # ═══════════════════════════════════════════════════════════════
    #  Stats
    # ═══════════════════════════════════════════════════════════════

    def get_stats(self) -> Stats:
        return self.cache.stats()
