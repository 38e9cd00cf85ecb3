"""
Mock adapter — in-memory ecosystem for tests and dry runs.

Holds declared packages and registry entries in dictionaries and never
touches a process or the network.  Failures are configured per package
name (``failing_*`` for reported failures, ``crashing`` for unexpected
exceptions); every call is counted so tests can assert on caching.
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from pathlib import Path

from runtimekit.adapters.base import EcosystemAdapter
from runtimekit.core.errors import (
    ManifestReadError,
    OperationError,
    PackageNotFoundError,
    RegistryUnavailableError,
)
from runtimekit.core.models.package import (
    Ecosystem,
    InstallResult,
    PackageRecord,
    RegistryInfo,
    SearchResult,
)
from runtimekit.core.services.versioning import clean_version


class MockEcosystemAdapter(EcosystemAdapter):
    """Configurable in-memory adapter.

    Example::

        mock = MockEcosystemAdapter(Ecosystem.NODEJS)
        mock.add_installed("express", "4.18.0", constraint="^4.18.0")
        mock.add_registry("express", "5.0.0", dependencies={"debug": "^4"})
    """

    def __init__(
        self,
        ecosystem: Ecosystem = Ecosystem.NODEJS,
        project_root: Path | str = ".",
        available: bool = True,
        latency: float = 0.0,
    ):
        super().__init__(Path(project_root))
        self.ecosystem = ecosystem
        self._available = available
        self.latency = latency
        self.installed: dict[str, PackageRecord] = {}
        self.registry: dict[str, RegistryInfo] = {}
        self.unavailable: set[str] = set()
        self.failing_installs: set[str] = set()
        self.failing_removes: set[str] = set()
        self.crashing: dict[str, Exception] = {}
        self.manifest_error: str | None = None
        self.calls: Counter[str] = Counter()
        self._lock = threading.Lock()

    # ── Configuration ───────────────────────────────────────────

    def add_installed(
        self,
        name: str,
        version: str | None,
        constraint: str | None = None,
        dev: bool = False,
    ) -> None:
        self.installed[name] = self._record(
            name, version, declared_constraint=constraint or version, dev=dev
        )

    def add_registry(
        self,
        name: str,
        latest: str,
        description: str | None = None,
        dependencies: dict[str, str] | None = None,
        downloads: int | None = None,
    ) -> None:
        self.registry[name] = RegistryInfo(
            name=name,
            latest_version=latest,
            description=description,
            downloads=downloads,
            versions=[latest],
            dependencies=dependencies or {},
        )

    def _count(self, op: str) -> None:
        with self._lock:
            self.calls[op] += 1
        if self.latency:
            time.sleep(self.latency)

    # ── Capabilities ────────────────────────────────────────────

    def is_available(self) -> bool:
        return self._available

    def has_manifest(self) -> bool:
        return bool(self.installed)

    def list_installed(self) -> list[PackageRecord]:
        self._count("list_installed")
        if self.manifest_error:
            raise ManifestReadError(str(self.project_root), self.manifest_error)
        return list(self.installed.values())

    def query_registry(self, name: str) -> RegistryInfo:
        self._count("query_registry")
        if name in self.unavailable:
            raise RegistryUnavailableError(self.name, name, "mock registry unavailable")
        info = self.registry.get(name)
        if info is None:
            raise PackageNotFoundError(self.name, name)
        return info

    def search(self, query: str, limit: int = 20) -> list[SearchResult]:
        self._count("search")
        if query in self.unavailable:
            raise RegistryUnavailableError(self.name, query, "mock registry unavailable")
        q = query.lower()
        hits = [
            info for name, info in self.registry.items()
            if q in name.lower() or q in (info.description or "").lower()
        ]
        return [self._to_search_result(info) for info in hits[:limit]]

    def install(
        self,
        name: str,
        version_constraint: str | None = None,
        *,
        dev: bool = False,
    ) -> InstallResult:
        self._count("install")
        if name in self.crashing:
            raise self.crashing[name]
        if name in self.failing_installs:
            return InstallResult.failure(
                f"mock install of {name} failed",
                package=self._record(name, declared_constraint=version_constraint, dev=dev),
            )
        version = clean_version(version_constraint)
        if not version and name in self.registry:
            version = self.registry[name].latest_version
        self.add_installed(name, version or None, constraint=version_constraint, dev=dev)
        return InstallResult.ok(self.installed[name])

    def remove(self, name: str, *, force: bool = False) -> bool:
        self._count("remove")
        if name in self.crashing:
            raise self.crashing[name]
        if name in self.failing_removes:
            raise OperationError(f"mock remove of {name} failed")
        if name not in self.installed:
            return bool(force)
        del self.installed[name]
        return True
