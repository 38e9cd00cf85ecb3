"""
Runtime/service catalog — static metadata as a search and status contributor.

The catalog knows which runtimes (nodejs, python, go), service templates
(postgresql, redis, …) and tools exist.  Runtime status probes the
runtime's version command; service status only reports whether a template
exists, since service processes are managed elsewhere.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from runtimekit.adapters.shell.command import ProcessRunner
from runtimekit.core.data import DataRegistry
from runtimekit.core.errors import UnknownEcosystemError
from runtimekit.core.models.package import (
    Ecosystem,
    RuntimeStatus,
    SearchResult,
    ServiceStatus,
)
from runtimekit.core.models.project import ServiceDecl
from runtimekit.core.services.versioning import clean_version

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"(\d+(?:\.\d+)+)")


class Catalog(Protocol):
    def search(self, query: str) -> list[SearchResult]: ...

    def runtime_status(self, declared: dict[str, str]) -> list[RuntimeStatus]: ...

    def service_status(self, declared: list[ServiceDecl]) -> list[ServiceStatus]: ...

    def is_service(self, name: str) -> bool: ...

    def is_runtime(self, name: str) -> bool: ...


def _matches(entry: dict, q: str) -> bool:
    haystack = [entry.get("name", ""), entry.get("description", ""), entry.get("category", "")]
    haystack.extend(entry.get("aliases") or [])
    return any(q in (s or "").lower() for s in haystack)


def version_satisfies(detected: str | None, wanted: str | None) -> bool:
    """Does ``detected`` (``20.11.1``) match the declared prefix (``20``)?"""
    if not detected:
        return False
    prefix = clean_version(wanted)
    if not prefix or prefix in ("latest", "*", "x"):
        return True
    want = [p for p in prefix.split(".") if p not in ("x", "*")]
    have = clean_version(detected).split(".")
    return have[: len(want)] == want


class StaticCatalog:
    """Catalog backed by the JSON files in ``runtimekit.core.data``."""

    def __init__(self, data: DataRegistry | None = None, runner: ProcessRunner | None = None):
        self.data = data or DataRegistry()
        self.runner = runner or ProcessRunner()

    # ── Lookup ──────────────────────────────────────────────────

    def _runtime(self, name: str) -> dict | None:
        try:
            eco = Ecosystem.parse(name).value
        except UnknownEcosystemError:
            eco = name.lower()
        for entry in self.data.runtimes:
            if entry.get("ecosystem") == eco or entry["name"] == eco:
                return entry
        return None

    def _service(self, name: str) -> dict | None:
        n = name.lower()
        for entry in self.data.services:
            if entry["name"] == n or n in (entry.get("aliases") or []):
                return entry
        return None

    def is_runtime(self, name: str) -> bool:
        return self._runtime(name) is not None

    def is_service(self, name: str) -> bool:
        return self._service(name) is not None

    # ── Search ──────────────────────────────────────────────────

    def search(self, query: str) -> list[SearchResult]:
        q = query.strip().lower()
        if not q:
            return []
        results: list[SearchResult] = []
        for entry in self.data.runtimes:
            if _matches(entry, q):
                results.append(SearchResult(
                    name=entry["name"],
                    type="runtime",
                    ecosystem=Ecosystem.parse(entry["ecosystem"]),
                    description=entry.get("description"),
                    category=entry.get("category", "runtime"),
                    homepage=entry.get("homepage"),
                ))
        for entry in self.data.services:
            if _matches(entry, q):
                results.append(SearchResult(
                    name=entry["name"],
                    type="service",
                    version=entry.get("version"),
                    description=entry.get("description"),
                    category=entry.get("category"),
                ))
        for entry in self.data.tools:
            if _matches(entry, q):
                eco = entry.get("ecosystem")
                results.append(SearchResult(
                    name=entry["name"],
                    type="tool",
                    ecosystem=Ecosystem.parse(eco) if eco else None,
                    description=entry.get("description"),
                    category=entry.get("category"),
                ))
        return results

    # ── Status ──────────────────────────────────────────────────

    def _detect_version(self, entry: dict) -> str | None:
        command = entry.get("command")
        if not command or self.runner.which(command) is None:
            return None
        result = self.runner.execute(command, entry.get("version_args") or ["--version"], timeout=10)
        if not result.ok:
            logger.debug("%s version probe failed: %s", command, result.error)
            return None
        # "v20.11.1", "Python 3.12.8", "go version go1.22.0 linux/amd64"
        match = _VERSION_RE.search(result.stdout + result.stderr)
        return match.group(1) if match else None

    def _detect_manager(self, entry: dict) -> str | None:
        for manager in entry.get("managers") or []:
            if self.runner.which(manager):
                return manager
        return None

    def runtime_status(self, declared: dict[str, str]) -> list[RuntimeStatus]:
        statuses = []
        for name, wanted in declared.items():
            entry = self._runtime(name)
            if entry is None:
                logger.warning("Unknown runtime in project.yml: %s", name)
                statuses.append(RuntimeStatus(name=name, version=str(wanted)))
                continue
            detected = self._detect_version(entry)
            statuses.append(RuntimeStatus(
                name=entry["name"],
                version=str(wanted),
                installed=detected is not None,
                active=version_satisfies(detected, str(wanted)),
                detected_version=detected,
                manager=self._detect_manager(entry),
            ))
        return statuses

    def service_status(self, declared: list[ServiceDecl]) -> list[ServiceStatus]:
        statuses = []
        for decl in declared:
            entry = self._service(decl.template or decl.name)
            statuses.append(ServiceStatus(
                name=decl.name,
                version=decl.version,
                template=entry["name"] if entry else None,
                known=entry is not None,
            ))
        return statuses
