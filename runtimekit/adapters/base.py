"""
Adapter base — the capability contract between the core and native tools.

The core only talks to ecosystems through this interface, never
directly to npm, pip or go.  There is exactly one concrete adapter per
``Ecosystem`` tag; the ``AdapterRegistry`` selects it.

Error contract:
    - ``list_installed`` raises ``ManifestReadError`` for a malformed
      manifest and returns ``[]`` when there is no manifest at all.
    - ``query_registry`` raises ``RegistryUnavailableError`` (or its
      ``PackageNotFoundError`` subclass).  Callers treat it as
      recoverable.
    - ``install`` never raises for tool failures: the ``InstallResult``
      carries them.
    - ``remove`` returns whether a removal happened.

Every operation that shells out is safe to retry; nothing here
retries on its own.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar

from runtimekit.adapters.shell.command import ProcessResult, ProcessRunner
from runtimekit.core.errors import OperationError, RegistryUnavailableError
from runtimekit.core.models.package import (
    Ecosystem,
    InstallResult,
    PackageRecord,
    RegistryInfo,
    SearchResult,
)


def parse_timestamp(value: Any) -> datetime | None:
    """Registry timestamps (ISO 8601, possibly with a trailing Z)."""
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def clean_repository_url(repo: Any) -> str | None:
    """Repository URL from the many shapes registries report."""
    if isinstance(repo, dict):
        repo = repo.get("url")
    if not repo or not isinstance(repo, str):
        return None
    return re.sub(r"^git\+", "", repo)


class EcosystemAdapter(ABC):
    """Abstract base class for ecosystem adapters.

    To add an ecosystem:
        1. Add its tag to ``Ecosystem``
        2. Subclass EcosystemAdapter and implement the abstract methods
        3. Register it in ``default_registry``
    """

    ecosystem: ClassVar[Ecosystem]
    cli: ClassVar[str] = ""
    manifest_files: ClassVar[tuple[str, ...]] = ()

    def __init__(self, project_root: Path, runner: ProcessRunner | None = None):
        self.project_root = Path(project_root)
        self.runner = runner or ProcessRunner()

    @property
    def name(self) -> str:
        return self.ecosystem.value

    def is_available(self) -> bool:
        """Is the native tool on PATH? Fast, never raises."""
        return bool(self.cli) and self.runner.which(self.cli) is not None

    def has_manifest(self) -> bool:
        return any((self.project_root / f).is_file() for f in self.manifest_files)

    # ── Capabilities ────────────────────────────────────────────

    @abstractmethod
    def list_installed(self) -> list[PackageRecord]:
        """Declared packages with their installed versions."""

    @abstractmethod
    def query_registry(self, name: str) -> RegistryInfo:
        """Latest version and metadata for ``name``."""

    @abstractmethod
    def install(
        self,
        name: str,
        version_constraint: str | None = None,
        *,
        dev: bool = False,
    ) -> InstallResult:
        """Install (or upgrade) a package."""

    @abstractmethod
    def remove(self, name: str, *, force: bool = False) -> bool:
        """Remove a package. False if it was never declared, unless ``force``."""

    def search(self, query: str, limit: int = 20) -> list[SearchResult]:
        """Registry search. Default: exact-name lookup."""
        try:
            info = self.query_registry(query)
        except RegistryUnavailableError:
            return []
        return [self._to_search_result(info)]

    def dependency_info(self, name: str) -> RegistryInfo:
        """Registry info with ``dependencies`` populated."""
        return self.query_registry(name)

    # ── Helpers ─────────────────────────────────────────────────

    def _run(self, args: list[str], timeout: int | None = None) -> ProcessResult:
        return self.runner.execute(self.cli, args, cwd=self.project_root, timeout=timeout)

    def _run_json(self, args: list[str], package: str, timeout: int | None = None) -> Any:
        """Run the native tool and parse its JSON stdout."""
        result = self._run(args, timeout=timeout)
        if not result.ok:
            raise RegistryUnavailableError(self.name, package, result.error)
        try:
            return json.loads(result.stdout) if result.stdout.strip() else None
        except json.JSONDecodeError as e:
            raise RegistryUnavailableError(self.name, package, f"invalid JSON output: {e}") from e

    def _record(self, name: str, version: str | None = None, **kwargs: Any) -> PackageRecord:
        return PackageRecord(name=name, ecosystem=self.ecosystem, installed_version=version, **kwargs)

    def _install_result(
        self,
        result: ProcessResult,
        name: str,
        constraint: str | None,
        installed_version: str | None = None,
        dev: bool = False,
    ) -> InstallResult:
        if not result.ok:
            return InstallResult.failure(
                f"{self.cli} failed to install {name}: {result.error}",
                package=self._record(name, declared_constraint=constraint, dev=dev),
            )
        return InstallResult.ok(
            self._record(name, installed_version, declared_constraint=constraint, dev=dev)
        )

    def _to_search_result(self, info: RegistryInfo) -> SearchResult:
        return SearchResult(
            name=info.name,
            type="dependency",
            ecosystem=self.ecosystem,
            version=info.latest_version,
            description=info.description,
            category="library",
            downloads=info.downloads,
            last_updated=info.last_updated,
            repository=info.repository,
            homepage=info.homepage,
        )

    def _require_ok(self, result: ProcessResult, what: str) -> None:
        if not result.ok:
            raise OperationError(f"{what} failed: {result.error}")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} ecosystem={self.name!r} root={str(self.project_root)!r}>"
