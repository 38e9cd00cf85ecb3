"""
Node.js adapter — npm/yarn/pnpm dependencies and the npm registry.

Declared state comes from ``package.json``; installed versions from
``node_modules/<name>/package.json`` (no process needed).  Registry
metadata comes from ``npm view --json`` and search from
``npm search --json``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from runtimekit.adapters.base import EcosystemAdapter, clean_repository_url, parse_timestamp
from runtimekit.adapters.shell.filesystem import read_json
from runtimekit.core.errors import ManifestReadError, PackageNotFoundError, RegistryUnavailableError
from runtimekit.core.models.package import (
    Ecosystem,
    InstallResult,
    PackageRecord,
    RegistryInfo,
    SearchResult,
)
from runtimekit.core.services.versioning import clean_version

logger = logging.getLogger(__name__)

_DEP_SECTIONS = (("dependencies", False), ("devDependencies", True))


class NodeAdapter(EcosystemAdapter):
    """Node.js ecosystem adapter.

    The package manager (npm, yarn, pnpm) is picked from the lock file
    present in the project root; npm is the fallback and is always used
    for registry queries.
    """

    ecosystem = Ecosystem.NODEJS
    cli = "npm"
    manifest_files = ("package.json",)

    def _detect_package_manager(self) -> str:
        """Auto-detect the package manager from lock files."""
        if (self.project_root / "pnpm-lock.yaml").exists():
            return "pnpm"
        if (self.project_root / "yarn.lock").exists():
            return "yarn"
        return "npm"

    def _manifest(self) -> dict[str, Any] | None:
        return read_json(self.project_root / "package.json")

    def _installed_version(self, name: str) -> str | None:
        path = self.project_root / "node_modules" / Path(*name.split("/")) / "package.json"
        try:
            data = read_json(path)
        except ManifestReadError:
            logger.debug("Ignoring unreadable installed manifest for %s", name)
            return None
        return data.get("version") if data else None

    def _declared(self) -> dict[str, tuple[str, bool]]:
        manifest = self._manifest()
        if manifest is None:
            return {}
        declared: dict[str, tuple[str, bool]] = {}
        for section, dev in _DEP_SECTIONS:
            deps = manifest.get(section) or {}
            if not isinstance(deps, dict):
                raise ManifestReadError(
                    str(self.project_root / "package.json"),
                    f"'{section}' must be an object",
                )
            for name, constraint in deps.items():
                declared.setdefault(name, (str(constraint), dev))
        return declared

    # ── Capabilities ────────────────────────────────────────────

    def list_installed(self) -> list[PackageRecord]:
        return [
            self._record(
                name,
                self._installed_version(name),
                declared_constraint=constraint,
                dev=dev,
            )
            for name, (constraint, dev) in self._declared().items()
        ]

    def query_registry(self, name: str) -> RegistryInfo:
        result = self._run(["view", name, "--json"], timeout=30)
        if not result.ok:
            if "E404" in result.stderr or "404" in result.stderr:
                raise PackageNotFoundError(self.name, name)
            raise RegistryUnavailableError(self.name, name, result.error)
        data = self._parse_view(result.stdout, name)

        latest = (data.get("dist-tags") or {}).get("latest") or data.get("version")
        if not latest:
            raise RegistryUnavailableError(self.name, name, "no version in registry response")

        versions = data.get("versions") or []
        if isinstance(versions, str):
            versions = [versions]

        return RegistryInfo(
            name=data.get("name", name),
            latest_version=latest,
            description=data.get("description"),
            repository=clean_repository_url(data.get("repository")),
            homepage=data.get("homepage"),
            last_updated=parse_timestamp((data.get("time") or {}).get("modified")),
            versions=list(versions),
            dependencies=dict(data.get("dependencies") or {}),
        )

    def _parse_view(self, stdout: str, name: str) -> dict[str, Any]:
        try:
            data = json.loads(stdout) if stdout.strip() else None
        except json.JSONDecodeError as e:
            raise RegistryUnavailableError(self.name, name, f"invalid JSON output: {e}") from e
        # A version range query returns a list of manifests; keep the newest
        if isinstance(data, list):
            data = data[-1] if data else None
        if not isinstance(data, dict):
            raise PackageNotFoundError(self.name, name)
        return data

    def search(self, query: str, limit: int = 20) -> list[SearchResult]:
        data = self._run_json(
            ["search", "--json", f"--searchlimit={limit}", query],
            package=query,
            timeout=30,
        )
        results = []
        for item in data or []:
            links = item.get("links") or {}
            results.append(
                SearchResult(
                    name=item.get("name", ""),
                    type="dependency",
                    ecosystem=self.ecosystem,
                    version=item.get("version"),
                    description=item.get("description"),
                    category="library",
                    last_updated=parse_timestamp(item.get("date")),
                    repository=clean_repository_url(links.get("repository")),
                    homepage=links.get("homepage"),
                )
            )
        return results

    def install(
        self,
        name: str,
        version_constraint: str | None = None,
        *,
        dev: bool = False,
    ) -> InstallResult:
        pm = self._detect_package_manager()
        spec = f"{name}@{version_constraint}" if version_constraint else name
        args = ["install", spec] if pm == "npm" else ["add", spec]
        if dev:
            args.append("--save-dev" if pm == "npm" else "--dev")

        logger.info("Installing %s with %s", spec, pm)
        result = self.runner.execute(pm, args, cwd=self.project_root, timeout=300)
        installed = self._installed_version(name) if result.ok else None
        return self._install_result(
            result,
            name,
            version_constraint,
            installed or clean_version(version_constraint) or None,
            dev=dev,
        )

    def remove(self, name: str, *, force: bool = False) -> bool:
        if name not in self._declared() and not force:
            logger.info("%s is not declared in package.json, nothing to remove", name)
            return False

        pm = self._detect_package_manager()
        args = ["uninstall", name] if pm == "npm" else ["remove", name]
        logger.info("Removing %s with %s", name, pm)
        result = self.runner.execute(pm, args, cwd=self.project_root, timeout=120)
        self._require_ok(result, f"{pm} {' '.join(args)}")
        return True
