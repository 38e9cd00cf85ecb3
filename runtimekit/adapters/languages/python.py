"""
Python adapter — pip dependencies and the PyPI JSON API.

Declared packages come from ``requirements.txt`` and the ``[project]``
table of ``pyproject.toml``.  Installed versions come from
``pip list --format json``; pip always runs as ``sys.executable -m pip``
so it targets the same environment as this process.

pip does not edit manifests itself, so ``install`` records the package
in ``requirements.txt`` (``requirements-dev.txt`` for dev packages) and
``remove`` drops it again.  Packages declared in ``pyproject.toml`` are
left to their owner.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from pathlib import Path
from typing import Any

import httpx

from runtimekit.adapters.base import EcosystemAdapter, parse_timestamp
from runtimekit.adapters.shell.command import ProcessResult, ProcessRunner
from runtimekit.adapters.shell.filesystem import (
    read_raw_lines,
    read_text_lines,
    read_toml,
    write_lines,
)
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
)
from runtimekit.core.services.versioning import clean_version

logger = logging.getLogger(__name__)

PYPI_URL = "https://pypi.org/pypi"

# name, optional [extras], rest (constraint and markers)
_REQ_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)\s*(\[[^\]]*\])?\s*(.*)$")


def canonical_name(name: str) -> str:
    """PEP 503 normalized project name."""
    return re.sub(r"[-_.]+", "-", name).lower()


def parse_requirement(line: str) -> tuple[str, str | None] | None:
    """Split a PEP 508 requirement into (name, constraint).

    Environment markers are dropped.  Options (``-r``, ``-e``,
    ``--index-url``) and direct URLs return ``None``.
    """
    line = line.split(";", 1)[0].strip()
    if not line or line.startswith("-") or "://" in line:
        return None
    match = _REQ_RE.match(line)
    if not match:
        return None
    name, _extras, rest = match.groups()
    rest = rest.strip().strip("()").strip()
    return name, rest or None


class PythonAdapter(EcosystemAdapter):
    """Python ecosystem adapter (pip + PyPI).

    Args:
        project_root: Directory holding the manifests.
        runner:       Process runner used for pip.
        client:       ``httpx.Client`` used for PyPI lookups; one is
                      created lazily when omitted.
        index_url:    Base URL of a PyPI-compatible JSON API.
    """

    ecosystem = Ecosystem.PYTHON
    cli = "pip"
    manifest_files = ("requirements.txt", "pyproject.toml")
    requirement_files = ("requirements.txt", "requirements-dev.txt")

    def __init__(
        self,
        project_root: Path,
        runner: ProcessRunner | None = None,
        client: httpx.Client | None = None,
        index_url: str = PYPI_URL,
        timeout: float = 30.0,
    ):
        super().__init__(project_root, runner)
        self._client = client
        self._owns_client = client is None
        self.index_url = index_url.rstrip("/")
        self.timeout = timeout

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, follow_redirects=True)
        return self._client

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def _pip(self, *args: str, timeout: int | None = None) -> ProcessResult:
        """Run pip in the current interpreter's environment."""
        return self.runner.execute(
            sys.executable, ["-m", "pip", *args], cwd=self.project_root, timeout=timeout
        )

    def is_available(self) -> bool:
        return self._pip("--version", timeout=15).ok

    # ── Manifests ───────────────────────────────────────────────

    def _declared(self) -> dict[str, tuple[str | None, bool]]:
        declared: dict[str, tuple[str | None, bool]] = {}

        for line in read_text_lines(self.project_root / "requirements.txt") or []:
            parsed = parse_requirement(line)
            if parsed:
                declared.setdefault(parsed[0], (parsed[1], False))

        for line in read_text_lines(self.project_root / "requirements-dev.txt") or []:
            parsed = parse_requirement(line)
            if parsed:
                declared.setdefault(parsed[0], (parsed[1], True))

        for name, constraint, dev in self._pyproject_requirements():
            declared.setdefault(name, (constraint, dev))
        return declared

    def _pyproject_requirements(self) -> list[tuple[str, str | None, bool]]:
        project = (read_toml(self.project_root / "pyproject.toml") or {}).get("project") or {}
        groups = [(project.get("dependencies") or [], False)]
        groups += [(reqs or [], True) for reqs in (project.get("optional-dependencies") or {}).values()]

        requirements = []
        for reqs, dev in groups:
            for req in reqs:
                parsed = parse_requirement(str(req))
                if parsed:
                    requirements.append((parsed[0], parsed[1], dev))
        return requirements

    def _save_requirement(self, name: str, requirement: str, dev: bool) -> None:
        """Declare ``requirement`` in a requirements file.

        An existing line for the package is replaced when its constraint
        differs and kept otherwise.  New packages are appended to
        requirements.txt, or requirements-dev.txt when ``dev``.
        """
        canon = canonical_name(name)
        parsed = parse_requirement(requirement)
        constraint = parsed[1] if parsed else None

        for filename in self.requirement_files:
            path = self.project_root / filename
            lines = read_raw_lines(path)
            for i, line in enumerate(lines or []):
                existing = parse_requirement(line.split("#", 1)[0])
                if not existing or canonical_name(existing[0]) != canon:
                    continue
                if constraint is not None and existing[1] != constraint:
                    lines[i] = requirement
                    write_lines(path, lines)
                    logger.info("Updated %s in %s", requirement, filename)
                return

        if any(canonical_name(n) == canon for n, _, _ in self._pyproject_requirements()):
            return

        filename = self.requirement_files[1 if dev else 0]
        path = self.project_root / filename
        write_lines(path, [*(read_raw_lines(path) or []), requirement])
        logger.info("Added %s to %s", requirement, filename)

    def _drop_requirement(self, name: str) -> None:
        canon = canonical_name(name)
        for filename in self.requirement_files:
            path = self.project_root / filename
            lines = read_raw_lines(path)
            if not lines:
                continue
            kept = []
            for line in lines:
                parsed = parse_requirement(line.split("#", 1)[0])
                if not parsed or canonical_name(parsed[0]) != canon:
                    kept.append(line)
            if len(kept) != len(lines):
                write_lines(path, kept)
                logger.info("Removed %s from %s", name, filename)

    def _installed_versions(self) -> dict[str, str]:
        result = self._pip("list", "--format", "json", timeout=30)
        if not result.ok:
            logger.warning("pip list failed: %s", result.error)
            return {}
        try:
            data = json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            logger.warning("pip list returned invalid JSON")
            return {}
        return {canonical_name(p["name"]): p.get("version", "") for p in data if "name" in p}

    # ── Capabilities ────────────────────────────────────────────

    def list_installed(self) -> list[PackageRecord]:
        declared = self._declared()
        if not declared:
            return []
        installed = self._installed_versions()
        return [
            self._record(
                name,
                installed.get(canonical_name(name)),
                declared_constraint=constraint,
                dev=dev,
            )
            for name, (constraint, dev) in declared.items()
        ]

    def _fetch(self, path: str, name: str) -> dict[str, Any]:
        url = f"{self.index_url}/{path}/json"
        try:
            response = self.client.get(url)
        except httpx.HTTPError as e:
            raise RegistryUnavailableError(self.name, name, str(e)) from e
        if response.status_code == 404:
            raise PackageNotFoundError(self.name, name)
        if response.status_code >= 400:
            raise RegistryUnavailableError(self.name, name, f"HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as e:
            raise RegistryUnavailableError(self.name, name, f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise RegistryUnavailableError(self.name, name, "unexpected response shape")
        return data

    def query_registry(self, name: str) -> RegistryInfo:
        data = self._fetch(name, name)
        info = data.get("info") or {}
        latest = info.get("version")
        if not latest:
            raise RegistryUnavailableError(self.name, name, "no version in registry response")

        releases = data.get("releases") or {}
        files = releases.get(latest) or data.get("urls") or []
        uploaded = [f.get("upload_time_iso_8601") for f in files if isinstance(f, dict)]
        urls = info.get("project_urls") or {}

        return RegistryInfo(
            name=info.get("name") or name,
            latest_version=latest,
            description=info.get("summary") or None,
            repository=urls.get("Source") or urls.get("Repository") or urls.get("Homepage"),
            homepage=info.get("home_page") or urls.get("Homepage"),
            last_updated=parse_timestamp(max((u for u in uploaded if u), default=None)),
            versions=[v for v, fs in releases.items() if fs],
            dependencies=self._requires_dist(info.get("requires_dist")),
        )

    def _requires_dist(self, requires: list[str] | None) -> dict[str, str]:
        """Runtime dependencies; requirements gated on an extra are skipped."""
        deps: dict[str, str] = {}
        for req in requires or []:
            if ";" in req and "extra" in req.split(";", 1)[1]:
                continue
            parsed = parse_requirement(req)
            if parsed:
                deps.setdefault(parsed[0], parsed[1] or "*")
        return deps

    def install(
        self,
        name: str,
        version_constraint: str | None = None,
        *,
        dev: bool = False,
    ) -> InstallResult:
        if not version_constraint:
            spec = name
        elif version_constraint[0].isdigit():
            spec = f"{name}=={version_constraint}"
        else:
            spec = f"{name}{version_constraint}"

        logger.info("Installing %s with pip", spec)
        result = self._pip("install", spec, timeout=300)
        installed = None
        if result.ok:
            installed = self._installed_versions().get(canonical_name(name))
            try:
                self._save_requirement(name, spec, dev)
            except (ManifestReadError, OperationError) as e:
                logger.warning("%s is installed but not recorded: %s", name, e)
        return self._install_result(
            result,
            name,
            version_constraint,
            installed or clean_version(version_constraint) or None,
            dev=dev,
        )

    def remove(self, name: str, *, force: bool = False) -> bool:
        declared = {canonical_name(n) for n in self._declared()}
        if canonical_name(name) not in declared and not force:
            logger.info("%s is not declared in this project, nothing to remove", name)
            return False

        logger.info("Removing %s with pip", name)
        result = self._pip("uninstall", "-y", name, timeout=120)
        self._require_ok(result, f"pip uninstall {name}")
        self._drop_requirement(name)
        return True
