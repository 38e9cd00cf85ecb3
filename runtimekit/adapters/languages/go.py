"""
Go adapter — module requirements from ``go.mod`` and the module proxy.

Registry data comes from the ``go`` tool itself (``go list -m -json``,
``go mod download -json``) so GOPROXY and GOPRIVATE settings apply.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from runtimekit.adapters.base import EcosystemAdapter, parse_timestamp
from runtimekit.adapters.shell.filesystem import read_text_lines
from runtimekit.core.errors import PackageNotFoundError, RegistryUnavailableError
from runtimekit.core.models.package import (
    Ecosystem,
    InstallResult,
    PackageRecord,
    RegistryInfo,
)
from runtimekit.core.services.versioning import clean_version

logger = logging.getLogger(__name__)

_REQUIRE_LINE_RE = re.compile(r"^(\S+)\s+(v\S+)(\s*//\s*indirect)?$")


def parse_go_mod(lines: list[str]) -> list[tuple[str, str, bool]]:
    """``require`` entries of a go.mod as (module, version, indirect)."""
    requires: list[tuple[str, str, bool]] = []
    in_block = False
    for raw in lines:
        line = raw.strip()
        if in_block:
            if line == ")":
                in_block = False
                continue
            entry = line
        elif line.startswith("require ("):
            in_block = True
            continue
        elif line.startswith("require "):
            entry = line[len("require "):].strip()
        else:
            continue
        match = _REQUIRE_LINE_RE.match(entry)
        if match:
            requires.append((match.group(1), match.group(2), bool(match.group(3))))
    return requires


class GoAdapter(EcosystemAdapter):
    """Go modules adapter."""

    ecosystem = Ecosystem.GO
    cli = "go"
    manifest_files = ("go.mod",)

    def _requires(self) -> list[tuple[str, str, bool]]:
        lines = read_text_lines(self.project_root / "go.mod")
        return parse_go_mod(lines) if lines else []

    def list_installed(self) -> list[PackageRecord]:
        # go.mod pins exact versions, so declared and installed coincide
        return [
            self._record(module, version, declared_constraint=version, dev=indirect)
            for module, version, indirect in self._requires()
        ]

    def query_registry(self, name: str) -> RegistryInfo:
        result = self._run(["list", "-m", "-json", "-versions", f"{name}@latest"], timeout=60)
        if not result.ok:
            if "not found" in result.stderr or "no matching versions" in result.stderr:
                raise PackageNotFoundError(self.name, name)
            raise RegistryUnavailableError(self.name, name, result.error)
        data = self._decode(result.stdout, name)

        latest = data.get("Version")
        if not latest:
            raise PackageNotFoundError(self.name, name)

        origin = data.get("Origin") or {}
        return RegistryInfo(
            name=data.get("Path", name),
            latest_version=latest,
            repository=origin.get("URL"),
            homepage=f"https://pkg.go.dev/{name}",
            last_updated=parse_timestamp(data.get("Time")),
            versions=list(data.get("Versions") or []),
        )

    def dependency_info(self, name: str) -> RegistryInfo:
        info = self.query_registry(name)
        data = self._run_json(
            ["mod", "download", "-json", f"{name}@{info.latest_version}"],
            package=name,
            timeout=120,
        )
        go_mod = (data or {}).get("GoMod")
        if not go_mod:
            return info
        lines = read_text_lines(Path(go_mod))
        deps = {
            module: version
            for module, version, indirect in parse_go_mod(lines or [])
            if not indirect
        }
        return info.model_copy(update={"dependencies": deps})

    def _decode(self, stdout: str, name: str) -> dict:
        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise RegistryUnavailableError(self.name, name, f"invalid JSON output: {e}") from e
        if not isinstance(data, dict):
            raise RegistryUnavailableError(self.name, name, "unexpected output shape")
        return data

    def install(
        self,
        name: str,
        version_constraint: str | None = None,
        *,
        dev: bool = False,
    ) -> InstallResult:
        version = clean_version(version_constraint)
        spec = f"{name}@v{version}" if version and version[0].isdigit() else f"{name}@{version or 'latest'}"

        logger.info("Installing %s with go get", spec)
        result = self._run(["get", spec], timeout=300)
        installed = None
        if result.ok:
            installed = next((v for m, v, _ in self._requires() if m == name), None)
        return self._install_result(result, name, version_constraint, installed, dev=dev)

    def remove(self, name: str, *, force: bool = False) -> bool:
        if name not in {m for m, _, _ in self._requires()} and not force:
            logger.info("%s is not required in go.mod, nothing to remove", name)
            return False

        logger.info("Removing %s from go.mod", name)
        self._require_ok(self._run(["mod", "edit", f"-droprequire={name}"], timeout=30), "go mod edit")
        self._require_ok(self._run(["mod", "tidy"], timeout=300), "go mod tidy")
        return True
