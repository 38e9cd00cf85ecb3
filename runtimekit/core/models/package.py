"""
Package models — the normalized view of every ecosystem's state.

Adapters translate npm, pip and go module state into these models.
Everything above the adapters (cache, search, trees, updates) only
ever sees these types.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field

from runtimekit.core.errors import UnknownEcosystemError


class Ecosystem(StrEnum):
    """The closed set of managed runtime families."""

    NODEJS = "nodejs"
    PYTHON = "python"
    GO = "go"

    @classmethod
    def parse(cls, value: str | Ecosystem) -> Ecosystem:
        """Resolve a tag or common alias, raising on anything unknown."""
        if isinstance(value, Ecosystem):
            return value
        key = (value or "").strip().lower()
        resolved = _ALIASES.get(key)
        if resolved is None:
            raise UnknownEcosystemError(value, [e.value for e in cls])
        return resolved


_ALIASES: dict[str, Ecosystem] = {
    "nodejs": Ecosystem.NODEJS,
    "node": Ecosystem.NODEJS,
    "npm": Ecosystem.NODEJS,
    "javascript": Ecosystem.NODEJS,
    "typescript": Ecosystem.NODEJS,
    "python": Ecosystem.PYTHON,
    "python3": Ecosystem.PYTHON,
    "py": Ecosystem.PYTHON,
    "pip": Ecosystem.PYTHON,
    "pypi": Ecosystem.PYTHON,
    "go": Ecosystem.GO,
    "golang": Ecosystem.GO,
}


PackageType = Literal["runtime", "service", "dependency", "tool"]
SortBy = Literal["relevance", "downloads", "updated", "name"]


class PackageRecord(BaseModel):
    """A declared and/or installed package in one ecosystem."""

    name: str
    ecosystem: Ecosystem
    installed_version: str | None = None
    latest_version: str | None = None
    declared_constraint: str | None = None
    dev: bool = False

    @property
    def identity(self) -> tuple[str, str]:
        return (self.ecosystem.value, self.name)


class RegistryInfo(BaseModel):
    """Registry metadata for one package."""

    name: str
    latest_version: str
    description: str | None = None
    downloads: int | None = None
    repository: str | None = None
    homepage: str | None = None
    last_updated: datetime | None = None
    versions: list[str] = Field(default_factory=list)
    # insertion-ordered: name → declared constraint
    dependencies: dict[str, str] = Field(default_factory=dict)


class SearchResult(BaseModel):
    """One ranked search hit. Produced fresh per query."""

    name: str
    type: PackageType
    ecosystem: Ecosystem | None = None
    version: str | None = None
    description: str | None = None
    category: str | None = None
    score: float = Field(default=0.0, ge=0.0, le=100.0)
    downloads: int | None = None
    last_updated: datetime | None = None
    repository: str | None = None
    homepage: str | None = None


class SearchOptions(BaseModel):
    """Filters and ordering for a search."""

    type: PackageType | None = None
    category: str | None = None
    runtime_ecosystem: Ecosystem | None = None
    limit: int = Field(default=20, ge=1)
    sort_by: SortBy = "relevance"


class UpdateCandidate(BaseModel):
    """An installed package with a newer registry version."""

    name: str
    ecosystem: Ecosystem
    current_version: str
    latest_version: str
    breaking: bool
    description: str | None = None


class SkippedUpdate(BaseModel):
    candidate: UpdateCandidate
    reason: str


class FailedUpdate(BaseModel):
    name: str
    ecosystem: Ecosystem
    error: str


class UpdateReport(BaseModel):
    """Outcome of ``update_packages``: what moved, what didn't, and why."""

    updated: list[UpdateCandidate] = Field(default_factory=list)
    skipped: list[SkippedUpdate] = Field(default_factory=list)
    failed: list[FailedUpdate] = Field(default_factory=list)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed


class DependencyNode(BaseModel):
    """A node of a dependency tree. Diamonds produce distinct nodes."""

    name: str
    version: str
    dependencies: list[DependencyNode] = Field(default_factory=list)

    def walk(self, depth: int = 0):
        """Yield ``(depth, node)`` pairs in pre-order."""
        yield depth, self
        for child in self.dependencies:
            yield from child.walk(depth + 1)

    def count(self, name: str) -> int:
        """How many times ``name`` appears in the tree."""
        return sum(1 for _, node in self.walk() if node.name == name)


class InstallResult(BaseModel):
    """Receipt of an install/add. Failures are data, not exceptions."""

    success: bool
    package: PackageRecord | None = None
    error: str | None = None

    @classmethod
    def ok(cls, package: PackageRecord) -> InstallResult:
        return cls(success=True, package=package)

    @classmethod
    def failure(cls, error: str, package: PackageRecord | None = None) -> InstallResult:
        return cls(success=False, package=package, error=error)


class Stats(BaseModel):
    """Process-lifetime cache counters."""

    cache_hits: int = 0
    cache_misses: int = 0
    total_requests: int = 0

    @property
    def hit_rate(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.cache_hits / self.total_requests


class RuntimeStatus(BaseModel):
    name: str
    version: str
    installed: bool = False
    active: bool = False
    detected_version: str | None = None
    manager: str | None = None


class ServiceStatus(BaseModel):
    name: str
    version: str = "latest"
    template: str | None = None
    known: bool = False
    running: bool = False


class PackageStatus(BaseModel):
    """Aggregate status: runtimes, services, and per-ecosystem dependencies."""

    runtimes: list[RuntimeStatus] = Field(default_factory=list)
    services: list[ServiceStatus] = Field(default_factory=list)
    dependencies: list[PackageRecord] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)

    def find(self, name: str, ecosystem: Ecosystem | None = None) -> PackageRecord | None:
        for record in self.dependencies:
            if record.name == name and (ecosystem is None or record.ecosystem == ecosystem):
                return record
        return None


DependencyNode.model_rebuild()
