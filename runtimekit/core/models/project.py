"""
Project model — what ``project.yml`` declares.

The declared runtimes and services feed status reporting; the
settings block tunes caching, fan-out and ecosystem detection.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ServiceDecl(BaseModel):
    """A service the project depends on (postgresql, redis, …)."""

    name: str
    version: str = "latest"
    template: str | None = None
    config: dict[str, object] = Field(default_factory=dict)


class DependencyDecl(BaseModel):
    """A dependency declared in project.yml rather than a native manifest."""

    name: str
    version: str | None = None
    runtime: str | None = None
    dev: bool = False


class PackagesConfig(BaseModel):
    runtimes: dict[str, str] = Field(default_factory=dict)
    services: list[ServiceDecl] = Field(default_factory=list)
    dependencies: list[DependencyDecl] = Field(default_factory=list)


class DetectionRule(BaseModel):
    """Indicator files for one ecosystem and their base confidence."""

    ecosystem: str
    files: list[str]
    confidence: float = Field(default=0.9, ge=0.0, le=1.0)


class FrameworkBonus(BaseModel):
    """Confidence bonus granted when a known framework is declared.

    Any dependency whose name contains one of ``frameworks`` triggers it.
    """

    ecosystem: str
    frameworks: list[str]
    bonus: float = Field(default=0.1, ge=0.0, le=1.0)


def _default_rules() -> list[DetectionRule]:
    return [
        DetectionRule(ecosystem="nodejs", files=["package.json"], confidence=0.9),
        DetectionRule(
            ecosystem="python",
            files=["requirements.txt", "setup.py", "pyproject.toml"],
            confidence=0.9,
        ),
        DetectionRule(ecosystem="go", files=["go.mod", "go.sum"], confidence=0.9),
    ]


def _default_bonuses() -> list[FrameworkBonus]:
    return [
        FrameworkBonus(
            ecosystem="nodejs",
            frameworks=["react", "vue", "angular", "next", "nuxt", "express", "fastify", "nest"],
            bonus=0.1,
        ),
    ]


class DetectionSettings(BaseModel):
    rules: list[DetectionRule] = Field(default_factory=_default_rules)
    bonuses: list[FrameworkBonus] = Field(default_factory=_default_bonuses)
    multi_file_bonus: float = 0.05


class Settings(BaseModel):
    """Tunables. Every field has a sensible default."""

    cache_dir: str = "~/.cache/runtimekit"
    registry_ttl: float = 300.0
    status_ttl: float = 30.0
    max_tree_depth: int = Field(default=10, ge=1)
    max_workers: int = Field(default=8, ge=1)
    detection: DetectionSettings = Field(default_factory=DetectionSettings)


class ProjectConfig(BaseModel):
    """Root of project.yml."""

    version: int = 1
    name: str
    description: str = ""
    packages: PackagesConfig = Field(default_factory=PackagesConfig)
    settings: Settings = Field(default_factory=Settings)
