"""
Runtime context — "what project are we working on, and how."

Built ONCE at startup by whichever entry point launches the process
and passed explicitly into the ``PackageManager``:

    - CLI:    main.py → load_context(...) → ctx.obj
    - Tests:  RuntimeContext.for_directory(tmp_path)

There is no module-level singleton: two contexts can coexist in one
process (tests rely on this).
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from runtimekit.core.models.project import PackagesConfig, ProjectConfig, Settings


class RuntimeContext(BaseModel):
    """Immutable per-process configuration for one project."""

    model_config = ConfigDict(frozen=True)

    project_root: Path
    project_name: str
    cache_dir: Path
    settings: Settings = Field(default_factory=Settings)
    packages: PackagesConfig = Field(default_factory=PackagesConfig)

    @classmethod
    def from_project(cls, config: ProjectConfig, project_root: Path) -> RuntimeContext:
        return cls(
            project_root=project_root.resolve(),
            project_name=config.name,
            cache_dir=Path(config.settings.cache_dir).expanduser(),
            settings=config.settings,
            packages=config.packages,
        )

    @classmethod
    def for_directory(cls, root: Path, settings: Settings | None = None) -> RuntimeContext:
        """Context for a directory without a project.yml."""
        settings = settings or Settings()
        root = root.resolve()
        return cls(
            project_root=root,
            project_name=root.name or "project",
            cache_dir=Path(settings.cache_dir).expanduser(),
            settings=settings,
        )
