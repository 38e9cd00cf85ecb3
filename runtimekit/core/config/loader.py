"""
project.yml → ProjectConfig → RuntimeContext.

The file is optional: without one, runtimekit works on the current
directory with default settings.  When a file is found (or named with
``--config``) it must parse and validate, otherwise ``ConfigError``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from runtimekit.core.context import RuntimeContext
from runtimekit.core.models.project import ProjectConfig

logger = logging.getLogger(__name__)

PROJECT_CONFIG_FILE = "project.yml"

# Sections that may sit beside a "project:" identity block
_TOP_LEVEL_SECTIONS = ("version", "packages", "settings")


class ConfigError(Exception):
    """project.yml is missing where required, unreadable or invalid."""


def find_project_file(start_dir: Path | None = None, max_levels: int = 20) -> Path | None:
    """Nearest project.yml at or above ``start_dir`` (default: cwd)."""
    directory = (start_dir or Path.cwd()).resolve()
    for candidate_dir in [directory, *directory.parents][:max_levels]:
        candidate = candidate_dir / PROJECT_CONFIG_FILE
        if candidate.is_file():
            return candidate
    return None


def _read_mapping(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def _flatten(data: dict[str, Any]) -> dict[str, Any]:
    """Accept both a flat file and one with a ``project:`` identity block."""
    identity = data.get("project")
    if not isinstance(identity, dict):
        return data
    flat = dict(identity)
    for key in _TOP_LEVEL_SECTIONS:
        if key in data:
            flat.setdefault(key, data[key])
    return flat


def load_project(path: Path | None = None) -> ProjectConfig:
    """Parse and validate project.yml.

    Args:
        path: File to load; searched upward from the cwd when omitted.

    Raises:
        ConfigError: no file, unreadable file, bad YAML or failed validation.
    """
    path = path or find_project_file()
    if path is None:
        raise ConfigError(f"No {PROJECT_CONFIG_FILE} found. Create one, or pass --config.")
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading %s", path)
    try:
        project = ProjectConfig.model_validate(_flatten(_read_mapping(path)))
    except ValidationError as e:
        raise ConfigError(f"Invalid project configuration in {path}: {e}") from e

    logger.info(
        "Loaded project '%s' (%d runtimes, %d services, %d extra dependencies)",
        project.name,
        len(project.packages.runtimes),
        len(project.packages.services),
        len(project.packages.dependencies),
    )
    return project


def load_context(config_path: Path | None = None, start_dir: Path | None = None) -> RuntimeContext:
    """RuntimeContext for this process.

    An explicit ``config_path`` must exist.  Otherwise the nearest
    project.yml above ``start_dir`` is used, and without one the context
    covers ``start_dir`` (or the cwd) with default settings.
    """
    path = Path(config_path) if config_path is not None else find_project_file(start_dir)
    if path is None:
        root = (start_dir or Path.cwd()).resolve()
        logger.debug("No %s above %s, using defaults", PROJECT_CONFIG_FILE, root)
        return RuntimeContext.for_directory(root)
    return RuntimeContext.from_project(load_project(path), path.parent)
