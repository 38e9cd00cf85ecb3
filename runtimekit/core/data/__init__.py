"""
Static catalogs bundled with runtimekit.

``catalogs/runtimes.json``, ``services.json`` and ``tools.json`` are
plain JSON arrays of objects.  Each is read on first access and kept
for the lifetime of the ``DataRegistry`` instance.

Usage::

    from runtimekit.core.data import DataRegistry

    data = DataRegistry()
    data.runtimes   # [{"name": "nodejs", "command": "node", ...}, ...]
    data.services   # [{"name": "postgresql", "ports": [5432], ...}, ...]
"""

from __future__ import annotations

import json
import logging
from functools import cached_property
from pathlib import Path

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent
CATALOG_NAMES = ("runtimes", "services", "tools")


def _load_catalog(name: str, data_dir: Path) -> list[dict]:
    path = data_dir / "catalogs" / f"{name}.json"
    if not path.is_file():
        logger.warning("Catalog not found: %s", path)
        return []
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Catalog {path} must be a JSON array, got {type(data).__name__}")
    entries = [entry for entry in data if isinstance(entry, dict) and entry.get("name")]
    if len(entries) != len(data):
        logger.warning("Ignoring %d malformed entries in %s", len(data) - len(entries), path)
    logger.debug("Loaded %d %s", len(entries), name)
    return entries


class DataRegistry:
    """Lazily loaded runtime, service and tool catalogs.

    Args:
        data_dir: Directory holding a ``catalogs/`` folder; the bundled
                  one by default.
    """

    def __init__(self, data_dir: Path | None = None):
        self._data_dir = data_dir or _DATA_DIR

    @cached_property
    def runtimes(self) -> list[dict]:
        """Runtimes with their version command and version managers."""
        return _load_catalog("runtimes", self._data_dir)

    @cached_property
    def services(self) -> list[dict]:
        """Service templates (PostgreSQL, Redis, …) with versions and ports."""
        return _load_catalog("services", self._data_dir)

    @cached_property
    def tools(self) -> list[dict]:
        return _load_catalog("tools", self._data_dir)

    def reload(self) -> None:
        """Forget loaded catalogs; the next access reads the files again."""
        for name in CATALOG_NAMES:
            self.__dict__.pop(name, None)
