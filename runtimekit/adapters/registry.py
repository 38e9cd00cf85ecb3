"""
Adapter registry — ecosystem tag → adapter.

The orchestrator never talks to a concrete adapter class; it asks the
registry for the adapter of an ``Ecosystem`` tag.  An unknown tag is a
configuration error and raises ``UnknownEcosystemError``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator

from runtimekit.adapters.base import EcosystemAdapter
from runtimekit.adapters.shell.command import ProcessRunner
from runtimekit.core.errors import UnknownEcosystemError
from runtimekit.core.models.package import Ecosystem

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Registry of ecosystem adapters, one per ``Ecosystem`` tag."""

    def __init__(self, adapters: list[EcosystemAdapter] | None = None):
        self._adapters: dict[Ecosystem, EcosystemAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: EcosystemAdapter) -> None:
        """Register an adapter, replacing any adapter for the same tag."""
        eco = adapter.ecosystem
        if eco in self._adapters:
            logger.warning("Overwriting existing adapter: %s", eco.value)
        self._adapters[eco] = adapter
        logger.debug("Registered adapter: %s", eco.value)

    def unregister(self, ecosystem: Ecosystem | str) -> None:
        self._adapters.pop(Ecosystem.parse(ecosystem), None)

    def get(self, ecosystem: Ecosystem | str) -> EcosystemAdapter:
        """Look up the adapter for ``ecosystem``.

        Raises:
            UnknownEcosystemError: the tag is not an ecosystem, or no
                adapter is registered for it.
        """
        eco = Ecosystem.parse(ecosystem)
        adapter = self._adapters.get(eco)
        if adapter is None:
            raise UnknownEcosystemError(eco.value, known=self.list_adapters())
        return adapter

    def list_adapters(self) -> list[str]:
        """Registered ecosystem tags, in registration order."""
        return [eco.value for eco in self._adapters]

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every registered adapter's native tool."""
        status = {}
        for eco, adapter in self._adapters.items():
            status[eco.value] = {
                "name": eco.value,
                "available": adapter.is_available(),
                "manifest": adapter.has_manifest(),
                "type": adapter.__class__.__name__,
            }
        return status

    def close(self) -> None:
        for adapter in self._adapters.values():
            close = getattr(adapter, "close", None)
            if callable(close):
                close()

    def __iter__(self) -> Iterator[EcosystemAdapter]:
        return iter(list(self._adapters.values()))

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, ecosystem: object) -> bool:
        if not isinstance(ecosystem, str):
            return False
        try:
            return Ecosystem.parse(ecosystem) in self._adapters
        except UnknownEcosystemError:
            return False


def default_registry(project_root: Path, runner: ProcessRunner | None = None) -> AdapterRegistry:
    """Registry with the built-in Node.js, Python and Go adapters."""
    from runtimekit.adapters.languages.go import GoAdapter
    from runtimekit.adapters.languages.node import NodeAdapter
    from runtimekit.adapters.languages.python import PythonAdapter

    runner = runner or ProcessRunner()
    return AdapterRegistry([
        NodeAdapter(project_root, runner),
        PythonAdapter(project_root, runner),
        GoAdapter(project_root, runner),
    ])
