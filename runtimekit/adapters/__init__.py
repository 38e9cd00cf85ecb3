"""Adapters — bindings from ecosystems to their native tools.

Public re-exports for convenient access.
"""

from runtimekit.adapters.base import EcosystemAdapter
from runtimekit.adapters.mock import MockEcosystemAdapter
from runtimekit.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "AdapterRegistry",
    "EcosystemAdapter",
    "MockEcosystemAdapter",
    "default_registry",
]
