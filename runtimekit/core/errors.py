"""
Error taxonomy for the package management core.

Recoverable errors (``ManifestReadError``, ``RegistryUnavailableError``)
are raised by adapters and isolated per item by the orchestrator.
``UnknownEcosystemError`` is a caller configuration error and always
propagates.
"""

from __future__ import annotations


class RuntimekitError(Exception):
    """Base class for all runtimekit errors."""


class ManifestReadError(RuntimekitError):
    """A local manifest or lock file exists but cannot be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read manifest {path}: {reason}")


class RegistryUnavailableError(RuntimekitError):
    """A registry query failed (network, process, or bad response)."""

    def __init__(self, ecosystem: str, name: str, reason: str):
        self.ecosystem = ecosystem
        self.name = name
        self.reason = reason
        super().__init__(f"{ecosystem} registry unavailable for '{name}': {reason}")


class PackageNotFoundError(RegistryUnavailableError):
    """The registry answered, but does not know the package."""

    def __init__(self, ecosystem: str, name: str):
        super().__init__(ecosystem, name, "package not found")


class CyclicDependencyError(RuntimekitError):
    """A package appears as its own ancestor in a dependency tree."""

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__(f"Cyclic dependency: {' → '.join(self.cycle)}")


class UnknownEcosystemError(RuntimekitError):
    """No adapter is registered for the requested ecosystem."""

    def __init__(self, ecosystem: str, known: list[str] | None = None):
        self.ecosystem = ecosystem
        self.known = known or []
        hint = f" (known: {', '.join(self.known)})" if self.known else ""
        super().__init__(f"Unknown ecosystem '{ecosystem}'{hint}")


class OperationError(RuntimekitError):
    """Wraps an unexpected adapter failure."""
