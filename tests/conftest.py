"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from runtimekit.adapters.mock import MockEcosystemAdapter
from runtimekit.adapters.registry import AdapterRegistry
from runtimekit.adapters.shell.command import EXIT_NOT_FOUND, ProcessResult
from runtimekit.core.context import RuntimeContext
from runtimekit.core.models.package import Ecosystem
from runtimekit.core.services.catalog import StaticCatalog
from runtimekit.core.services.package_manager import PackageManager


class FakeRunner:
    """ProcessRunner stand-in with canned results.

    Responses are keyed by the command plus a prefix of its arguments;
    the longest matching prefix wins.  Unmatched commands behave like a
    missing binary.
    """

    def __init__(self, available: tuple[str, ...] = ()):
        self.available = set(available)
        self.responses: dict[tuple[str, ...], ProcessResult] = {}
        self.calls: list[tuple[str, ...]] = []

    def on(self, *argv: str, stdout: str = "", stderr: str = "", exit_code: int = 0) -> None:
        self.responses[tuple(argv)] = ProcessResult(
            command=" ".join(argv), stdout=stdout, stderr=stderr, exit_code=exit_code
        )

    def which(self, command: str) -> str | None:
        return f"/usr/bin/{command}" if command in self.available else None

    def execute(self, command, args=(), *, cwd=None, timeout=None) -> ProcessResult:
        argv = (command, *args)
        self.calls.append(argv)
        for n in range(len(argv), 0, -1):
            if argv[:n] in self.responses:
                return self.responses[argv[:n]]
        return ProcessResult(
            command=" ".join(argv),
            stderr=f"{command}: command not found",
            exit_code=EXIT_NOT_FOUND,
        )

    def ran(self, *argv: str) -> bool:
        return any(call[: len(argv)] == argv for call in self.calls)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def context(tmp_path: Path) -> RuntimeContext:
    return RuntimeContext.for_directory(tmp_path)


@pytest.fixture
def node_mock(tmp_path: Path) -> MockEcosystemAdapter:
    return MockEcosystemAdapter(Ecosystem.NODEJS, project_root=tmp_path)


@pytest.fixture
def python_mock(tmp_path: Path) -> MockEcosystemAdapter:
    return MockEcosystemAdapter(Ecosystem.PYTHON, project_root=tmp_path)


@pytest.fixture
def manager(context, node_mock, python_mock, fake_runner):
    """PackageManager over two in-memory ecosystems."""
    pm = PackageManager(
        context,
        registry=AdapterRegistry([node_mock, python_mock]),
        catalog=StaticCatalog(runner=fake_runner),
        runner=fake_runner,
    )
    yield pm
    pm.cleanup()
