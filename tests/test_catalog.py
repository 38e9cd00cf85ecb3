"""
Tests for the static runtime/service catalog.
"""

import json

import pytest

from runtimekit.core.data import DataRegistry
from runtimekit.core.models.package import Ecosystem
from runtimekit.core.models.project import ServiceDecl
from runtimekit.core.services.catalog import StaticCatalog, version_satisfies

from tests.conftest import FakeRunner


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner(available=("node", "fnm", "python3"))


@pytest.fixture
def catalog(runner) -> StaticCatalog:
    return StaticCatalog(runner=runner)


class TestDataRegistry:
    def test_bundled_catalogs(self):
        data = DataRegistry()
        assert {r["name"] for r in data.runtimes} == {"nodejs", "python", "go"}
        assert "postgresql" in {s["name"] for s in data.services}
        assert data.tools

    def test_missing_catalog_is_empty(self, tmp_path):
        assert DataRegistry(tmp_path).services == []

    def test_custom_data_dir(self, tmp_path):
        (tmp_path / "catalogs").mkdir()
        (tmp_path / "catalogs" / "services.json").write_text(
            json.dumps([{"name": "rabbitmq", "category": "queue", "aliases": ["amqp"]}])
        )
        catalog = StaticCatalog(DataRegistry(tmp_path), runner=FakeRunner())
        assert catalog.is_service("amqp")
        assert not catalog.is_service("postgresql")

    def test_entries_without_name_are_dropped(self, tmp_path):
        (tmp_path / "catalogs").mkdir()
        (tmp_path / "catalogs" / "tools.json").write_text(json.dumps([{"name": "uv"}, {"category": "x"}, 3]))
        assert DataRegistry(tmp_path).tools == [{"name": "uv"}]

    def test_reload(self, tmp_path):
        path = tmp_path / "catalogs" / "services.json"
        path.parent.mkdir()
        path.write_text(json.dumps([{"name": "redis"}]))
        data = DataRegistry(tmp_path)
        assert [s["name"] for s in data.services] == ["redis"]

        path.write_text(json.dumps([{"name": "valkey"}]))
        assert [s["name"] for s in data.services] == ["redis"]
        data.reload()
        assert [s["name"] for s in data.services] == ["valkey"]


class TestLookup:
    def test_services_by_name_and_alias(self, catalog):
        assert catalog.is_service("postgresql")
        assert catalog.is_service("PG")
        assert not catalog.is_service("express")

    def test_runtimes_by_alias(self, catalog):
        assert catalog.is_runtime("node")
        assert catalog.is_runtime("golang")
        assert not catalog.is_runtime("ruby")


class TestSearch:
    def test_finds_services_by_alias(self, catalog):
        results = catalog.search("postgres")
        assert [(r.name, r.type, r.category) for r in results] == [
            ("postgresql", "service", "database"),
        ]

    def test_runtime_results_carry_ecosystem(self, catalog):
        [result] = [r for r in catalog.search("node") if r.type == "runtime"]
        assert result.ecosystem is Ecosystem.NODEJS

    def test_tools(self, catalog):
        names = {r.name for r in catalog.search("package") if r.type == "tool"}
        assert {"npm", "pip"} <= names

    def test_blank_query(self, catalog):
        assert catalog.search("  ") == []


class TestStatus:
    def test_runtime_status(self, catalog, runner):
        runner.on("node", "--version", stdout="v20.11.1\n")
        runner.on("python3", "--version", stdout="Python 3.11.9\n")

        statuses = {s.name: s for s in catalog.runtime_status({"node": "20", "python": "3.12", "go": "1.22"})}

        node = statuses["nodejs"]
        assert node.installed and node.active
        assert node.detected_version == "20.11.1"
        assert node.manager == "fnm"

        python = statuses["python"]
        assert python.installed and not python.active

        go = statuses["go"]
        assert not go.installed
        assert go.detected_version is None

    def test_unknown_runtime(self, catalog):
        [status] = catalog.runtime_status({"ruby": "3.3"})
        assert (status.name, status.installed) == ("ruby", False)

    def test_service_status(self, catalog):
        statuses = catalog.service_status([
            ServiceDecl(name="db", template="postgresql", version="16"),
            ServiceDecl(name="queue"),
        ])
        assert (statuses[0].template, statuses[0].known, statuses[0].running) == ("postgresql", True, False)
        assert statuses[1].known is False


class TestVersionSatisfies:
    @pytest.mark.parametrize(
        "detected,wanted,expected",
        [
            ("20.11.1", "20", True),
            ("20.11.1", "20.11", True),
            ("20.11.1", "18", False),
            ("3.12.1", "3.12.x", True),
            ("1.22.0", "latest", True),
            (None, "20", False),
        ],
    )
    def test_prefix_match(self, detected, wanted, expected):
        assert version_satisfies(detected, wanted) is expected
