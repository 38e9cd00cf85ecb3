"""
Tests for search scoring, merging, ranking and source fan-out.
"""

from datetime import datetime, timezone

import pytest

from runtimekit.core.models.package import Ecosystem, SearchOptions, SearchResult
from runtimekit.core.services.search import (
    SearchAggregator,
    SearchSource,
    dedupe,
    levenshtein,
    rank_results,
    score_match,
)


def dep(name: str, **kw) -> SearchResult:
    return SearchResult(name=name, type="dependency", **kw)


def static_source(name, results, **kw) -> SearchSource:
    return SearchSource(name=name, fetch=lambda q, limit: list(results), **kw)


# ── Scoring ─────────────────────────────────────────────────────


class TestScoring:
    def test_tiers(self):
        assert score_match("express", None, "express") == 100
        assert score_match("expressjs", None, "express") == 80
        assert score_match("fast-express", None, "express") == 60
        assert score_match("koa", "An express alternative", "express") == 40

    def test_exact_match_is_case_insensitive(self):
        assert score_match("Flask", None, "flask") == 100

    def test_fuzzy_decays_with_distance(self):
        assert score_match("flsk", None, "flask") == 25
        assert score_match("zzzzzzzz", None, "flask") == 0

    def test_blank_query_scores_zero(self):
        assert score_match("anything", "anything", "  ") == 0

    @pytest.mark.parametrize(
        "a,b,expected",
        [("", "", 0), ("abc", "", 3), ("kitten", "sitting", 3), ("flaw", "lawn", 2)],
    )
    def test_levenshtein(self, a, b, expected):
        assert levenshtein(a, b) == expected
        assert levenshtein(b, a) == expected


# ── Ranking ─────────────────────────────────────────────────────


class TestRanking:
    def test_relevance_and_name_orders(self):
        results = [dep("express", score=90), dep("expressjs", score=95)]
        assert [r.name for r in rank_results(results, "relevance")] == ["expressjs", "express"]
        assert [r.name for r in rank_results(results, "name")] == ["express", "expressjs"]

    def test_relevance_ties_break_on_name(self):
        results = [dep("b", score=50), dep("a", score=50), dep("c", score=50)]
        assert [r.name for r in rank_results(results)] == ["a", "b", "c"]

    def test_downloads_missing_counts_as_zero(self):
        results = [dep("none"), dep("many", downloads=1000), dep("few", downloads=3)]
        assert [r.name for r in rank_results(results, "downloads")] == ["many", "few", "none"]

    def test_updated_missing_is_oldest(self):
        results = [
            dep("undated"),
            dep("old", last_updated=datetime(2020, 1, 1, tzinfo=timezone.utc)),
            dep("new", last_updated=datetime(2024, 6, 1)),
        ]
        assert [r.name for r in rank_results(results, "updated")] == ["new", "old", "undated"]

    def test_total_order_across_ecosystems(self):
        results = [
            dep("lib", ecosystem=Ecosystem.PYTHON, score=60),
            dep("lib", ecosystem=Ecosystem.NODEJS, score=60),
        ]
        first = rank_results(results)
        second = rank_results(list(reversed(results)))
        assert first == second
        assert first[0].ecosystem is Ecosystem.NODEJS

    def test_limit(self):
        results = [dep(f"pkg{i}", score=i) for i in range(10)]
        assert len(rank_results(results, limit=3)) == 3


class TestDedupe:
    def test_first_wins_and_fills_gaps(self):
        merged = dedupe([
            dep("Redis", score=60, ecosystem=Ecosystem.NODEJS),
            dep("redis", score=80, description="client", downloads=42),
        ])
        assert len(merged) == 1
        kept = merged[0]
        assert kept.name == "Redis"
        assert kept.ecosystem is Ecosystem.NODEJS
        assert kept.description == "client"
        assert kept.downloads == 42
        assert kept.score == 80

    def test_type_is_part_of_identity(self):
        merged = dedupe([
            SearchResult(name="redis", type="service"),
            SearchResult(name="redis", type="dependency"),
        ])
        assert len(merged) == 2


# ── Aggregation ─────────────────────────────────────────────────


class TestAggregator:
    def test_failing_source_is_omitted(self):
        def broken(query, limit):
            raise ConnectionError("registry down")

        aggregator = SearchAggregator([
            SearchSource(name="broken", fetch=broken),
            static_source("npm", [dep("express")]),
        ])
        results = aggregator.search("express")
        assert [r.name for r in results] == ["express"]

    def test_gather_reports_failures(self):
        def broken(query, limit):
            raise ConnectionError("registry down")

        aggregator = SearchAggregator([])
        outcomes = aggregator.gather("x", [SearchSource(name="broken", fetch=broken)], 5)
        assert outcomes[0].ok is False
        assert "registry down" in outcomes[0].error

    def test_scores_are_recomputed(self):
        aggregator = SearchAggregator([
            static_source("npm", [dep("expressjs", score=1), dep("express", score=1)]),
        ])
        results = aggregator.search("express")
        assert [(r.name, r.score) for r in results] == [("express", 100), ("expressjs", 80)]

    def test_blank_query(self):
        aggregator = SearchAggregator([static_source("npm", [dep("x")])])
        assert aggregator.search("   ") == []

    def test_type_filter_skips_sources(self):
        calls = []

        def tracked(query, limit):
            calls.append(query)
            return [dep("redis")]

        aggregator = SearchAggregator([
            SearchSource(name="npm", fetch=tracked),
            static_source("catalog", [SearchResult(name="redis", type="service")],
                          types=("runtime", "service", "tool")),
        ])
        results = aggregator.search("redis", SearchOptions(type="service"))
        assert [(r.name, r.type) for r in results] == [("redis", "service")]
        assert calls == []

    def test_category_filter(self):
        aggregator = SearchAggregator([
            static_source("catalog", [
                SearchResult(name="postgresql", type="service", category="database"),
                SearchResult(name="postgres-exporter", type="tool", category="monitoring"),
            ], types=("service", "tool")),
        ])
        results = aggregator.search("postgres", SearchOptions(category="Database"))
        assert [r.name for r in results] == ["postgresql"]

    def test_runtime_ecosystem_restricts_adapter_sources(self):
        aggregator = SearchAggregator([
            static_source("npm", [dep("yaml", ecosystem=Ecosystem.NODEJS)], ecosystem=Ecosystem.NODEJS),
            static_source("pypi", [dep("yaml", ecosystem=Ecosystem.PYTHON)], ecosystem=Ecosystem.PYTHON),
            static_source("catalog", [SearchResult(name="yaml-lint", type="tool")],
                          types=("tool",)),
        ])
        results = aggregator.search("yaml", SearchOptions(runtime_ecosystem="python"))
        assert [(r.name, r.ecosystem) for r in results] == [
            ("yaml", Ecosystem.PYTHON),
            ("yaml-lint", None),
        ]

    def test_repeated_calls_are_identical(self):
        aggregator = SearchAggregator([
            static_source("a", [dep("reqs"), dep("requests"), dep("request")]),
            static_source("b", [dep("requests", downloads=9), dep("httpx")]),
        ])
        options = SearchOptions(limit=10)
        assert aggregator.search("requests", options) == aggregator.search("requests", options)
