"""
Search aggregator — fan out a query, merge, score and rank.

Every source (the runtime/service catalog, each ecosystem adapter) is
queried concurrently.  A source that raises is logged and left out;
the others still contribute.  The merged list is deduplicated by
``(name, type)``, scored against the query and sorted in a total
order, so repeated calls over unchanged sources return identical
output.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC
from typing import Callable, Iterable

from runtimekit.core.models.package import (
    Ecosystem,
    PackageType,
    SearchOptions,
    SearchResult,
    SortBy,
)

logger = logging.getLogger(__name__)

EXACT_SCORE = 100.0
PREFIX_SCORE = 80.0
SUBSTRING_SCORE = 60.0
DESCRIPTION_SCORE = 40.0
FUZZY_BASE = 30.0
FUZZY_STEP = 5.0


# ═══════════════════════════════════════════════════════════════════
#  Scoring
# ═══════════════════════════════════════════════════════════════════


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def score_match(name: str, description: str | None, query: str) -> float:
    """Text relevance of a candidate for ``query``, in [0, 100].

    exact name > name prefix > name substring > description match >
    fuzzy name similarity.
    """
    q = query.strip().lower()
    n = name.lower()
    if not q:
        return 0.0
    if n == q:
        return EXACT_SCORE
    if n.startswith(q):
        return PREFIX_SCORE
    if q in n:
        return SUBSTRING_SCORE
    if description and q in description.lower():
        return DESCRIPTION_SCORE
    return max(0.0, FUZZY_BASE - FUZZY_STEP * levenshtein(n, q))


# ═══════════════════════════════════════════════════════════════════
#  Merge and rank
# ═══════════════════════════════════════════════════════════════════

_FILLABLE = ("ecosystem", "version", "description", "category", "downloads",
             "last_updated", "repository", "homepage")


def dedupe(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Collapse duplicates by ``(name, type)``, case-insensitively.

    The first occurrence wins; its empty fields are filled from later
    duplicates, and it keeps the highest score seen.
    """
    merged: dict[tuple[str, str], SearchResult] = {}
    for result in results:
        key = (result.name.lower(), result.type)
        kept = merged.get(key)
        if kept is None:
            merged[key] = result
            continue
        update = {
            f: getattr(result, f)
            for f in _FILLABLE
            if getattr(kept, f) is None and getattr(result, f) is not None
        }
        if result.score > kept.score:
            update["score"] = result.score
        if update:
            merged[key] = kept.model_copy(update=update)
    return list(merged.values())


def _tiebreak(r: SearchResult) -> tuple[str, str, str]:
    return (r.name.lower(), r.type, r.ecosystem.value if r.ecosystem else "")


def _sort_key(sort_by: SortBy) -> Callable[[SearchResult], tuple]:
    if sort_by == "downloads":
        return lambda r: (-(r.downloads or 0), *_tiebreak(r))
    if sort_by == "updated":
        def key(r: SearchResult) -> tuple:
            ts = r.last_updated
            if ts is None:
                return (1, 0.0, *_tiebreak(r))
            if ts.tzinfo is None:
                ts = ts.replace(tzinfo=UTC)
            return (0, -ts.timestamp(), *_tiebreak(r))
        return key
    if sort_by == "name":
        return _tiebreak
    return lambda r: (-r.score, *_tiebreak(r))


def rank_results(
    results: Iterable[SearchResult],
    sort_by: SortBy = "relevance",
    limit: int | None = None,
) -> list[SearchResult]:
    """Order results by ``sort_by`` and truncate to ``limit``.

    Ties break on name, then type, then ecosystem, which makes the
    order total.
    """
    ranked = sorted(results, key=_sort_key(sort_by))
    return ranked if limit is None else ranked[:limit]


# ═══════════════════════════════════════════════════════════════════
#  Sources and fan-out
# ═══════════════════════════════════════════════════════════════════


@dataclass
class SearchSource:
    """One contributor to a search.

    ``types`` lists the result types the source can produce; sources
    that cannot produce the requested type are not queried.
    ``ecosystem`` is set for adapter sources and compared against
    ``SearchOptions.runtime_ecosystem``.
    """

    name: str
    fetch: Callable[[str, int], list[SearchResult]]
    types: tuple[PackageType, ...] = ("dependency",)
    ecosystem: Ecosystem | None = None


@dataclass
class SourceResult:
    source: str
    ok: bool
    results: list[SearchResult] = field(default_factory=list)
    error: str | None = None


class SearchAggregator:
    """Concurrent multi-source search.

    Args:
        sources:     Contributors, in priority order (earlier wins dedupe).
        max_workers: Pool size when no ``executor`` is given.
        executor:    Shared pool; the aggregator never shuts it down.
    """

    def __init__(
        self,
        sources: list[SearchSource],
        max_workers: int = 8,
        executor: Executor | None = None,
    ):
        self.sources = list(sources)
        self.max_workers = max_workers
        self._executor = executor

    def select_sources(self, options: SearchOptions) -> list[SearchSource]:
        selected = []
        for source in self.sources:
            if options.type and options.type not in source.types:
                continue
            if (
                options.runtime_ecosystem
                and source.ecosystem is not None
                and source.ecosystem != options.runtime_ecosystem
            ):
                continue
            selected.append(source)
        return selected

    def gather(self, query: str, sources: list[SearchSource], limit: int) -> list[SourceResult]:
        """Query ``sources`` concurrently; one ``SourceResult`` each, in order."""
        if not sources:
            return []

        def _run(source: SearchSource) -> SourceResult:
            try:
                return SourceResult(source=source.name, ok=True, results=source.fetch(query, limit))
            except Exception as e:
                logger.warning("Search source %s failed: %s", source.name, e)
                return SourceResult(source=source.name, ok=False, error=str(e))

        if self._executor is not None:
            futures = [self._executor.submit(_run, s) for s in sources]
            return [f.result() for f in futures]

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(sources))) as pool:
            return list(pool.map(_run, sources))

    def search(self, query: str, options: SearchOptions | None = None) -> list[SearchResult]:
        options = options or SearchOptions()
        if not query.strip():
            return []

        sources = self.select_sources(options)
        logger.debug("Searching %r across %d source(s)", query, len(sources))
        gathered = self.gather(query, sources, options.limit)

        candidates: list[SearchResult] = []
        for outcome in gathered:
            for result in outcome.results:
                if options.type and result.type != options.type:
                    continue
                if options.category and (result.category or "").lower() != options.category.lower():
                    continue
                score = score_match(result.name, result.description, query)
                candidates.append(result.model_copy(update={"score": score}))

        return rank_results(dedupe(candidates), options.sort_by, options.limit)
