"""Query builders that simulate what a developer knew halfway through an edit.

Every builder receives the usage before the edit (``start``) and after it
(``end``). Call sites that only exist in ``end`` were added by the edit, call
sites that only exist in ``start`` were removed by it (noise).
"""
from __future__ import annotations

from itertools import combinations
from typing import Any, Dict, List, Optional

from call_recommender.queries.base import QueryBuilder, QueryMode
from call_recommender.usages.edits import added_call_sites
from call_recommender.usages.model import AbstractUsage, Query

DEFAULT_MAX_SAMPLES = 3


class ExactPrefixQueryBuilder:
    """Reconstructs the state right before the additions: ``end`` minus new calls."""

    def create_queries(self, start: AbstractUsage, end: AbstractUsage) -> List[Query]:
        query = Query.copy_from(end)
        known = set(start.all_call_sites)
        for site in end.all_call_sites:
            if site not in known:
                query.remove_call_site(site)
        return [query]


class CombinatorialQueryBuilder:
    """Enumerates partial completions of the added call sites, smallest first.

    Each query holds all call sites of ``start`` plus one non-empty subset of
    the added call sites. Enumeration stops after ``max_samples`` distinct
    queries.
    """

    def __init__(self, max_samples: int = DEFAULT_MAX_SAMPLES) -> None:
        if isinstance(max_samples, bool) or not isinstance(max_samples, int) or max_samples <= 0:
            raise ValueError(f"max_samples must be a positive integer, got {max_samples!r}")
        self.max_samples = max_samples

    def create_queries(self, start: AbstractUsage, end: AbstractUsage) -> List[Query]:
        added = added_call_sites(start, end)
        if not added:
            return [Query.copy_from(start)]
        queries: List[Query] = []
        seen = set()
        for size in range(1, len(added) + 1):
            for subset in combinations(added, size):
                query = Query.copy_from(start)
                for site in subset:
                    query.add_call_site(site)
                key = query.key()
                if key in seen:
                    continue
                seen.add(key)
                queries.append(query)
                if len(queries) >= self.max_samples:
                    return queries
        return queries


class SingleAdditionQueryBuilder:
    """Keeps the noise of ``start`` and completes exactly one added call.

    The added call site is the smallest one by method identifier, then kind and
    argument index, so the choice does not depend on iteration order.
    """

    def create_queries(self, start: AbstractUsage, end: AbstractUsage) -> List[Query]:
        query = Query.copy_from(start)
        added = added_call_sites(start, end)
        if added:
            query.add_call_site(min(added, key=lambda site: site.sort_key()))
        return [query]


def build_query_builder(
    mode: QueryMode | str,
    settings: Optional[Dict[str, Any]] = None,
) -> QueryBuilder:
    try:
        mode = QueryMode(mode)
    except ValueError as exc:
        raise ValueError(f"Unknown query mode: {mode}") from exc
    conf = (settings or {}).get("queries", {}) or {}
    if mode == QueryMode.EXACT_PREFIX:
        return ExactPrefixQueryBuilder()
    if mode == QueryMode.COMBINATORIAL:
        return CombinatorialQueryBuilder(conf.get("max_samples", DEFAULT_MAX_SAMPLES))
    return SingleAdditionQueryBuilder()
