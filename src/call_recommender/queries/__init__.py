from __future__ import annotations

from call_recommender.queries.base import QueryBuilder, QueryMode
from call_recommender.queries.builders import (
    CombinatorialQueryBuilder,
    ExactPrefixQueryBuilder,
    SingleAdditionQueryBuilder,
    build_query_builder,
)

__all__ = [
    "CombinatorialQueryBuilder",
    "ExactPrefixQueryBuilder",
    "QueryBuilder",
    "QueryMode",
    "SingleAdditionQueryBuilder",
    "build_query_builder",
]
