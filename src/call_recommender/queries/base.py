from __future__ import annotations

from enum import Enum
from typing import List, Protocol

from call_recommender.usages.model import AbstractUsage, Query


class QueryMode(str, Enum):
    EXACT_PREFIX = "exact_prefix"
    COMBINATORIAL = "combinatorial"
    SINGLE_ADDITION = "single_addition"


class QueryBuilder(Protocol):
    def create_queries(self, start: AbstractUsage, end: AbstractUsage) -> List[Query]:
        ...
