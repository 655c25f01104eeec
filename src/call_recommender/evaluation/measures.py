from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Set

from call_recommender.usages.model import AbstractUsage


def expected_methods(query: AbstractUsage, end: AbstractUsage) -> Set[str]:
    """Receiver methods of the finished usage the query does not know yet."""
    known = {site.method for site in query.receiver_call_sites}
    return {site.method for site in end.receiver_call_sites if site.method not in known}


@dataclass(frozen=True)
class PrecisionRecall:
    proposed: int
    expected: int
    hits: int

    @classmethod
    def score(cls, proposed: Iterable[str], expected: Iterable[str]) -> "PrecisionRecall":
        proposed_set = set(proposed)
        expected_set = set(expected)
        return cls(
            proposed=len(proposed_set),
            expected=len(expected_set),
            hits=len(proposed_set & expected_set),
        )

    @property
    def precision(self) -> float:
        return self.hits / self.proposed if self.proposed else 0.0

    @property
    def recall(self) -> float:
        return self.hits / self.expected if self.expected else 0.0

    @property
    def f1(self) -> float:
        precision = self.precision
        recall = self.recall
        if precision + recall == 0.0:
            return 0.0
        return 2 * precision * recall / (precision + recall)
