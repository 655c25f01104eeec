from __future__ import annotations

from typing import Iterable, List, NamedTuple


class Proposal(NamedTuple):
    name: str
    probability: float


def sort_proposals(proposals: Iterable[Proposal]) -> List[Proposal]:
    """Highest probability first; equal probabilities ordered by name."""
    return sorted(proposals, key=lambda p: (-p.probability, p.name))
