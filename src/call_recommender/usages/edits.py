from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from call_recommender.usages.model import AbstractUsage, CallSite


def added_call_sites(start: AbstractUsage, end: AbstractUsage) -> List[CallSite]:
    """Call sites present in ``end`` but not in ``start``, in ``end`` order."""
    known = set(start.all_call_sites)
    return [site for site in end.all_call_sites if site not in known]


def noise_call_sites(start: AbstractUsage, end: AbstractUsage) -> List[CallSite]:
    """Call sites the edit removed, in ``start`` order."""
    kept = set(end.all_call_sites)
    return [site for site in start.all_call_sites if site not in kept]


def count_additions(start: AbstractUsage, end: AbstractUsage) -> int:
    known = set(start.receiver_call_sites)
    return sum(1 for site in end.receiver_call_sites if site not in known)


def count_removals(start: AbstractUsage, end: AbstractUsage) -> int:
    kept = set(end.receiver_call_sites)
    return sum(1 for site in start.receiver_call_sites if site not in kept)


@dataclass
class EditDeltaSummary:
    removals: int = 0
    changes: int = 0
    additions: int = 0
    additions_by_type: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.removals + self.changes + self.additions


def summarize_edit_deltas(
    pairs: Iterable[Tuple[AbstractUsage, AbstractUsage]],
) -> EditDeltaSummary:
    """Classify edits by how the number of receiver calls moved.

    Pairs whose receiver call sites did not change are ignored. Edits that
    shrink the call set count as removals, edits that keep its size as changes
    and edits that grow it as additions.
    """
    summary = EditDeltaSummary()
    per_type: Counter[str] = Counter()
    for start, end in pairs:
        before = start.receiver_call_sites
        after = end.receiver_call_sites
        if set(before) == set(after):
            continue
        delta = len(after) - len(before)
        if delta < 0:
            summary.removals += 1
        elif delta == 0:
            summary.changes += 1
        else:
            summary.additions += 1
            per_type[str(start.type)] += 1
    summary.additions_by_type = sorted(per_type.items(), key=lambda item: (-item[1], item[0]))
    return summary
