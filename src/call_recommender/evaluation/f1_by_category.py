"""F1 aggregation bucketed by how much of the final usage the start already held.

Categories, computed on receiver call sites with the removed (noise) calls
subtracted from ``start``:

- ZERO: nothing of the final usage was known yet.
- MINUS1: exactly one call was missing.
- NM: everything else ("n of m" known). A start with one of two final calls
  is deliberately counted as NM.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional

from call_recommender.evaluation.boxplot import Boxplot, BoxplotData
from call_recommender.observability.logger import EventLogger
from call_recommender.queries.base import QueryMode
from call_recommender.usages.edits import count_additions, count_removals
from call_recommender.usages.model import AbstractUsage


class QueryContent(str, Enum):
    ZERO = "ZERO"
    NM = "NM"
    MINUS1 = "MINUS1"


class CategorizationError(ValueError):
    """Start and end call counts of a sample do not add up."""


def categorize_counts(num_start: int, num_removed: int, num_added: int, num_end: int) -> QueryContent:
    start_clean = num_start - num_removed
    if start_clean < 0:
        raise CategorizationError(
            f"start holds {num_start} calls but {num_removed} were removed"
        )
    if start_clean + num_added != num_end:
        raise CategorizationError(
            f"{start_clean} kept + {num_added} added calls != {num_end} calls at end"
        )
    if start_clean == 0:
        return QueryContent.ZERO
    if start_clean == 1 and num_end == 2:
        return QueryContent.NM
    if start_clean == num_end - 1:
        return QueryContent.MINUS1
    return QueryContent.NM


def categorize(start: AbstractUsage, end: AbstractUsage) -> QueryContent:
    return categorize_counts(
        num_start=len(start.receiver_call_sites),
        num_removed=count_removals(start, end),
        num_added=count_additions(start, end),
        num_end=len(end.receiver_call_sites),
    )


@dataclass
class CategoryReport:
    mean_f1: Dict[str, Dict[str, float]] = field(default_factory=dict)
    boxplots: Dict[str, Dict[str, Boxplot]] = field(default_factory=dict)
    counts: Dict[str, int] = field(default_factory=dict)
    counted_mode: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "mean_f1": self.mean_f1,
            "boxplots": {
                mode: {qc: box.to_dict() for qc, box in per_mode.items()}
                for mode, per_mode in self.boxplots.items()
            },
            "counts": self.counts,
            "counted_mode": self.counted_mode,
        }


class F1ByCategory:
    def __init__(
        self,
        modes: Iterable[QueryMode] = tuple(QueryMode),
        counted_mode: Optional[QueryMode] = None,
        event_logger: EventLogger | None = None,
    ) -> None:
        self.modes = tuple(QueryMode(m) for m in modes)
        if not self.modes:
            raise ValueError("At least one query mode is required")
        self.counted_mode = QueryMode(counted_mode) if counted_mode else self.modes[0]
        if self.counted_mode not in self.modes:
            raise ValueError(f"Counted mode {self.counted_mode.value} is not evaluated")
        self.event_logger = event_logger
        self.results: Dict[QueryMode, Dict[QueryContent, BoxplotData]] = {
            mode: {qc: BoxplotData() for qc in QueryContent} for mode in self.modes
        }
        self.counts: Dict[QueryContent, int] = {qc: 0 for qc in QueryContent}

    def add_result(self, start: AbstractUsage, end: AbstractUsage, mode: QueryMode, f1: float) -> QueryContent:
        mode = QueryMode(mode)
        if mode not in self.results:
            raise ValueError(f"Query mode {mode.value} is not evaluated")
        try:
            qc = categorize(start, end)
        except CategorizationError as exc:
            if self.event_logger:
                self.event_logger.log(
                    "evaluation.categorization_failed",
                    query_mode=mode.value,
                    error=str(exc),
                )
            raise
        self.results[mode][qc].add(f1)
        if mode == self.counted_mode:
            self.counts[qc] += 1
        return qc

    def merge(self, other: "F1ByCategory") -> None:
        if other.modes != self.modes or other.counted_mode != self.counted_mode:
            raise ValueError("Cannot merge aggregators with different modes")
        for mode in self.modes:
            for qc in QueryContent:
                self.results[mode][qc].merge(other.results[mode][qc])
        for qc in QueryContent:
            self.counts[qc] += other.counts[qc]

    def report(self) -> CategoryReport:
        return CategoryReport(
            mean_f1={
                mode.value: {qc.value: data.mean for qc, data in per_mode.items()}
                for mode, per_mode in self.results.items()
            },
            boxplots={
                mode.value: {qc.value: data.boxplot() for qc, data in per_mode.items()}
                for mode, per_mode in self.results.items()
            },
            counts={qc.value: count for qc, count in self.counts.items()},
            counted_mode=self.counted_mode.value,
        )

    def format_table(self) -> str:
        header = "".join(f" & {qc.value}" for qc in QueryContent)
        lines = [header]
        for mode, per_mode in self.results.items():
            cells = "".join(f" & {per_mode[qc].mean:.4f}" for qc in QueryContent)
            lines.append(f"{mode.value}{cells}")
        lines.append("counts" + "".join(f" & {self.counts[qc]}" for qc in QueryContent))
        return "\n".join(lines) + "\n"
