from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from call_recommender.evaluation.f1_by_category import F1ByCategory
from call_recommender.evaluation.measures import PrecisionRecall, expected_methods
from call_recommender.observability.logger import EventLogger
from call_recommender.queries.base import QueryBuilder, QueryMode
from call_recommender.queries.builders import build_query_builder
from call_recommender.recommender.pbn import PBNRecommender
from call_recommender.telemetry import mode_context, span
from call_recommender.usages.model import AbstractUsage

UsagePair = Tuple[AbstractUsage, AbstractUsage]


class ResultConsumer(Protocol):
    def add_result(self, start: AbstractUsage, end: AbstractUsage, mode: QueryMode, f1: float) -> Any:
        ...


def modes_from_settings(settings: Optional[Dict[str, Any]]) -> List[QueryMode]:
    conf = (settings or {}).get("evaluation", {}) or {}
    raw = conf.get("modes") or [mode.value for mode in QueryMode]
    return [QueryMode(mode) for mode in raw]


class Evaluation:
    """Runs (start, end) pairs through every query mode and one recommender.

    Each query a builder produces is scored against the calls the finished
    usage added; the consumer receives the mean F1 per (pair, mode).
    """

    def __init__(
        self,
        recommender: PBNRecommender,
        builders: Dict[QueryMode, QueryBuilder],
        event_logger: EventLogger | None = None,
    ) -> None:
        if not builders:
            raise ValueError("At least one query builder is required")
        self.recommender = recommender
        self.builders = builders
        self.event_logger = event_logger

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Dict[str, Any]],
        recommender: PBNRecommender,
        event_logger: EventLogger | None = None,
    ) -> "Evaluation":
        builders = {mode: build_query_builder(mode, settings) for mode in modes_from_settings(settings)}
        return cls(recommender, builders, event_logger=event_logger)

    def evaluate_pair(self, start: AbstractUsage, end: AbstractUsage, mode: QueryMode) -> float:
        queries = self.builders[mode].create_queries(start, end)
        if not queries:
            return 0.0
        total = 0.0
        for query in queries:
            proposals = self.recommender.query(query)
            score = PrecisionRecall.score(
                (p.name for p in proposals),
                expected_methods(query, end),
            )
            total += score.f1
        return total / len(queries)

    def run(self, pairs: Iterable[UsagePair], consumer: ResultConsumer) -> int:
        samples = 0
        with span("evaluation.run", modes=",".join(m.value for m in self.builders)):
            for start, end in pairs:
                for mode in self.builders:
                    with mode_context(mode.value):
                        f1 = self.evaluate_pair(start, end, mode)
                    consumer.add_result(start, end, mode, f1)
                samples += 1
        if self.event_logger:
            self.event_logger.log("evaluation.samples", samples=samples)
        return samples


def evaluate_in_parallel(
    pairs: Sequence[UsagePair],
    recommender_factory: Callable[[], PBNRecommender],
    settings: Optional[Dict[str, Any]] = None,
    workers: int = 4,
    counted_mode: Optional[QueryMode] = None,
    event_logger: EventLogger | None = None,
) -> F1ByCategory:
    """Evaluate pairs on worker threads, one recommender per worker.

    Every worker fills its own accumulator; the accumulators are merged once
    all workers finished, so the result does not depend on scheduling.
    """
    if workers <= 0:
        raise ValueError(f"workers must be positive, got {workers}")
    modes = modes_from_settings(settings)
    chunks = [list(pairs[i::workers]) for i in range(workers)]

    def _work(chunk: List[UsagePair]) -> F1ByCategory:
        accumulator = F1ByCategory(modes, counted_mode=counted_mode, event_logger=event_logger)
        evaluation = Evaluation.from_settings(settings, recommender_factory(), event_logger=event_logger)
        evaluation.run(chunk, accumulator)
        return accumulator

    merged = F1ByCategory(modes, counted_mode=counted_mode, event_logger=event_logger)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        for partial in pool.map(_work, [chunk for chunk in chunks if chunk]):
            merged.merge(partial)
    return merged
