from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional, Sequence

from call_recommender.evaluation.f1_by_category import CategoryReport, F1ByCategory
from call_recommender.evaluation.harness import (
    Evaluation,
    UsagePair,
    evaluate_in_parallel,
    modes_from_settings,
)
from call_recommender.inference.network import BayesianNetwork
from call_recommender.observability.logger import EventLogger
from call_recommender.queries.base import QueryMode
from call_recommender.recommender.factory import build_recommender
from call_recommender.recommender.index import NetworkIndex
from call_recommender.telemetry import init_telemetry, set_run_context, span
from call_recommender.usages.edits import summarize_edit_deltas
from call_recommender.utils.artifact_store import ArtifactStore


class EvaluationRunner:
    def __init__(self, settings: Dict[str, Any]) -> None:
        self.settings = settings
        self.eval_conf = settings.get("evaluation", {}) or {}

    def run(self, pairs: Sequence[UsagePair], network: BayesianNetwork) -> CategoryReport:
        init_telemetry(self.settings)
        evaluation_id = ArtifactStore.compute_evaluation_id(self.settings)
        run_id = set_run_context(evaluation_id)
        store = ArtifactStore(
            self.eval_conf.get("artifacts_dir", "artifacts"),
            evaluation_id,
            run_id=run_id,
        )
        store.ensure_dir("report")
        obs_conf = self.settings.get("observability", {}) or {}
        event_logger = EventLogger(store, run_id=run_id, enabled=obs_conf.get("enabled", True))
        event_logger.log("run.start", pairs=len(pairs))

        event_logger.stage_start("edit_deltas")
        with span("stage.edit_deltas", stage="edit_deltas"):
            deltas = summarize_edit_deltas(pairs)
        store.write_json("report/edit_deltas.json", {**asdict(deltas), "total": deltas.total})
        event_logger.stage_end("edit_deltas", additions=deltas.additions)

        counted = self.eval_conf.get("counted_mode")
        counted_mode: Optional[QueryMode] = QueryMode(counted) if counted else None
        workers = int(self.eval_conf.get("workers", 1) or 1)
        index = NetworkIndex.build(network)

        event_logger.stage_start("evaluation", workers=workers)
        with span("stage.evaluation", stage="evaluation", workers=workers):
            if workers > 1:
                aggregator = evaluate_in_parallel(
                    pairs,
                    lambda: build_recommender(self.settings, index, event_logger=event_logger),
                    settings=self.settings,
                    workers=workers,
                    counted_mode=counted_mode,
                    event_logger=event_logger,
                )
            else:
                aggregator = F1ByCategory(
                    modes_from_settings(self.settings),
                    counted_mode=counted_mode,
                    event_logger=event_logger,
                )
                recommender = build_recommender(self.settings, index, event_logger=event_logger)
                Evaluation.from_settings(self.settings, recommender, event_logger=event_logger).run(
                    pairs, aggregator
                )
        report = aggregator.report()
        store.write_json("report/f1_by_category.json", report.to_dict())
        store.write_text("report/f1_by_category.txt", aggregator.format_table())
        event_logger.stage_end("evaluation", counts=report.counts)
        event_logger.log("run.end")
        return report
