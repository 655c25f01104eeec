from __future__ import annotations

from call_recommender.telemetry.tracing import (
    init_telemetry,
    mode_context,
    set_run_context,
    span,
)

__all__ = ["init_telemetry", "mode_context", "set_run_context", "span"]
