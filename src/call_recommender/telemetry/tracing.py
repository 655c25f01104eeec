from __future__ import annotations

import os
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor


_EVALUATION_ID: ContextVar[str | None] = ContextVar("evaluation_id", default=None)
_RUN_ID: ContextVar[str | None] = ContextVar("run_id", default=None)
_MODE: ContextVar[str | None] = ContextVar("query_mode", default=None)


def init_telemetry(settings: Dict[str, Any]) -> None:
    conf = settings.get("telemetry", {}) if settings else {}
    if not conf.get("enabled"):
        return
    service_name = conf.get("service_name", "call-recommender")
    endpoint = conf.get("otlp_endpoint") or os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not endpoint:
        return
    insecure = conf.get("otlp_insecure", True)
    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=endpoint, insecure=insecure)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)


def set_run_context(evaluation_id: str, mode: str | None = None) -> str:
    run_id = uuid.uuid4().hex
    _EVALUATION_ID.set(evaluation_id)
    _RUN_ID.set(run_id)
    if mode:
        _MODE.set(mode)
    return run_id


@contextmanager
def mode_context(mode: str):
    token = _MODE.set(mode)
    try:
        yield
    finally:
        _MODE.reset(token)


@contextmanager
def span(name: str, **attrs: Any):
    tracer = trace.get_tracer("call_recommender")
    with tracer.start_as_current_span(name) as current:
        _apply_common_attrs(current)
        for key, value in attrs.items():
            if value is None:
                continue
            current.set_attribute(key, value)
        yield current


def _apply_common_attrs(span_obj) -> None:
    evaluation_id = _EVALUATION_ID.get()
    run_id = _RUN_ID.get()
    mode = _MODE.get()
    if evaluation_id:
        span_obj.set_attribute("evaluation_id", evaluation_id)
    if run_id:
        span_obj.set_attribute("run_id", run_id)
    if mode:
        span_obj.set_attribute("query_mode", mode)
