from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List

import pytest

from call_recommender.inference.network import BayesianNetwork, NetworkNode
from call_recommender.observability.logger import EventLogger
from call_recommender.recommender.factory import build_recommender
from call_recommender.recommender.index import NetworkIndex, NodeRole
from call_recommender.recommender.options import QueryOptions
from call_recommender.recommender.pbn import PBNRecommender
from call_recommender.usages.model import CallSite, DefinitionSite, Query
from call_recommender.utils.artifact_store import ArtifactStore

NO_CONTEXT = QueryOptions(use_class_context=False, use_method_context=False, use_definition=False)


def _indicator(identifier: str, p1: float, p2: float) -> NetworkNode:
    return NetworkNode(
        identifier=identifier,
        states=("true", "false"),
        parents=("patterns",),
        probabilities=(p1, 1.0 - p1, p2, 1.0 - p2),
    )


def _network() -> BayesianNetwork:
    return BayesianNetwork(
        nodes=[
            NetworkNode(identifier="patterns", states=("p1", "p2"), probabilities=(0.6, 0.4)),
            NetworkNode(
                identifier="classContext",
                states=("LC", "LD"),
                parents=("patterns",),
                probabilities=(0.9, 0.1, 0.2, 0.8),
            ),
            NetworkNode(
                identifier="methodContext",
                states=("LC.m()V", "LD.n()V"),
                parents=("patterns",),
                probabilities=(0.8, 0.2, 0.3, 0.7),
            ),
            NetworkNode(
                identifier="definition",
                states=("RETURN:LF.get()LT;", "NEW:LT.<init>()V"),
                parents=("patterns",),
                probabilities=(0.7, 0.3, 0.1, 0.9),
            ),
            _indicator("C_LT.a()V", 0.9, 0.1),
            _indicator("C_LT.b()V", 0.8, 0.2),
            _indicator("C_LT.c()V", 0.1, 0.7),
            _indicator("P_LU.use(LT;)V#0", 0.9, 0.1),
        ]
    )


def _query(*methods: str, class_context: str = "LC") -> Query:
    return Query(
        type="LT",
        class_context=class_context,
        method_context="LC.m()V",
        definition=DefinitionSite.returned("LF.get()LT;"),
        call_sites=[CallSite.receiver(m) for m in methods],
    )


def _events(store: ArtifactStore) -> List[dict]:
    path = store.path("observability/run.jsonl")
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_index_binds_roles() -> None:
    index = NetworkIndex.build(_network())
    assert index.pattern_node == "patterns"
    assert index.role_node(NodeRole.CLASS_CONTEXT) == "classContext"
    assert set(index.call_nodes) == {"LT.a()V", "LT.b()V", "LT.c()V"}
    assert index.parameter_nodes == {("LU.use(LT;)V", 0): "P_LU.use(LT;)V#0"}


def test_index_rejects_invalid_indicator() -> None:
    network = BayesianNetwork(
        nodes=[
            NetworkNode(identifier="patterns", states=("p1",), probabilities=(1.0,)),
            NetworkNode(
                identifier="C_LT.a()V",
                states=("yes", "no"),
                parents=("patterns",),
                probabilities=(0.5, 0.5),
            ),
        ]
    )
    with pytest.raises(ValueError):
        NetworkIndex.build(network)


def test_index_requires_pattern_node() -> None:
    network = BayesianNetwork(
        nodes=[NetworkNode(identifier="C_LT.a()V", states=("true", "false"), probabilities=(0.5, 0.5))]
    )
    with pytest.raises(ValueError):
        NetworkIndex.build(network)


def test_query_excludes_queried_methods_and_sorts() -> None:
    recommender = PBNRecommender(_network(), NO_CONTEXT)
    proposals = recommender.query(_query("LT.a()V"))
    assert [p.name for p in proposals] == ["LT.b()V", "LT.c()V"]
    assert proposals[0].probability == pytest.approx(0.758621, abs=1e-6)
    assert proposals[1].probability == pytest.approx(0.141379, abs=1e-6)


def test_query_without_calls_returns_prior() -> None:
    recommender = PBNRecommender(_network(), NO_CONTEXT)
    proposals = recommender.query(_query())
    assert [(p.name, round(p.probability, 6)) for p in proposals] == [
        ("LT.a()V", 0.58),
        ("LT.b()V", 0.56),
        ("LT.c()V", 0.34),
    ]


def test_min_probability_filters_proposals() -> None:
    options = QueryOptions(
        use_class_context=False,
        use_method_context=False,
        use_definition=False,
        min_probability=0.5,
    )
    proposals = PBNRecommender(_network(), options).query(_query())
    assert [p.name for p in proposals] == ["LT.a()V", "LT.b()V"]
    assert all(p.probability >= 0.5 for p in proposals)


def test_min_probability_is_inclusive() -> None:
    network = BayesianNetwork(
        nodes=[
            NetworkNode(identifier="patterns", states=("p1", "p2"), probabilities=(0.5, 0.5)),
            _indicator("C_LT.half()V", 0.25, 0.75),
        ]
    )
    options = QueryOptions(
        use_class_context=False,
        use_method_context=False,
        use_definition=False,
        min_probability=0.5,
    )
    assert PBNRecommender(network, options).query(_query()) == [("LT.half()V", 0.5)]


def test_class_context_evidence() -> None:
    options = QueryOptions(use_method_context=False, use_definition=False)
    proposals = PBNRecommender(_network(), options).query(_query("LT.a()V", class_context="LD"))
    assert proposals[0].name == "LT.b()V"
    assert proposals[0].probability == pytest.approx(0.576744, abs=1e-6)


def test_unknown_context_is_skipped_and_logged(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path, "eval")
    logger = EventLogger(store)
    options = QueryOptions(use_method_context=False, use_definition=False)
    with_context = PBNRecommender(_network(), options, event_logger=logger)
    without_context = PBNRecommender(_network(), NO_CONTEXT)

    query = _query("LT.a()V", class_context="LUnknown")
    assert with_context.query(query) == without_context.query(query)
    events = _events(store)
    assert events[0]["event_type"] == "recommender.unknown_outcome"
    assert events[0]["outcome"] == "LUnknown"


def test_unknown_call_is_skipped(tmp_path: Path) -> None:
    store = ArtifactStore(tmp_path, "eval")
    recommender = PBNRecommender(_network(), NO_CONTEXT, event_logger=EventLogger(store))
    proposals = recommender.query(_query("LT.a()V", "LT.zzz()V"))
    assert [p.name for p in proposals] == ["LT.b()V", "LT.c()V"]
    assert [e["node"] for e in _events(store)] == ["C_LT.zzz()V"]


def test_parameter_sites_are_evidence_only() -> None:
    recommender = PBNRecommender(_network(), NO_CONTEXT)
    query = _query("LT.a()V")
    query.add_call_site(CallSite.parameter("LU.use(LT;)V", 0))
    query.add_call_site(CallSite.parameter("LU.other(LT;)V", 1))
    proposals = recommender.query(query)
    assert [p.name for p in proposals] == ["LT.b()V", "LT.c()V"]
    assert proposals[0].probability == pytest.approx(0.795102, abs=1e-6)
    assert proposals[1].probability == pytest.approx(0.104898, abs=1e-6)


def test_parameter_sites_can_be_disabled() -> None:
    options = QueryOptions(
        use_class_context=False,
        use_method_context=False,
        use_definition=False,
        use_parameter_sites=False,
    )
    query = _query("LT.a()V")
    query.add_call_site(CallSite.parameter("LU.use(LT;)V", 0))
    with_sites = PBNRecommender(_network(), options).query(query)
    without_sites = PBNRecommender(_network(), NO_CONTEXT).query(_query("LT.a()V"))
    assert with_sites == without_sites
    assert with_sites[0].probability == pytest.approx(0.758621, abs=1e-6)


def test_evidence_is_reset_between_queries() -> None:
    recommender = PBNRecommender(_network(), NO_CONTEXT)
    recommender.query(_query("LT.a()V"))
    assert recommender.engine.evidence == {}
    proposals = recommender.query(_query())
    assert len(proposals) == 3


def test_ties_are_ordered_by_method_name() -> None:
    network = BayesianNetwork(
        nodes=[
            NetworkNode(identifier="patterns", states=("p1", "p2"), probabilities=(0.5, 0.5)),
            _indicator("C_LT.z()V", 0.4, 0.4),
            _indicator("C_LT.y()V", 0.4, 0.4),
            _indicator("C_LT.x()V", 0.9, 0.9),
        ]
    )
    proposals = PBNRecommender(network, NO_CONTEXT).query(_query())
    assert [p.name for p in proposals] == ["LT.x()V", "LT.y()V", "LT.z()V"]


def test_numerical_instability_yields_no_proposals(tmp_path: Path) -> None:
    network = BayesianNetwork(
        nodes=[
            NetworkNode(identifier="patterns", states=("p1", "p2"), probabilities=(0.5, 0.5)),
            _indicator("C_LT.never()V", 0.0, 0.0),
            _indicator("C_LT.a()V", 0.5, 0.5),
        ]
    )
    store = ArtifactStore(tmp_path, "eval")
    recommender = PBNRecommender(network, NO_CONTEXT, event_logger=EventLogger(store))
    assert recommender.query(_query("LT.never()V")) == []
    assert _events(store)[-1]["event_type"] == "recommender.numerical_instability"
    assert [p.name for p in recommender.query(_query())] == ["LT.a()V", "LT.never()V"]


def test_diagnostics_reach_module_logger_without_event_logger(caplog: pytest.LogCaptureFixture) -> None:
    network = BayesianNetwork(
        nodes=[
            NetworkNode(identifier="patterns", states=("p1", "p2"), probabilities=(0.5, 0.5)),
            _indicator("C_LT.never()V", 0.0, 0.0),
            _indicator("C_LT.a()V", 0.5, 0.5),
        ]
    )
    recommender = PBNRecommender(network, NO_CONTEXT)
    with caplog.at_level(logging.DEBUG, logger="call_recommender.recommender.pbn"):
        assert recommender.query(_query("LT.never()V", "LT.zzz()V")) == []

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "Numerical instability" in warnings[0].getMessage()
    debug = [r.getMessage() for r in caplog.records if r.levelno == logging.DEBUG]
    assert any("recommender.unknown_node" in message and "C_LT.zzz()V" in message for message in debug)


def test_patterns_with_probability() -> None:
    recommender = PBNRecommender(_network(), NO_CONTEXT)
    patterns = recommender.get_patterns_with_probability()
    assert [name for name, _ in patterns] == ["p1", "p2"]
    assert [prob for _, prob in patterns] == pytest.approx([0.6, 0.4])


def test_query_pattern() -> None:
    recommender = PBNRecommender(_network(), NO_CONTEXT)
    proposals = recommender.query_pattern("p2")
    assert [p.name for p in proposals] == ["LT.c()V", "LT.b()V", "LT.a()V"]
    assert [p.probability for p in proposals] == pytest.approx([0.7, 0.2, 0.1])
    with pytest.raises(ValueError):
        recommender.query_pattern("p9")


def test_get_size_depends_on_precision() -> None:
    network = BayesianNetwork(
        nodes=[
            NetworkNode(identifier="patterns", states=("p1", "p2", "p3"), probabilities=(0.2, 0.3, 0.5)),
            NetworkNode(
                identifier="C_LT.a()V",
                states=("true", "false"),
                parents=("patterns",),
                probabilities=(0.1, 0.9, 0.5, 0.5, 0.9, 0.1),
            ),
        ]
    )
    assert PBNRecommender(network, QueryOptions()).get_size() == 9 * 8
    assert PBNRecommender(network, QueryOptions(use_double_precision=False)).get_size() == 9 * 4
    assert PBNRecommender(_network(), QueryOptions()).get_size() == 30 * 8


def test_single_precision_matches_double() -> None:
    options = QueryOptions(
        use_class_context=False,
        use_method_context=False,
        use_definition=False,
        use_double_precision=False,
    )
    proposals = PBNRecommender(_network(), options).query(_query("LT.a()V"))
    assert proposals[0].probability == pytest.approx(0.758621, abs=1e-5)


def test_options_validation_and_settings() -> None:
    with pytest.raises(ValueError):
        QueryOptions(min_probability=1.5)
    options = QueryOptions.from_settings(
        {"recommender": {"use_definition": False, "use_double_precision": False, "min_probability": 0.2}}
    )
    assert options.use_definition is False
    assert options.use_class_context is True
    assert options.bytes_per_value == 4
    assert options.min_probability == 0.2


def test_factory_shares_index() -> None:
    index = NetworkIndex.build(_network())
    first = build_recommender({"recommender": {"use_class_context": False}}, index)
    second = build_recommender({}, index)
    assert first.index is second.index
    assert first.engine is not second.engine
    assert first.options.use_class_context is False
