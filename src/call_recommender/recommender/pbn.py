"""Pattern-based Bayesian network (PBN) call recommender.

The trained network has a hidden pattern node, context and definition nodes and
one boolean indicator node per known call (and per parameter site). A query is
turned into evidence on those nodes, and every call that is not yet part of
the query is proposed with its posterior probability of being called.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Set, Tuple

from call_recommender.inference.engine import InferenceEngine, NumericalInstabilityError
from call_recommender.inference.network import BayesianNetwork
from call_recommender.observability.logger import EventLogger
from call_recommender.recommender.constants import (
    STATE_TRUE,
    new_call_site,
    new_class_context,
    new_definition,
    new_method_context,
    new_parameter_site,
)
from call_recommender.recommender.index import NetworkIndex, NodeRole
from call_recommender.recommender.options import QueryOptions
from call_recommender.recommender.proposals import Proposal, sort_proposals
from call_recommender.telemetry import span
from call_recommender.usages.model import AbstractUsage, CallSite, CallSiteKind

logger = logging.getLogger(__name__)


class PBNRecommender:
    def __init__(
        self,
        network: BayesianNetwork,
        options: Optional[QueryOptions] = None,
        event_logger: EventLogger | None = None,
        index: NetworkIndex | None = None,
    ) -> None:
        self.options = options or QueryOptions()
        self.index = index or NetworkIndex.build(network)
        self.event_logger = event_logger
        self.engine = InferenceEngine(
            self.index.network,
            double_precision=self.options.use_double_precision,
        )
        self._queried_methods: Set[str] = set()

    @classmethod
    def from_index(
        cls,
        index: NetworkIndex,
        options: Optional[QueryOptions] = None,
        event_logger: EventLogger | None = None,
    ) -> "PBNRecommender":
        return cls(index.network, options=options, event_logger=event_logger, index=index)

    def clear_evidence(self) -> None:
        self.engine.clear_evidence()
        self._queried_methods.clear()

    def query(self, query: AbstractUsage) -> List[Proposal]:
        self.clear_evidence()
        with span("recommender.query", call_sites=len(query.all_call_sites)):
            if self.options.use_class_context:
                self._add_evidence_if_known(
                    NodeRole.CLASS_CONTEXT, new_class_context(query.class_context)
                )
            if self.options.use_method_context:
                self._add_evidence_if_known(
                    NodeRole.METHOD_CONTEXT, new_method_context(query.method_context)
                )
            if self.options.use_definition:
                self._add_evidence_if_known(NodeRole.DEFINITION, new_definition(query.definition))
            for site in query.all_call_sites:
                self._mark_site(query.type, site)
            try:
                return self._collect_call_probabilities()
            finally:
                self.clear_evidence()

    def get_patterns_with_probability(self) -> List[Tuple[str, float]]:
        self.clear_evidence()
        pattern_node = self.index.pattern_node
        beliefs = self.engine.beliefs(pattern_node)
        outcomes = self.engine.states(pattern_node)
        return [(outcome, float(beliefs[i])) for i, outcome in enumerate(outcomes)]

    def query_pattern(self, pattern: str) -> List[Proposal]:
        self.clear_evidence()
        pattern_node = self.index.pattern_node
        if pattern not in self.engine.states(pattern_node):
            raise ValueError(f"Unknown pattern: {pattern}")
        with span("recommender.query_pattern", pattern=pattern):
            self.engine.add_evidence(pattern_node, pattern)
            try:
                return self._collect_call_probabilities()
            finally:
                self.clear_evidence()

    def get_size(self) -> int:
        bytes_per_value = self.options.bytes_per_value
        return sum(self.engine.table_size(node) * bytes_per_value for node in self.engine.nodes)

    def _add_evidence_if_known(self, role: NodeRole, outcome: str) -> None:
        node = self.index.role_node(role)
        if node is None:
            self._log("recommender.unknown_node", node=role.value)
            return
        if outcome in self.engine.states(node):
            self.engine.add_evidence(node, outcome)
        else:
            self._log("recommender.unknown_outcome", node=node, outcome=outcome)

    def _mark_site(self, type_name: Optional[str], site: CallSite) -> None:
        if site.kind == CallSiteKind.PARAMETER:
            if not self.options.use_parameter_sites:
                return
            node = self.index.parameter_nodes.get((site.method, site.arg_index))
            if node is None:
                self._log(
                    "recommender.unknown_node",
                    node=new_parameter_site(site.method, site.arg_index),
                    type=type_name,
                )
                return
            self.engine.add_evidence(node, STATE_TRUE)
            return
        node = self.index.call_nodes.get(site.method)
        if node is None:
            self._log("recommender.unknown_node", node=new_call_site(site.method), type=type_name)
            return
        self._queried_methods.add(site.method)
        self.engine.add_evidence(node, STATE_TRUE)

    def _collect_call_probabilities(self) -> List[Proposal]:
        proposals: List[Proposal] = []
        try:
            for method, node in self.index.call_nodes.items():
                if method in self._queried_methods:
                    continue
                beliefs = self.engine.beliefs(node)
                probability = float(beliefs[self.engine.states(node).index(STATE_TRUE)])
                if probability >= self.options.min_probability:
                    proposals.append(Proposal(method, probability))
        except NumericalInstabilityError as exc:
            logger.warning(f"Numerical instability while reading call beliefs: {exc}")
            self._log("recommender.numerical_instability", error=str(exc))
            return []
        return sort_proposals(proposals)

    def _log(self, event_type: str, **fields: object) -> None:
        logger.debug("%s %s", event_type, fields)
        if self.event_logger:
            self.event_logger.log(event_type, **fields)
