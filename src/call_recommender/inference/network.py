"""Already-parsed Bayesian network handed to the recommender.

Nodes carry their outcome names, parent identifiers and a flattened
conditional probability table. The table is laid out parents-major in the
declared parent order, with the node's own outcomes varying fastest, so a node
with parents ``(A, B)`` has ``|A| * |B| * |states|`` entries.
"""
from __future__ import annotations

import math
from typing import Dict, List, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


class NetworkNode(BaseModel):
    identifier: str = Field(min_length=1)
    states: Tuple[str, ...] = Field(min_length=1)
    parents: Tuple[str, ...] = ()
    probabilities: Tuple[float, ...]

    model_config = {"frozen": True}

    @field_validator("states")
    @classmethod
    def validate_states(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate states: {list(v)}")
        return v

    @field_validator("probabilities")
    @classmethod
    def validate_probabilities(cls, v: Tuple[float, ...]) -> Tuple[float, ...]:
        for value in v:
            if not math.isfinite(value) or value < 0.0:
                raise ValueError(f"Probabilities must be finite and >= 0, got {value}")
        return v

    @field_validator("parents")
    @classmethod
    def validate_parents(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate parents: {list(v)}")
        return v


class BayesianNetwork(BaseModel):
    nodes: List[NetworkNode]

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_structure(self) -> "BayesianNetwork":
        by_id: Dict[str, NetworkNode] = {}
        for node in self.nodes:
            if node.identifier in by_id:
                raise ValueError(f"Duplicate node identifier: {node.identifier}")
            by_id[node.identifier] = node
        for node in self.nodes:
            if node.identifier in node.parents:
                raise ValueError(f"Node {node.identifier} is its own parent")
            expected = len(node.states)
            for parent in node.parents:
                if parent not in by_id:
                    raise ValueError(f"Node {node.identifier} has unknown parent {parent}")
                expected *= len(by_id[parent].states)
            if len(node.probabilities) != expected:
                raise ValueError(
                    f"Node {node.identifier} expects {expected} probabilities, "
                    f"got {len(node.probabilities)}"
                )
        _topological_order(self.nodes)
        return self

    def node(self, identifier: str) -> NetworkNode:
        for node in self.nodes:
            if node.identifier == identifier:
                return node
        raise KeyError(identifier)

    def topological_order(self) -> List[str]:
        return _topological_order(self.nodes)


def _topological_order(nodes: List[NetworkNode]) -> List[str]:
    remaining = {node.identifier: set(node.parents) for node in nodes}
    order: List[str] = []
    while remaining:
        ready = [ident for ident, parents in remaining.items() if not parents]
        if not ready:
            raise ValueError(f"Network contains a cycle among: {sorted(remaining)}")
        for ident in ready:
            order.append(ident)
            del remaining[ident]
        for parents in remaining.values():
            parents.difference_update(ready)
    return order
