"""Exact inference over a discrete Bayesian network.

The engine keeps one evidence assignment and answers marginal queries by
variable elimination. Only the ancestors of the queried node and of the
evidence nodes take part in a query; every other node sums out to one and is
pruned before elimination.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Set, Tuple

import numpy as np

from call_recommender.inference.network import BayesianNetwork


class NumericalInstabilityError(ArithmeticError):
    """Raised when a marginal cannot be normalized (zero or non-finite mass)."""


@dataclass
class _Factor:
    variables: Tuple[str, ...]
    values: np.ndarray

    def reduce(self, evidence: Mapping[str, int]) -> "_Factor":
        values = self.values
        variables = list(self.variables)
        for var, index in evidence.items():
            if var not in variables:
                continue
            axis = variables.index(var)
            values = np.take(values, index, axis=axis)
            variables.pop(axis)
        return _Factor(tuple(variables), values)

    def sum_out(self, var: str) -> "_Factor":
        axis = self.variables.index(var)
        variables = self.variables[:axis] + self.variables[axis + 1 :]
        return _Factor(variables, np.sum(self.values, axis=axis))


def _expand(factor: _Factor, union: Tuple[str, ...]) -> np.ndarray:
    order = sorted(range(len(factor.variables)), key=lambda i: union.index(factor.variables[i]))
    values = np.transpose(factor.values, order) if order else factor.values
    sizes = dict(zip(factor.variables, factor.values.shape))
    return values.reshape([sizes.get(var, 1) for var in union])


def _multiply(factors: Iterable[_Factor]) -> _Factor:
    factors = list(factors)
    union: List[str] = []
    for factor in factors:
        for var in factor.variables:
            if var not in union:
                union.append(var)
    union_t = tuple(union)
    result = None
    for factor in factors:
        expanded = _expand(factor, union_t)
        result = expanded if result is None else result * expanded
    return _Factor(union_t, result)


class InferenceEngine:
    def __init__(self, network: BayesianNetwork, double_precision: bool = True) -> None:
        self.dtype = np.float64 if double_precision else np.float32
        self._states: Dict[str, Tuple[str, ...]] = {}
        self._parents: Dict[str, Tuple[str, ...]] = {}
        self._tables: Dict[str, np.ndarray] = {}
        for node in network.nodes:
            self._states[node.identifier] = tuple(node.states)
            self._parents[node.identifier] = tuple(node.parents)
        for node in network.nodes:
            shape = [len(self._states[p]) for p in node.parents] + [len(node.states)]
            table = np.asarray(node.probabilities, dtype=self.dtype).reshape(shape)
            self._tables[node.identifier] = table
        self._evidence: Dict[str, int] = {}
        self._cache: Dict[str, np.ndarray] = {}

    @property
    def nodes(self) -> List[str]:
        return list(self._states)

    def states(self, node: str) -> Tuple[str, ...]:
        return self._states[node]

    def table_size(self, node: str) -> int:
        return int(self._tables[node].size)

    @property
    def evidence(self) -> Dict[str, str]:
        return {node: self._states[node][index] for node, index in self._evidence.items()}

    def add_evidence(self, node: str, outcome: str) -> None:
        if node not in self._states:
            raise ValueError(f"Unknown node: {node}")
        states = self._states[node]
        if outcome not in states:
            raise ValueError(f"Unknown outcome {outcome!r} for node {node}")
        self._evidence[node] = states.index(outcome)
        self._cache.clear()

    def set_evidence(self, evidence: Mapping[str, str]) -> None:
        self.clear_evidence()
        for node, outcome in evidence.items():
            self.add_evidence(node, outcome)

    def clear_evidence(self) -> None:
        self._evidence = {}
        self._cache.clear()

    def beliefs(self, node: str) -> np.ndarray:
        if node not in self._states:
            raise ValueError(f"Unknown node: {node}")
        cached = self._cache.get(node)
        if cached is not None:
            return cached.copy()
        if node in self._evidence:
            result = np.zeros(len(self._states[node]), dtype=self.dtype)
            result[self._evidence[node]] = 1.0
        else:
            result = self._eliminate(node)
        self._cache[node] = result
        return result.copy()

    def _relevant(self, node: str) -> Set[str]:
        relevant: Set[str] = set()
        stack = [node, *self._evidence]
        while stack:
            current = stack.pop()
            if current in relevant:
                continue
            relevant.add(current)
            stack.extend(self._parents[current])
        return relevant

    def _eliminate(self, target: str) -> np.ndarray:
        relevant = self._relevant(target)
        factors = [
            _Factor(self._parents[var] + (var,), self._tables[var]).reduce(self._evidence)
            for var in relevant
        ]
        hidden = {var for var in relevant if var != target and var not in self._evidence}
        while hidden:
            var = min(hidden, key=lambda v: (_elimination_cost(factors, v), v))
            hidden.discard(var)
            involved = [f for f in factors if var in f.variables]
            factors = [f for f in factors if var not in f.variables]
            factors.append(_multiply(involved).sum_out(var))
        joint = _multiply(factors)
        values = np.asarray(joint.values, dtype=self.dtype).reshape(-1)
        total = values.sum()
        if not np.isfinite(total) or total <= 0.0 or not np.all(np.isfinite(values)):
            raise NumericalInstabilityError(
                f"Cannot normalize beliefs of {target} under evidence {sorted(self._evidence)}"
            )
        return values / total


def _elimination_cost(factors: List[_Factor], var: str) -> int:
    sizes: Dict[str, int] = {}
    for factor in factors:
        if var in factor.variables:
            sizes.update(zip(factor.variables, factor.values.shape))
    cost = 1
    for name, size in sizes.items():
        if name != var:
            cost *= size
    return cost
