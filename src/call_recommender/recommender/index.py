from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from call_recommender.inference.network import BayesianNetwork, NetworkNode
from call_recommender.recommender.constants import (
    CALL_PREFIX,
    CLASS_CONTEXT_TITLE,
    DEFINITION_TITLE,
    METHOD_CONTEXT_TITLE,
    PARAMETER_PREFIX,
    PATTERN_TITLE,
    STATE_TRUE,
)


class NodeRole(str, Enum):
    PATTERN = "pattern"
    CLASS_CONTEXT = "class_context"
    METHOD_CONTEXT = "method_context"
    DEFINITION = "definition"


_ROLE_TITLES = {
    PATTERN_TITLE: NodeRole.PATTERN,
    CLASS_CONTEXT_TITLE: NodeRole.CLASS_CONTEXT,
    METHOD_CONTEXT_TITLE: NodeRole.METHOD_CONTEXT,
    DEFINITION_TITLE: NodeRole.DEFINITION,
}


@dataclass(frozen=True)
class NetworkIndex:
    """Role bindings of a trained network, resolved once from node identifiers.

    The index is immutable and can be shared by several recommenders, each of
    which keeps its own evidence.
    """

    network: BayesianNetwork
    roles: Mapping[NodeRole, str] = field(default_factory=dict)
    call_nodes: Mapping[str, str] = field(default_factory=dict)
    parameter_nodes: Mapping[Tuple[str, int], str] = field(default_factory=dict)

    @classmethod
    def build(cls, network: BayesianNetwork) -> "NetworkIndex":
        roles: Dict[NodeRole, str] = {}
        call_nodes: Dict[str, str] = {}
        parameter_nodes: Dict[Tuple[str, int], str] = {}
        for node in network.nodes:
            ident = node.identifier
            role = _ROLE_TITLES.get(ident)
            if role is not None:
                roles[role] = ident
            elif ident.startswith(CALL_PREFIX):
                _check_indicator(node)
                call_nodes[ident[len(CALL_PREFIX):]] = ident
            elif ident.startswith(PARAMETER_PREFIX):
                _check_indicator(node)
                method, _, arg_index = ident[len(PARAMETER_PREFIX):].rpartition("#")
                if not method or not arg_index.isdigit():
                    raise ValueError(f"Malformed parameter site node: {ident}")
                parameter_nodes[(method, int(arg_index))] = ident
        if NodeRole.PATTERN not in roles:
            raise ValueError(f"Network has no pattern node '{PATTERN_TITLE}'")
        return cls(
            network=network,
            roles=MappingProxyType(roles),
            call_nodes=MappingProxyType(call_nodes),
            parameter_nodes=MappingProxyType(parameter_nodes),
        )

    def role_node(self, role: NodeRole) -> Optional[str]:
        return self.roles.get(role)

    @property
    def pattern_node(self) -> str:
        return self.roles[NodeRole.PATTERN]


def _check_indicator(node: NetworkNode) -> None:
    if len(node.states) != 2 or STATE_TRUE not in node.states:
        raise ValueError(
            f"Indicator node {node.identifier} must have two states including "
            f"'{STATE_TRUE}', got {list(node.states)}"
        )
