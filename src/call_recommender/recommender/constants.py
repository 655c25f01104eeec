"""Node naming conventions of trained call models."""
from __future__ import annotations

from typing import Optional

from call_recommender.usages.model import DefinitionKind, DefinitionSite

PATTERN_TITLE = "patterns"
CLASS_CONTEXT_TITLE = "classContext"
METHOD_CONTEXT_TITLE = "methodContext"
DEFINITION_TITLE = "definition"
CALL_PREFIX = "C_"
PARAMETER_PREFIX = "P_"

STATE_TRUE = "true"
STATE_FALSE = "false"

UNKNOWN_CONTEXT = "UNKNOWN"


def new_class_context(type_name: Optional[str]) -> str:
    return type_name or UNKNOWN_CONTEXT


def new_method_context(method: Optional[str]) -> str:
    return method or UNKNOWN_CONTEXT


def new_definition(definition: Optional[DefinitionSite]) -> str:
    if definition is None:
        return DefinitionKind.UNKNOWN.value
    if definition.kind == DefinitionKind.PARAM:
        return f"{definition.kind.value}:{definition.member}#{definition.arg_index}"
    if definition.member:
        return f"{definition.kind.value}:{definition.member}"
    return definition.kind.value


def new_call_site(method: str) -> str:
    return f"{CALL_PREFIX}{method}"


def new_parameter_site(method: str, arg_index: int) -> str:
    return f"{PARAMETER_PREFIX}{method}#{arg_index}"
