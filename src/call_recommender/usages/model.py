"""Object usage records.

A usage describes how one object instance was used inside an enclosing method:
its static type, the enclosing class and method, how the object was obtained
(definition site) and the call sites it took part in. ``Usage`` is the
immutable ground-truth variant, ``Query`` the mutable variant that carries
evidence while an edit is still in progress.

Type and method identifiers are plain strings in VM notation, e.g. ``LT`` for a
type and ``LT.m1()V`` for a method.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple


class CallSiteKind(str, Enum):
    RECEIVER = "RECEIVER"  # object is the receiver of the call
    PARAMETER = "PARAMETER"  # object is passed as an argument


@dataclass(frozen=True)
class CallSite:
    kind: CallSiteKind
    method: str
    arg_index: int = -1

    @classmethod
    def receiver(cls, method: str) -> "CallSite":
        return cls(CallSiteKind.RECEIVER, method)

    @classmethod
    def parameter(cls, method: str, arg_index: int) -> "CallSite":
        if arg_index < 0:
            raise ValueError(f"arg_index must be >= 0, got {arg_index}")
        return cls(CallSiteKind.PARAMETER, method, arg_index)

    def sort_key(self) -> Tuple[str, str, int]:
        return (self.method, self.kind.value, self.arg_index)


class DefinitionKind(str, Enum):
    NEW = "NEW"  # constructor call
    PARAM = "PARAM"  # parameter of the enclosing method
    FIELD = "FIELD"
    RETURN = "RETURN"  # return value of a method call
    THIS = "THIS"
    CONSTANT = "CONSTANT"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class DefinitionSite:
    kind: DefinitionKind
    member: Optional[str] = None
    arg_index: int = -1

    @classmethod
    def new(cls, constructor: str) -> "DefinitionSite":
        return cls(DefinitionKind.NEW, constructor)

    @classmethod
    def param(cls, method: str, arg_index: int) -> "DefinitionSite":
        return cls(DefinitionKind.PARAM, method, arg_index)

    @classmethod
    def from_field(cls, field_name: str) -> "DefinitionSite":
        return cls(DefinitionKind.FIELD, field_name)

    @classmethod
    def returned(cls, method: str) -> "DefinitionSite":
        return cls(DefinitionKind.RETURN, method)

    @classmethod
    def this(cls) -> "DefinitionSite":
        return cls(DefinitionKind.THIS)

    @classmethod
    def constant(cls) -> "DefinitionSite":
        return cls(DefinitionKind.CONSTANT)

    @classmethod
    def unknown(cls) -> "DefinitionSite":
        return cls(DefinitionKind.UNKNOWN)


def _dedupe(sites: Iterable[CallSite]) -> Tuple[CallSite, ...]:
    seen: dict[CallSite, None] = {}
    for site in sites:
        seen.setdefault(site, None)
    return tuple(seen)


class AbstractUsage(ABC):
    """Read access shared by ``Usage`` and ``Query``.

    Equality is structural: call sites compare as a set, so two usages that
    observed the same calls in a different order are equal.
    """

    type: Optional[str]
    class_context: Optional[str]
    method_context: Optional[str]
    definition: Optional[DefinitionSite]

    @property
    @abstractmethod
    def all_call_sites(self) -> Tuple[CallSite, ...]:
        ...

    @property
    def receiver_call_sites(self) -> Tuple[CallSite, ...]:
        return tuple(s for s in self.all_call_sites if s.kind == CallSiteKind.RECEIVER)

    @property
    def parameter_call_sites(self) -> Tuple[CallSite, ...]:
        return tuple(s for s in self.all_call_sites if s.kind == CallSiteKind.PARAMETER)

    def key(self) -> tuple:
        return (
            self.type,
            self.class_context,
            self.method_context,
            self.definition,
            frozenset(self.all_call_sites),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AbstractUsage):
            return NotImplemented
        return self.key() == other.key()


@dataclass(frozen=True, eq=False)
class Usage(AbstractUsage):
    type: Optional[str] = None
    class_context: Optional[str] = None
    method_context: Optional[str] = None
    definition: Optional[DefinitionSite] = None
    call_sites: Tuple[CallSite, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "call_sites", _dedupe(self.call_sites))

    @property
    def all_call_sites(self) -> Tuple[CallSite, ...]:
        return self.call_sites

    def __hash__(self) -> int:
        return hash(self.key())


class Query(AbstractUsage):
    def __init__(
        self,
        type: Optional[str] = None,
        class_context: Optional[str] = None,
        method_context: Optional[str] = None,
        definition: Optional[DefinitionSite] = None,
        call_sites: Iterable[CallSite] = (),
    ) -> None:
        self.type = type
        self.class_context = class_context
        self.method_context = method_context
        self.definition = definition
        self._sites: List[CallSite] = list(_dedupe(call_sites))

    __hash__ = None  # type: ignore[assignment]

    @classmethod
    def copy_from(cls, usage: AbstractUsage) -> "Query":
        return cls(
            type=usage.type,
            class_context=usage.class_context,
            method_context=usage.method_context,
            definition=usage.definition,
            call_sites=usage.all_call_sites,
        )

    @property
    def all_call_sites(self) -> Tuple[CallSite, ...]:
        return tuple(self._sites)

    def add_call_site(self, site: CallSite) -> bool:
        if site in self._sites:
            return False
        self._sites.append(site)
        return True

    def remove_call_site(self, site: CallSite) -> bool:
        if site not in self._sites:
            return False
        self._sites.remove(site)
        return True

    def reset_call_sites(self) -> None:
        self._sites = []

    def freeze(self) -> Usage:
        return Usage(
            type=self.type,
            class_context=self.class_context,
            method_context=self.method_context,
            definition=self.definition,
            call_sites=tuple(self._sites),
        )

    def __repr__(self) -> str:
        return (
            f"Query(type={self.type!r}, class_context={self.class_context!r}, "
            f"method_context={self.method_context!r}, definition={self.definition!r}, "
            f"call_sites={self._sites!r})"
        )
