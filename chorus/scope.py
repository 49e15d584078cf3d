"""
Context scopes: where a command, middleware or hook is reachable.

A ``ScopeSet`` restricts a single identity type (user, group or discuss) either
to an allow-list (``include``) or to everything but a deny-list (``exclude``).
A ``Context`` holds one ScopeSet per identity type and supports boolean algebra,
containment checks and matching against inbound events.

Contexts are immutable values. Two contexts are interchangeable iff their
identifiers are equal; the identifier is also the canonical text form::

    +group:100,200;-user:5

Identity types omitted from the text match everything.

Usage:
    from chorus.scope import Context

    admins = Context.users([1, 2])
    public = Context.groups([100]).plus(Context.groups([200]))
    assert Context.parse(str(public)) == public
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, AbstractSet, Callable, Iterable, Optional

from chorus.exceptions import ScopeFormatError

if TYPE_CHECKING:
    from chorus.meta import Meta


class ContextType(str, Enum):
    """Identity types an inbound event can belong to, in canonical order."""

    USER = "user"
    GROUP = "group"
    DISCUSS = "discuss"


CONTEXT_TYPES: tuple[ContextType, ...] = tuple(ContextType)

_SEGMENT_RE = re.compile(r"^([+-])(user|group|discuss):([0-9,]*)$")


@dataclass(frozen=True)
class ScopeSet:
    """Allow-list or deny-list of ids for one identity type.

    Exactly one of ``include`` and ``exclude`` is set.
    ``include=frozenset()`` matches nothing, ``exclude=frozenset()`` matches everything.
    """

    include: Optional[frozenset[int]] = None
    exclude: Optional[frozenset[int]] = None

    def __post_init__(self) -> None:
        if (self.include is None) == (self.exclude is None):
            raise ValueError("ScopeSet requires exactly one of include or exclude")

    @classmethod
    def allow(cls, ids: Iterable[int] = ()) -> ScopeSet:
        return cls(include=frozenset(ids))

    @classmethod
    def deny(cls, ids: Iterable[int] = ()) -> ScopeSet:
        return cls(exclude=frozenset(ids))

    @property
    def is_everything(self) -> bool:
        return self.exclude is not None and not self.exclude

    @property
    def is_nothing(self) -> bool:
        return self.include is not None and not self.include

    def match(self, id: int) -> bool:
        if self.include is not None:
            return id in self.include
        return id not in self.exclude

    def plus(self, other: ScopeSet) -> ScopeSet:
        """Union."""
        if self.include is not None:
            if other.include is not None:
                return ScopeSet(include=self.include | other.include)
            return ScopeSet(exclude=other.exclude - self.include)
        if other.include is not None:
            return ScopeSet(exclude=self.exclude - other.include)
        return ScopeSet(exclude=self.exclude & other.exclude)

    def minus(self, other: ScopeSet) -> ScopeSet:
        """Difference."""
        if self.include is not None:
            if other.include is not None:
                return ScopeSet(include=self.include - other.include)
            return ScopeSet(include=self.include & other.exclude)
        if other.include is not None:
            return ScopeSet(exclude=self.exclude | other.include)
        return ScopeSet(include=other.exclude - self.exclude)

    def intersect(self, other: ScopeSet) -> ScopeSet:
        """Intersection."""
        if self.include is not None:
            if other.include is not None:
                return ScopeSet(include=self.include & other.include)
            return ScopeSet(include=self.include - other.exclude)
        if other.include is not None:
            return ScopeSet(include=other.include - self.exclude)
        return ScopeSet(exclude=self.exclude | other.exclude)

    def inverse(self) -> ScopeSet:
        if self.include is not None:
            return ScopeSet(exclude=self.include)
        return ScopeSet(include=self.exclude)

    def contain(self, other: ScopeSet) -> bool:
        """Whether every id matched by ``other`` is matched by this scope."""
        if self.include is not None:
            return other.include is not None and other.include <= self.include
        if other.include is not None:
            return self.exclude.isdisjoint(other.include)
        return self.exclude <= other.exclude

    def stringify(self, type: ContextType) -> str:
        sign, ids = ("+", self.include) if self.include is not None else ("-", self.exclude)
        return f"{sign}{type.value}:{','.join(str(i) for i in sorted(ids))}"


def _ids(ids: Optional[Iterable[int]]) -> Optional[AbstractSet[int]]:
    return None if ids is None else frozenset(int(i) for i in ids)


class Context:
    """Cross-type scope tuple defining where something is reachable."""

    __slots__ = ("_scope", "_identifier")

    def __init__(self, scope: Iterable[ScopeSet]):
        scope = tuple(scope)
        if len(scope) != len(CONTEXT_TYPES):
            raise ValueError(f"Context requires {len(CONTEXT_TYPES)} scope sets, got {len(scope)}")
        self._scope: tuple[ScopeSet, ...] = scope
        self._identifier = ";".join(
            subscope.stringify(type)
            for type, subscope in zip(CONTEXT_TYPES, scope)
            if not subscope.is_everything
        )

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def all(cls) -> Context:
        """Context matching every event."""
        return cls(ScopeSet.deny() for _ in CONTEXT_TYPES)

    @classmethod
    def noop(cls) -> Context:
        """Context matching no event."""
        return cls(ScopeSet.allow() for _ in CONTEXT_TYPES)

    @classmethod
    def _single(cls, type: ContextType, ids: Optional[Iterable[int]]) -> Context:
        selected = _ids(ids)
        return cls(
            (ScopeSet.deny() if selected is None else ScopeSet.allow(selected))
            if t is type
            else ScopeSet.allow()
            for t in CONTEXT_TYPES
        )

    @classmethod
    def users(cls, ids: Optional[Iterable[int]] = None) -> Context:
        """Private chats with the given users, or with every user when ``ids`` is None."""
        return cls._single(ContextType.USER, ids)

    @classmethod
    def groups(cls, ids: Optional[Iterable[int]] = None) -> Context:
        return cls._single(ContextType.GROUP, ids)

    @classmethod
    def discusses(cls, ids: Optional[Iterable[int]] = None) -> Context:
        return cls._single(ContextType.DISCUSS, ids)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def scope(self) -> tuple[ScopeSet, ...]:
        return self._scope

    def __getitem__(self, type: ContextType) -> ScopeSet:
        return self._scope[CONTEXT_TYPES.index(ContextType(type))]

    def stringify(self) -> str:
        return self._identifier

    @classmethod
    def parse(cls, identifier: str) -> Context:
        """Parse the canonical text form; omitted identity types match everything."""
        scope = {type: ScopeSet.deny() for type in CONTEXT_TYPES}
        if identifier:
            for segment in identifier.split(";"):
                capture = _SEGMENT_RE.match(segment)
                if not capture:
                    raise ScopeFormatError(identifier, segment)
                sign, type, id_list = capture.groups()
                ids = [int(n) for n in id_list.split(",") if n]
                if id_list and len(ids) != len(id_list.split(",")):
                    raise ScopeFormatError(identifier, segment)
                scope[ContextType(type)] = ScopeSet.allow(ids) if sign == "+" else ScopeSet.deny(ids)
        return cls(scope[type] for type in CONTEXT_TYPES)

    def __str__(self) -> str:
        return self._identifier

    def __repr__(self) -> str:
        return f"Context({self._identifier!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Context):
            return NotImplemented
        return self._identifier == other._identifier

    def __hash__(self) -> int:
        return hash(self._identifier)

    # ------------------------------------------------------------------
    # Algebra
    # ------------------------------------------------------------------

    def _combine(self, other: Context, op: Callable[[ScopeSet, ScopeSet], ScopeSet]) -> Context:
        return Context(op(a, b) for a, b in zip(self._scope, other._scope))

    def plus(self, other: Context) -> Context:
        return self._combine(other, ScopeSet.plus)

    def minus(self, other: Context) -> Context:
        return self._combine(other, ScopeSet.minus)

    def intersect(self, other: Context) -> Context:
        return self._combine(other, ScopeSet.intersect)

    def inverse(self) -> Context:
        return Context(subscope.inverse() for subscope in self._scope)

    __or__ = plus
    __sub__ = minus
    __and__ = intersect
    __invert__ = inverse

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def is_noop(self) -> bool:
        return self._identifier == NOOP_IDENTIFIER

    def match_identity(self, type: ContextType, id: int) -> bool:
        return self[type].match(id)

    def match(self, meta: Meta) -> bool:
        """Whether an inbound event belongs to this context.

        Events without an identity (heartbeats, lifecycle notices) only belong
        to contexts that match every id of every type.
        """
        if not meta.has_identity:
            return all(subscope.is_everything for subscope in self._scope)
        return self.match_identity(meta.context_type, meta.context_id)

    def contain(self, other: Context) -> bool:
        """Whether this context matches a superset of what ``other`` matches."""
        return all(a.contain(b) for a, b in zip(self._scope, other._scope))


NOOP_IDENTIFIER = Context.noop().identifier


__all__ = [
    "CONTEXT_TYPES",
    "Context",
    "ContextType",
    "NOOP_IDENTIFIER",
    "ScopeSet",
]
