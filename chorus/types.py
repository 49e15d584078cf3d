"""
Shared type definitions for chorus.

Usage:
    from chorus.types import Middleware, NextFunction

    async def greet(meta: Meta, call_next: NextFunction) -> Any:
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeAlias, TypeVar, Union

# === Field Names ===

UserField: TypeAlias = str
"""Name of a user record field that can be requested from storage."""

GroupField: TypeAlias = str
"""Name of a group record field that can be requested from storage."""

# === Callback Types ===

NextFunction: TypeAlias = Callable[[], Awaitable[Any]]
"""Continuation handed to a middleware; awaiting it runs the rest of the chain."""

Middleware: TypeAlias = "Callable[[Meta, NextFunction], Any]"
"""Middleware callable: ``(meta, call_next)``; may be sync or async."""

HookHandler: TypeAlias = Callable[..., Any]
"""Hook listener; may return an awaitable. A truthy result marks the event handled."""

T = TypeVar("T")

UserType: TypeAlias = Union[T, Callable[["UserData | None"], T]]
"""A config value given either directly or as a function of the user record."""

if TYPE_CHECKING:
    from chorus.database import UserData
    from chorus.meta import Meta
