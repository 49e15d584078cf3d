"""
Protocol definitions for chorus collaborators.

These protocols define the interfaces that storage and transport
implementations must follow, enabling better type checking and easier
testing with mock implementations.

Usage:
    from chorus.protocols import Database, Sender

    async def greet(sender: Sender, user_id: int) -> None:
        await sender.send(ContextType.USER, user_id, "hello")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from chorus.database import GroupData, UserData
    from chorus.messages import CommandHint
    from chorus.scope import ContextType


@runtime_checkable
class Database(Protocol):
    """Protocol for user/group storage backends."""

    async def fetch_user(self, user_id: int, fields: Iterable[str]) -> Optional["UserData"]:
        """Fetch a user record with at least the requested fields."""
        ...

    async def fetch_group(self, group_id: int, fields: Iterable[str]) -> Optional["GroupData"]:
        """Fetch a group record with at least the requested fields."""
        ...

    async def check_and_consume_usage(
        self,
        usage_name: str,
        user: "UserData",
        max_usage: float,
        min_interval: float,
    ) -> Optional["CommandHint"]:
        """Check usage thresholds and consume one use.

        Must be atomic per (usage_name, user): concurrent calls may not
        both pass a limit that only one of them fits under.

        Returns:
            ``CommandHint.USAGE_EXHAUSTED`` or ``CommandHint.TOO_FREQUENT``
            on rejection, ``None`` when the use was consumed.
        """
        ...


@runtime_checkable
class Sender(Protocol):
    """Protocol for outgoing message transports."""

    async def send(self, context_type: "ContextType", context_id: int, message: str) -> None:
        """Deliver ``message`` to the given conversation."""
        ...


__all__ = ["Database", "Sender"]
