"""
User and group records, and an in-memory storage backend.

``MemoryDatabase`` implements the ``chorus.protocols.Database`` protocol.
Records handed out by ``fetch_user`` / ``fetch_group`` are snapshots, as with
any real store; usage consumption always operates on the stored record.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from chorus.messages import CommandHint
from chorus.types import GroupField, UserField
from chorus.usage import update_usage

logger = logging.getLogger(__name__)

USER_FIELDS = frozenset({"id", "name", "authority", "flag", "usage", "timers"})
GROUP_FIELDS = frozenset({"id", "flag", "assignee"})


@dataclass
class UserData:
    """A stored chat user."""

    id: int
    authority: int = 1
    name: Optional[str] = None
    flag: int = 0
    usage: dict[str, int] = field(default_factory=dict)
    usage_date: Optional[int] = None
    timers: dict[str, float] = field(default_factory=dict)


@dataclass
class GroupData:
    """A stored group conversation."""

    id: int
    flag: int = 0
    assignee: Optional[int] = None


class MemoryDatabase:
    """Process-local storage for users and groups.

    Args:
        default_authority: Authority for users created on first sight;
            ``None`` makes unknown users resolve to ``None``.
        clock: Time source for usage accounting.
    """

    def __init__(
        self,
        default_authority: Optional[int] = 1,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.default_authority = default_authority
        self._clock = clock
        self.users: dict[int, UserData] = {}
        self.groups: dict[int, GroupData] = {}
        self.user_field_requests: list[frozenset[str]] = []
        self.group_field_requests: list[frozenset[str]] = []
        self._usage_locks: dict[tuple[str, int], list] = {}

    def add_user(self, id: int, authority: int = 1, **kwargs) -> UserData:
        user = self.users[id] = UserData(id=id, authority=authority, **kwargs)
        return user

    def add_group(self, id: int, **kwargs) -> GroupData:
        group = self.groups[id] = GroupData(id=id, **kwargs)
        return group

    async def fetch_user(self, user_id: int, fields: Iterable[UserField]) -> Optional[UserData]:
        requested = frozenset(fields)
        unknown = requested - USER_FIELDS
        if unknown:
            logger.warning("Ignoring unknown user fields: %s", ", ".join(sorted(unknown)))
        self.user_field_requests.append(requested)
        user = self.users.get(user_id)
        if user is None:
            if self.default_authority is None:
                return None
            user = self.add_user(user_id, authority=self.default_authority)
            logger.debug("Created user %s with authority %s", user_id, self.default_authority)
        return copy.deepcopy(user)

    async def fetch_group(self, group_id: int, fields: Iterable[GroupField]) -> Optional[GroupData]:
        self.group_field_requests.append(frozenset(fields))
        group = self.groups.get(group_id)
        if group is None:
            group = self.add_group(group_id)
        return copy.deepcopy(group)

    def _acquire_usage_lock(self, key: tuple[str, int]) -> asyncio.Lock:
        entry = self._usage_locks.get(key)
        if entry is None:
            entry = self._usage_locks[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        return entry[0]

    def _release_usage_lock(self, key: tuple[str, int]) -> None:
        entry = self._usage_locks[key]
        entry[1] -= 1
        if entry[1] == 0:
            del self._usage_locks[key]

    async def check_and_consume_usage(
        self,
        usage_name: str,
        user: UserData,
        max_usage: float,
        min_interval: float,
    ) -> Optional[CommandHint]:
        """Atomically check the thresholds for ``user`` and consume one use.

        Locks are kept per ``(usage name, user id)`` only while a call holds or
        waits on them.
        """
        key = (usage_name, user.id)
        lock = self._acquire_usage_lock(key)
        try:
            async with lock:
                stored = self.users.setdefault(user.id, user)
                hint = update_usage(usage_name, stored, max_usage, min_interval, now=self._clock())
                # Keep the caller's snapshot in step with the stored record
                user.usage = dict(stored.usage)
                user.usage_date = stored.usage_date
                user.timers = dict(stored.timers)
        finally:
            self._release_usage_lock(key)
        if hint is not None:
            logger.debug("Usage of %s rejected for user %s: %s", usage_name, user.id, hint.name)
        return hint


__all__ = ["GroupData", "MemoryDatabase", "UserData", "USER_FIELDS", "GROUP_FIELDS"]
