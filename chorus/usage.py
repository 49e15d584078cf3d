"""
Per-user command usage accounting.

Counters live on the user record and reset when the calendar day changes.
Interval timers store the timestamp of the last accepted invocation.
"""

from __future__ import annotations

import math
import time
from datetime import date
from typing import TYPE_CHECKING, Optional

from chorus.messages import CommandHint

if TYPE_CHECKING:
    from chorus.database import UserData


def get_date_number(now: Optional[float] = None) -> int:
    """Ordinal of the local calendar day containing ``now``."""
    return date.fromtimestamp(time.time() if now is None else now).toordinal()


def get_usage(name: str, user: UserData, now: Optional[float] = None) -> int:
    """Today's usage count of ``name`` for ``user``, resetting stale counters."""
    today = get_date_number(now)
    if user.usage_date != today:
        user.usage = {}
        user.usage_date = today
    return user.usage.setdefault(name, 0)


def update_usage(
    name: str,
    user: UserData,
    max_usage: float = math.inf,
    min_interval: float = 0,
    now: Optional[float] = None,
) -> Optional[CommandHint]:
    """Check the thresholds and consume one use; returns the rejection hint if any.

    Not atomic by itself; storage backends serialize calls per (name, user).
    """
    now = time.time() if now is None else now
    count = get_usage(name, user, now)
    if count >= max_usage:
        return CommandHint.USAGE_EXHAUSTED
    if min_interval > 0:
        last = user.timers.get(name)
        if last is not None and now - last < min_interval:
            return CommandHint.TOO_FREQUENT
        user.timers[name] = now
    user.usage[name] = count + 1
    return None
