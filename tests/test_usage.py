"""Tests for per-user usage accounting."""

import asyncio
from datetime import datetime, timedelta

import pytest

from chorus.database import MemoryDatabase, UserData
from chorus.messages import CommandHint
from chorus.usage import get_date_number, get_usage, update_usage

NOON = datetime(2024, 3, 1, 12, 0, 0).timestamp()
NEXT_NOON = (datetime(2024, 3, 1, 12, 0, 0) + timedelta(days=1)).timestamp()


class TestGetUsage:
    """Tests for daily counters."""

    def test_date_number_changes_daily(self):
        assert get_date_number(NEXT_NOON) == get_date_number(NOON) + 1

    def test_starts_at_zero(self):
        user = UserData(id=1)
        assert get_usage("roll", user, NOON) == 0
        assert user.usage == {"roll": 0}
        assert user.usage_date == get_date_number(NOON)

    def test_resets_on_new_day(self):
        user = UserData(id=1, usage={"roll": 5}, usage_date=get_date_number(NOON))
        assert get_usage("roll", user, NOON) == 5
        assert get_usage("roll", user, NEXT_NOON) == 0


class TestUpdateUsage:
    """Tests for threshold checks."""

    def test_unlimited(self):
        user = UserData(id=1)
        for _ in range(10):
            assert update_usage("roll", user, now=NOON) is None
        assert user.usage["roll"] == 10

    def test_max_usage(self):
        user = UserData(id=1)
        assert update_usage("roll", user, max_usage=2, now=NOON) is None
        assert update_usage("roll", user, max_usage=2, now=NOON) is None
        assert update_usage("roll", user, max_usage=2, now=NOON) is CommandHint.USAGE_EXHAUSTED
        assert user.usage["roll"] == 2

    def test_max_usage_resets_next_day(self):
        user = UserData(id=1)
        update_usage("roll", user, max_usage=1, now=NOON)
        assert update_usage("roll", user, max_usage=1, now=NOON) is CommandHint.USAGE_EXHAUSTED
        assert update_usage("roll", user, max_usage=1, now=NEXT_NOON) is None

    def test_min_interval(self):
        user = UserData(id=1)
        assert update_usage("roll", user, min_interval=10, now=NOON) is None
        assert update_usage("roll", user, min_interval=10, now=NOON + 5) is CommandHint.TOO_FREQUENT
        assert update_usage("roll", user, min_interval=10, now=NOON + 10) is None
        assert user.timers["roll"] == NOON + 10

    def test_rejected_call_does_not_consume(self):
        """A too-frequent call neither counts nor restarts the timer."""
        user = UserData(id=1)
        update_usage("roll", user, min_interval=10, now=NOON)
        update_usage("roll", user, min_interval=10, now=NOON + 5)
        assert user.usage["roll"] == 1
        assert user.timers["roll"] == NOON

    def test_exhaustion_checked_before_interval(self):
        user = UserData(id=1)
        update_usage("roll", user, max_usage=1, min_interval=10, now=NOON)
        assert (
            update_usage("roll", user, max_usage=1, min_interval=10, now=NOON + 1)
            is CommandHint.USAGE_EXHAUSTED
        )

    def test_counters_are_per_name(self):
        user = UserData(id=1)
        update_usage("roll", user, max_usage=1, now=NOON)
        assert update_usage("draw", user, max_usage=1, now=NOON) is None


class TestAtomicUsage:
    """Tests for concurrent usage consumption through the database."""

    @pytest.mark.asyncio
    async def test_concurrent_calls_respect_limit(self):
        """Only one of many simultaneous calls fits under max_usage=1."""
        database = MemoryDatabase(clock=lambda: NOON)
        snapshots = [await database.fetch_user(7, ["usage"]) for _ in range(5)]

        results = await asyncio.gather(
            *(database.check_and_consume_usage("roll", user, 1, 0) for user in snapshots)
        )

        assert results.count(None) == 1
        assert results.count(CommandHint.USAGE_EXHAUSTED) == 4
        assert database.users[7].usage["roll"] == 1

    @pytest.mark.asyncio
    async def test_snapshot_follows_stored_record(self):
        database = MemoryDatabase(clock=lambda: NOON)
        user = await database.fetch_user(7, ["usage", "timers"])
        await database.check_and_consume_usage("roll", user, 5, 30)
        assert user.usage["roll"] == 1
        assert user.timers["roll"] == NOON

    @pytest.mark.asyncio
    async def test_locks_are_released(self):
        database = MemoryDatabase(clock=lambda: NOON)
        snapshots = [await database.fetch_user(user_id, ["usage"]) for user_id in (1, 2, 2, 3)]
        await asyncio.gather(
            *(database.check_and_consume_usage("roll", user, 5, 0) for user in snapshots)
        )
        assert database._usage_locks == {}
        assert database.users[2].usage["roll"] == 2
