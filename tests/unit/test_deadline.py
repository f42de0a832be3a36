"""
Tests for race_with_deadline.
"""

import asyncio

import pytest

from meetingmind.errors import DeadlineExceeded, ProviderError
from meetingmind.meeting.deadline import race_with_deadline


class TestRaceWithDeadline:

    @pytest.mark.asyncio
    async def test_fast_call_wins(self):
        async def answer():
            await asyncio.sleep(0.01)
            return 42

        assert await race_with_deadline(answer(), 1.0, "Answer") == 42

    @pytest.mark.asyncio
    async def test_slow_call_is_cancelled(self):
        cancelled = asyncio.Event()

        async def slow():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(DeadlineExceeded) as exc_info:
            await race_with_deadline(slow(), 0.02, "Summary")

        # The loser has been awaited by the time the race returns
        assert cancelled.is_set()
        assert exc_info.value.label == "Summary"
        assert "Summary timed out after 0.02s" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_call_errors_propagate(self):
        async def failing():
            raise ProviderError.network_failure("Claude", "connection reset")

        with pytest.raises(ProviderError):
            await race_with_deadline(failing(), 1.0)

    def test_deadline_is_not_a_provider_error(self):
        assert not issubclass(DeadlineExceeded, ProviderError)

    @pytest.mark.asyncio
    async def test_no_tasks_left_behind(self):
        async def slow():
            await asyncio.sleep(10)

        before = len(asyncio.all_tasks())
        with pytest.raises(DeadlineExceeded):
            await race_with_deadline(slow(), 0.01)
        assert len(asyncio.all_tasks()) == before
