"""
Tests for EscalationTimerManager.
Uses sub-second delays so reminders fire inside the test.
"""
import asyncio

import pytest

from handoff.errors import AlreadyScheduledError
from handoff.escalation import EscalationTimerManager
from handoff.escalation.timer_manager import FIRST_STAGE, SECOND_STAGE
from handoff.messages import MessageKind, render


async def _open(sessions, session_id="abc-123", thread_id="1700.000001"):
    return await sessions.create_session(session_id, thread_id, "Maria", channel_id="C_SUPPORT")


@pytest.mark.unit
def test_negative_delay_rejected(sessions, ai, chat):
    with pytest.raises(ValueError):
        EscalationTimerManager(sessions, ai, chat, first_delay=-1)


@pytest.mark.asyncio
async def test_first_stage_fires_second_still_pending(fast_timers, sessions, ai, chat):
    await _open(sessions)
    fast_timers.schedule("abc-123")
    assert fast_timers.pending("abc-123") == [FIRST_STAGE, SECOND_STAGE]

    await asyncio.sleep(0.1)

    assert ai.outbound == [("abc-123", "text", {"text": render(MessageKind.BUSY)})]
    assert chat.thread_texts("1700.000001") == [render(MessageKind.BUSY_NOTICE)]
    assert fast_timers.pending("abc-123") == [SECOND_STAGE]


@pytest.mark.asyncio
async def test_both_stages_fire(fast_timers, sessions, ai, chat):
    await _open(sessions)
    fast_timers.schedule("abc-123")

    await asyncio.sleep(0.35)

    assert len(ai.outbound) == 2
    assert len(chat.thread_texts("1700.000001")) == 2
    assert fast_timers.pending("abc-123") == []
    assert fast_timers.active_count == 0


@pytest.mark.asyncio
async def test_cancel_before_fire_sends_nothing(fast_timers, sessions, ai, chat):
    await _open(sessions)
    fast_timers.schedule("abc-123")

    assert fast_timers.cancel("abc-123") is True
    await asyncio.sleep(0.1)

    assert ai.outbound == []
    assert chat.posts == []


@pytest.mark.asyncio
async def test_cancel_after_partial_fire_stops_second(fast_timers, sessions, ai):
    await _open(sessions)
    fast_timers.schedule("abc-123")
    await asyncio.sleep(0.1)

    assert fast_timers.cancel("abc-123") is True
    await asyncio.sleep(0.25)

    assert len(ai.outbound) == 1


@pytest.mark.asyncio
async def test_cancel_is_idempotent(timers):
    assert timers.cancel("never-scheduled") is False

    timers.schedule("abc-123")
    assert timers.cancel("abc-123") is True
    assert timers.cancel("abc-123") is False


@pytest.mark.asyncio
async def test_fire_for_closed_session_is_noop(fast_timers, ai, chat):
    fast_timers.schedule("gone")

    await asyncio.sleep(0.1)

    assert ai.outbound == []
    assert chat.posts == []


@pytest.mark.asyncio
async def test_schedule_without_replace_raises(timers):
    timers.schedule("abc-123")

    with pytest.raises(AlreadyScheduledError):
        timers.schedule("abc-123", replace=False)


@pytest.mark.asyncio
async def test_reschedule_replaces_old_pair(timers):
    timers.schedule("abc-123")
    old = dict(timers._timers["abc-123"])

    timers.schedule("abc-123")
    await asyncio.sleep(0)

    assert all(task.cancelled() for task in old.values())
    assert timers.pending("abc-123") == [FIRST_STAGE, SECOND_STAGE]
    assert timers.active_count == 1


@pytest.mark.asyncio
async def test_ai_failure_still_posts_thread_notice(fast_timers, sessions, ai, chat):
    await _open(sessions)
    ai.fail_outbound = True
    fast_timers.schedule("abc-123")

    await asyncio.sleep(0.1)

    assert ai.outbound == []
    assert chat.thread_texts("1700.000001") == [render(MessageKind.BUSY_NOTICE)]


@pytest.mark.asyncio
async def test_cancel_all(timers):
    timers.schedule("a")
    timers.schedule("b")

    assert await timers.cancel_all() == 2
    assert timers.active_count == 0
