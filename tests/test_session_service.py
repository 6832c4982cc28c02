import asyncio
from datetime import datetime, timedelta

import pytest

from app.flow.states import (
    RegistrationStep,
    SubmissionStep,
    get_progress_message,
    is_valid_transition,
)
from app.services.session_service import SessionStore, run_session_sweeper


def test_steps_only_move_forward():
    assert is_valid_transition(SubmissionStep.IDLE, SubmissionStep.AWAITING_IMAGES)
    assert is_valid_transition(SubmissionStep.AWAITING_CATEGORY, SubmissionStep.SUBMITTED)
    assert not is_valid_transition(SubmissionStep.AWAITING_IMAGES, SubmissionStep.AWAITING_PRICE)
    assert not is_valid_transition(SubmissionStep.AWAITING_PRICE, SubmissionStep.AWAITING_TITLE)
    assert not is_valid_transition(SubmissionStep.SUBMITTED, SubmissionStep.AWAITING_IMAGES)


def test_progress_labels():
    assert get_progress_message(SubmissionStep.AWAITING_PRICE) == "Step 3/5"
    assert get_progress_message(RegistrationStep.AWAITING_YEAR) == "Step 2/2"


def test_advance_returns_a_copy_and_rejects_skips():
    store = SessionStore()
    session = store.start(1, SubmissionStep.IDLE)

    moved = session.advance(SubmissionStep.AWAITING_IMAGES)
    moved.draft.images.append("P1")

    assert session.step == SubmissionStep.IDLE
    assert session.draft.images == []
    with pytest.raises(ValueError):
        moved.advance(SubmissionStep.AWAITING_CATEGORY)


def test_nothing_is_stored_until_save():
    store = SessionStore()
    session = store.start(1, SubmissionStep.IDLE).advance(SubmissionStep.AWAITING_IMAGES)
    assert store.get(1) is None

    store.save(session)
    assert store.get(1).step == SubmissionStep.AWAITING_IMAGES
    assert len(store) == 1


def test_get_returns_independent_copies():
    store = SessionStore()
    store.save(store.start(1, SubmissionStep.IDLE).advance(SubmissionStep.AWAITING_IMAGES))

    copy = store.get(1)
    copy.draft.images.append("P1")

    assert store.get(1).draft.images == []


def test_clear_reports_whether_a_session_existed():
    store = SessionStore()
    store.save(store.start(1, RegistrationStep.AWAITING_DEPARTMENT))

    assert store.clear(1) is True
    assert store.clear(1) is False
    assert store.get(1) is None


def test_idle_sessions_expire():
    store = SessionStore(timeout_minutes=30)
    store.save(store.start(1, SubmissionStep.IDLE).advance(SubmissionStep.AWAITING_IMAGES))
    store.save(store.start(2, SubmissionStep.IDLE).advance(SubmissionStep.AWAITING_IMAGES))

    store._sessions[1].last_interaction = datetime.utcnow() - timedelta(minutes=31)

    assert store.get(1) is None
    assert store.get(2) is not None

    store._sessions[2].last_interaction = datetime.utcnow() - timedelta(hours=2)
    assert store.purge_expired() == 1
    assert len(store) == 0


def test_zero_timeout_never_expires():
    store = SessionStore(timeout_minutes=0)
    store.save(store.start(1, SubmissionStep.IDLE).advance(SubmissionStep.AWAITING_IMAGES))
    store._sessions[1].last_interaction = datetime.utcnow() - timedelta(days=30)

    assert store.get(1) is not None
    assert store.purge_expired() == 0


def test_serialize_runs_one_user_in_order_and_drops_the_lock():
    store = SessionStore()
    order = []

    async def handle(user_id, name, delay):
        async with store.serialize(user_id):
            order.append(f"{name}-in")
            await asyncio.sleep(delay)
            order.append(f"{name}-out")

    async def main():
        first = asyncio.create_task(handle(1, "a", 0.02))
        await asyncio.sleep(0)
        second = asyncio.create_task(handle(1, "b", 0))
        await asyncio.sleep(0)
        assert store.active_locks == 1
        await asyncio.gather(first, second)

    asyncio.run(main())

    assert order == ["a-in", "a-out", "b-in", "b-out"]
    assert store.active_locks == 0


def test_serialize_drops_the_lock_when_the_handler_fails():
    store = SessionStore()

    async def main():
        with pytest.raises(RuntimeError):
            async with store.serialize(7):
                raise RuntimeError("boom")

    asyncio.run(main())
    assert store.active_locks == 0


def test_sweeper_purges_expired_sessions():
    store = SessionStore(timeout_minutes=30)
    store.save(store.start(1, SubmissionStep.IDLE).advance(SubmissionStep.AWAITING_IMAGES))
    store._sessions[1].last_interaction = datetime.utcnow() - timedelta(hours=1)

    async def main():
        task = asyncio.create_task(run_session_sweeper(store, interval_seconds=0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(main())
    assert len(store) == 0
