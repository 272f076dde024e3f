"""会话存储测试：验证过期淘汰、清理线程与同会话按到达顺序串行。"""

from __future__ import annotations

import threading
import time

import pytest
from conftest import FakeClock

from yozuk.domain.errors import ConversationBusyError
from yozuk.domain.models import LastResult, PendingParameter
from yozuk.infra.session.store import SessionStore, SessionSweeper


def _pending() -> PendingParameter:
    return PendingParameter(skill_code="hash", parameter="text", bound={})


def test_context_expires_after_ttl() -> None:
    clock = FakeClock()
    store = SessionStore(ttl_seconds=120, clock=clock)
    store.set_pending("c1", _pending())

    assert store.get("c1") is not None
    clock.advance(121)
    assert store.get("c1") is None
    assert len(store) == 0


def test_sweep_removes_only_expired_contexts() -> None:
    clock = FakeClock()
    store = SessionStore(ttl_seconds=60, clock=clock)
    store.set_pending("old", _pending())
    clock.advance(45)
    store.set_pending("new", _pending())
    clock.advance(30)

    assert store.sweep() == 1
    assert store.get("old") is None
    assert store.get("new") is not None


def test_record_result_clears_pending() -> None:
    store = SessionStore(ttl_seconds=60, clock=FakeClock())
    store.set_pending("c1", _pending())

    context = store.record_result("c1", LastResult(skill_code="calc", arguments={"expression": "1+1"}))

    assert context.pending is None
    assert context.last_result is not None


def test_clear_pending_drops_empty_context() -> None:
    store = SessionStore(ttl_seconds=60, clock=FakeClock())
    store.set_pending("c1", _pending())
    store.set_pending("c2", _pending())
    store.record_result("c2", LastResult(skill_code="calc", arguments={}))
    store.set_pending("c2", _pending())

    store.clear_pending("c1")
    store.clear_pending("c2")

    assert store.get("c1") is None
    assert store.get("c2") is not None
    assert store.get("c2").pending is None


def test_ttl_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SessionStore(ttl_seconds=0)


def test_same_conversation_is_processed_in_arrival_order() -> None:
    """同一会话的第二条消息必须等待第一条处理完成。"""
    store = SessionStore(ttl_seconds=60)
    order: list[str] = []
    first_inside = threading.Event()
    release_first = threading.Event()

    def first() -> None:
        with store.ordered("c1"):
            first_inside.set()
            release_first.wait(5)
            order.append("first")

    def second() -> None:
        with store.ordered("c1"):
            order.append("second")

    worker_one = threading.Thread(target=first)
    worker_one.start()
    assert first_inside.wait(5)
    worker_two = threading.Thread(target=second)
    worker_two.start()
    time.sleep(0.05)

    assert order == []
    release_first.set()
    worker_one.join(5)
    worker_two.join(5)
    assert order == ["first", "second"]


def test_different_conversations_do_not_block() -> None:
    store = SessionStore(ttl_seconds=60)
    done = threading.Event()

    def other() -> None:
        with store.ordered("c2"):
            done.set()

    with store.ordered("c1"):
        worker = threading.Thread(target=other)
        worker.start()
        assert done.wait(5)
    worker.join(5)


def test_sweeper_evicts_in_background() -> None:
    clock = FakeClock()
    store = SessionStore(ttl_seconds=10, clock=clock)
    store.set_pending("c1", _pending())
    clock.advance(11)
    sweeper = SessionSweeper(store, interval_seconds=0.01)

    sweeper.start()
    try:
        deadline = time.monotonic() + 5
        while len(store) and time.monotonic() < deadline:
            time.sleep(0.01)
        assert sweeper.running is True
    finally:
        sweeper.stop()

    assert len(store) == 0
    assert sweeper.running is False


def test_full_lane_rejects_without_waiting() -> None:
    store = SessionStore(ttl_seconds=60, max_queue_depth=1)

    with store.ordered("c1"):
        with pytest.raises(ConversationBusyError) as exc_info:
            with store.ordered("c1"):
                pass
        with store.ordered("c2"):
            pass

    assert exc_info.value.depth == 1
    with store.ordered("c1"):
        pass


def test_queue_depth_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SessionStore(ttl_seconds=60, max_queue_depth=0)
