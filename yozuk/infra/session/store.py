"""会话上下文存储：按会话 ID 保存短期上下文，负责过期淘汰与按到达顺序串行处理。"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Callable, Iterator

from yozuk.domain.errors import ConversationBusyError
from yozuk.domain.models import ExecutionContext, LastResult, PendingChoice, PendingParameter

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(slots=True)
class _Lane:
    """单个会话的取号队列：按取号顺序依次放行。"""
    condition: threading.Condition = field(default_factory=threading.Condition)
    next_ticket: int = 0
    serving: int = 0
    holders: int = 0


class SessionStore:
    """内存会话存储。全局锁只保护字典读写，会话之间的处理互不阻塞。"""

    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic, max_queue_depth: int = 16) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_queue_depth < 1:
            raise ValueError("max_queue_depth must be at least 1")
        self._ttl = ttl_seconds
        self._max_queue_depth = max_queue_depth
        self._clock = clock
        self._lock = threading.Lock()
        self._contexts: dict[str, ExecutionContext] = {}
        self._lanes: dict[str, _Lane] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, conversation_id: str) -> ExecutionContext | None:
        """读取上下文；已过期视为不存在并顺带删除。"""
        now = self._clock()
        with self._lock:
            context = self._contexts.get(conversation_id)
            if context is None:
                return None
            if context.expires_at <= now:
                del self._contexts[conversation_id]
                return None
            return context

    def set_pending(self, conversation_id: str, pending: PendingChoice | PendingParameter) -> ExecutionContext:
        """写入待澄清状态并刷新过期时间。"""
        return self._update(conversation_id, pending=pending)

    def clear_pending(self, conversation_id: str) -> None:
        with self._lock:
            context = self._contexts.get(conversation_id)
            if context is None:
                return
            if context.last_result is None:
                del self._contexts[conversation_id]
            else:
                self._contexts[conversation_id] = replace(context, pending=None)

    def record_result(self, conversation_id: str, result: LastResult) -> ExecutionContext:
        """记录最近一次成功执行，同时清除待澄清状态。"""
        return self._update(conversation_id, pending=None, last_result=result)

    def discard(self, conversation_id: str) -> None:
        with self._lock:
            self._contexts.pop(conversation_id, None)

    def sweep(self) -> int:
        """删除全部过期上下文，返回删除数量。"""
        now = self._clock()
        with self._lock:
            expired = [key for key, context in self._contexts.items() if context.expires_at <= now]
            for key in expired:
                del self._contexts[key]
        if expired:
            logger.debug(
                "session contexts evicted",
                extra={"event": "session.sweep.evicted", "payload_preview": {"count": len(expired)}},
            )
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)

    @contextmanager
    def ordered(self, conversation_id: str) -> Iterator[None]:
        """在同一会话内按到达顺序串行执行代码块。

        排队（含正在处理）的请求达到 max_queue_depth 时立即抛出 ConversationBusyError，不进入等待。
        """
        with self._lock:
            lane = self._lanes.get(conversation_id)
            if lane is not None and lane.holders >= self._max_queue_depth:
                logger.warning(
                    "conversation queue is full",
                    extra={
                        "event": "session.lane.rejected",
                        "conversation_id": conversation_id,
                        "payload_preview": {"depth": lane.holders},
                    },
                )
                raise ConversationBusyError(conversation_id, lane.holders)
            if lane is None:
                lane = self._lanes[conversation_id] = _Lane()
            lane.holders += 1
            # 取号与入队在同一把锁内完成，取号顺序即到达顺序。
            ticket = lane.next_ticket
            lane.next_ticket += 1
        with lane.condition:
            while lane.serving != ticket:
                lane.condition.wait()
        try:
            yield
        finally:
            with lane.condition:
                lane.serving += 1
                lane.condition.notify_all()
            with self._lock:
                lane.holders -= 1
                if lane.holders == 0:
                    self._lanes.pop(conversation_id, None)

    def _update(self, conversation_id: str, **changes: object) -> ExecutionContext:
        now = self._clock()
        with self._lock:
            current = self._contexts.get(conversation_id)
            if current is None or current.expires_at <= now:
                current = ExecutionContext(conversation_id=conversation_id, expires_at=now)
            context = replace(current, expires_at=now + self._ttl, **changes)
            self._contexts[conversation_id] = context
            return context


class SessionSweeper:
    """后台守护线程，按固定间隔清理过期上下文。"""

    def __init__(self, store: SessionStore, interval_seconds: float) -> None:
        self._store = store
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="yozuk-session-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._store.sweep()
            except Exception:
                logger.exception("session sweep failed", extra={"event": "session.sweep.failed"})
