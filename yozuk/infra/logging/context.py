"""日志上下文：基于 contextvars 透传 request/conversation/utterance/skill 标识。

工作线程不会自动继承 contextvars，向线程池提交任务前需用 copy_context() 复制。
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

CONTEXT_FIELDS = ("request_id", "conversation_id", "utterance_id", "skill_code")

_VARS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"yozuk_log_{name}", default=None) for name in CONTEXT_FIELDS
}


def get_log_context() -> dict[str, str | None]:
    """返回当前协程/线程下的全部日志上下文字段。"""
    return {name: var.get() for name, var in _VARS.items()}


@contextmanager
def bind_log_context(**fields: str | None) -> Iterator[None]:
    """临时绑定日志字段，退出时恢复原值；只接受 CONTEXT_FIELDS 中的字段名。"""
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"unknown log context fields: {sorted(unknown)}")
    tokens = [(_VARS[name], _VARS[name].set(value)) for name, value in fields.items()]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)
