"""日志组件测试：验证脱敏、payload 截断与 JSON 行格式中的上下文字段。"""

from __future__ import annotations

import json
import logging

from yozuk.infra.logging.context import bind_log_context
from yozuk.infra.logging.setup import DebugRoutingFilter, StructuredJsonFormatter, redact_text, render_payload_preview


def test_redact_text_masks_credentials() -> None:
    assert redact_text("password=hunter2 ok", "standard") == "password=*** ok"
    assert redact_text("password=hunter2", "off") == "password=hunter2"
    assert redact_text(None, "standard") is None


def test_payload_preview_is_truncated() -> None:
    preview = render_payload_preview({"text": "x" * 100}, max_chars=20, redaction_mode="standard")

    assert preview is not None
    assert preview.endswith("...(truncated)")
    assert len(preview) == 20 + len("...(truncated)")


def test_formatter_includes_log_context() -> None:
    formatter = StructuredJsonFormatter(
        service="yozuk",
        process_role="test",
        redaction_mode="standard",
        payload_preview_chars=256,
    )
    record = logging.LogRecord("yozuk.test", logging.INFO, __file__, 1, "handled", None, None)
    record.event = "engine.handle.completed"
    record.duration_ms = 1.5

    with bind_log_context(conversation_id="c1", skill_code="calc"):
        entry = json.loads(formatter.format(record))

    assert entry["event"] == "engine.handle.completed"
    assert entry["conversation_id"] == "c1"
    assert entry["skill_code"] == "calc"
    assert entry["duration_ms"] == 1.5
    assert entry["request_id"] is None


def test_debug_routing_by_conversation() -> None:
    routing = DebugRoutingFilter(min_level=logging.INFO, debug_modules={"yozuk.domain"}, debug_conversation_ids={"c9"})
    module_record = logging.LogRecord("yozuk.domain.routing.matcher", logging.DEBUG, __file__, 1, "m", None, None)
    other_record = logging.LogRecord("yozuk.application.engine", logging.DEBUG, __file__, 1, "m", None, None)

    assert routing.filter(module_record) is True
    assert routing.filter(other_record) is False
    with bind_log_context(conversation_id="c9"):
        assert routing.filter(other_record) is True
