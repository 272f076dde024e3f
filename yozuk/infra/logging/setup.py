"""日志初始化：JSON 行格式、队列异步落盘、凭据脱敏与按模块/会话放行 DEBUG。

日志链路：
- 业务线程只写入 QueueHandler，由 QueueListener 在后台线程写文件；
- 入队前由过滤器补齐 contextvars 字段，避免跨线程后上下文丢失；
- ERROR 及以上同时输出到 stderr。
"""

from __future__ import annotations

import json
import logging
import logging.config
import re
import sys
from datetime import datetime, timezone
from logging.handlers import QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import Any

from yozuk.config import Settings
from yozuk.infra.logging.context import CONTEXT_FIELDS, get_log_context

SERVICE_NAME = "yozuk"

_SECRET_KEYS = ("authorization", "x-api-key", "api_key", "password", "passwd", "token", "secret")
_SECRET_RE = re.compile(
    r"(?i)\b(" + "|".join(re.escape(key) for key in _SECRET_KEYS) + r")(\s*[:=]\s*)(?:bearer\s+)?[^\s,;\"']+"
)
# strict 模式下把摘要、Base64 等长串整体遮蔽，避免用户输入经技能输出落盘。
_BLOB_RE = re.compile(r"[A-Za-z0-9+/_=-]{32,}")

_TEXT_FIELDS = ("external_service", "op", "error_type")
_NUMERIC_FIELDS = ("duration_ms", "status_code")
_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")

_listener: QueueListener | None = None


def redact_text(value: str | None, mode: str) -> str | None:
    """按脱敏模式处理文本：off 原样返回，standard 遮蔽凭据，strict 额外遮蔽长串。"""
    if value is None:
        return None
    text = str(value)
    mode = mode.lower()
    if mode == "off":
        return text
    text = _SECRET_RE.sub(r"\1\2***", text)
    if mode == "strict":
        text = _BLOB_RE.sub("***", text)
    return text


def render_payload_preview(payload: Any, *, max_chars: int, redaction_mode: str) -> str | None:
    """序列化并截断 payload 预览。"""
    if payload is None:
        return None
    if isinstance(payload, str):
        serialized = payload
    else:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, sort_keys=True)
        except TypeError:
            serialized = str(payload)
    preview = redact_text(serialized, redaction_mode) or ""
    if len(preview) > max_chars:
        preview = f"{preview[:max_chars]}...(truncated)"
    return preview


class DebugRoutingFilter(logging.Filter):
    """低于 min_level 的记录默认丢弃；DEBUG 可按模块前缀或会话 ID 放行。"""

    def __init__(self, *, min_level: int, debug_modules: set[str], debug_conversation_ids: set[str]) -> None:
        super().__init__()
        self._min_level = min_level
        self._debug_modules = tuple(debug_modules)
        self._debug_conversation_ids = frozenset(debug_conversation_ids)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= self._min_level:
            return True
        if record.levelno != logging.DEBUG:
            return False
        name = record.name
        if any(name == module or name.startswith(module + ".") for module in self._debug_modules):
            return True
        conversation_id = getattr(record, "conversation_id", None) or get_log_context()["conversation_id"]
        return conversation_id in self._debug_conversation_ids


class ContextInjectionFilter(logging.Filter):
    """把当前 contextvars 中的标识写入 record，record 自带的字段优先。"""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in get_log_context().items():
            if value is not None and getattr(record, key, None) is None:
                setattr(record, key, value)
        return True


class StructuredJsonFormatter(logging.Formatter):
    """每条记录输出为一行 JSON。"""

    def __init__(
        self,
        *,
        service: str,
        process_role: str,
        redaction_mode: str,
        payload_preview_chars: int,
    ) -> None:
        super().__init__()
        self._service = service
        self._process_role = process_role
        self._redaction_mode = redaction_mode
        self._payload_preview_chars = payload_preview_chars

    @staticmethod
    def _number(value: Any) -> int | float | None:
        if value is None or isinstance(value, (int, float)):
            return value
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    def _error_text(self, record: logging.LogRecord) -> str | None:
        error = getattr(record, "error", None)
        if error is None and record.exc_info:
            error = self.formatException(record.exc_info)
        if error is None:
            return None
        return redact_text(str(error), self._redaction_mode)

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "ts": timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self._service,
            "process_role": self._process_role,
            "module": record.name,
            "event": getattr(record, "event", None),
        }
        entry.update({key: getattr(record, key, None) or ctx.get(key) for key in CONTEXT_FIELDS})
        entry.update({key: getattr(record, key, None) for key in _TEXT_FIELDS})
        entry.update({key: self._number(getattr(record, key, None)) for key in _NUMERIC_FIELDS})
        entry["message"] = redact_text(record.getMessage(), self._redaction_mode)
        entry["error"] = self._error_text(record)
        entry["payload_preview"] = render_payload_preview(
            getattr(record, "payload_preview", None),
            max_chars=self._payload_preview_chars,
            redaction_mode=self._redaction_mode,
        )
        return json.dumps(entry, ensure_ascii=False)


def _build_sinks(settings: Settings, formatter: logging.Formatter, log_file: Path) -> list[logging.Handler]:
    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    for handler in (file_handler, stderr_handler):
        handler.setFormatter(formatter)
    return [file_handler, stderr_handler]


def configure_logging(settings: Settings, *, process_role: str) -> Path:
    """按配置初始化进程日志，返回 JSONL 日志文件路径。

    参数:
    - settings: 运行配置，提供日志目录、级别、脱敏与 DEBUG 放行列表。
    - process_role: 进程角色，决定日志子目录，例如 api。
    """
    global _listener
    shutdown_logging()

    log_dir = settings.log_dir if settings.log_dir.is_absolute() else (Path.cwd() / settings.log_dir).resolve()
    log_file = log_dir / process_role / f"{SERVICE_NAME}.jsonl"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    records: Queue[logging.LogRecord] = Queue()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "context": {"()": ContextInjectionFilter},
                "routing": {
                    "()": DebugRoutingFilter,
                    "min_level": getattr(logging, settings.log_level.upper(), logging.INFO),
                    "debug_modules": set(settings.log_debug_modules_list()),
                    "debug_conversation_ids": set(settings.log_debug_conversation_ids_list()),
                },
            },
            "handlers": {
                "queue": {
                    "class": "logging.handlers.QueueHandler",
                    "queue": records,
                    "filters": ["context", "routing"],
                }
            },
            "loggers": {name: {"level": "WARNING"} for name in _NOISY_LOGGERS},
            "root": {"level": "DEBUG", "handlers": ["queue"]},
        }
    )

    formatter = StructuredJsonFormatter(
        service=SERVICE_NAME,
        process_role=process_role,
        redaction_mode=settings.log_redaction_mode,
        payload_preview_chars=settings.log_payload_preview_chars,
    )
    _listener = QueueListener(records, *_build_sinks(settings, formatter, log_file), respect_handler_level=True)
    _listener.start()
    return log_file


def shutdown_logging() -> None:
    """刷新队列中剩余记录并关闭文件句柄。"""
    global _listener
    listener, _listener = _listener, None
    if listener is None:
        return
    listener.stop()
    for handler in listener.handlers:
        try:
            handler.close()
        except OSError:
            continue
