"""领域异常定义：每类错误携带稳定 code，由引擎边界统一转换为输出块。"""

from __future__ import annotations

from typing import Any


class YozukError(Exception):
    """引擎异常基类。"""
    code = "yozuk_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class DuplicateSkillError(YozukError):
    """注册了重复技能编码，属于启动期致命错误。"""
    code = "duplicate_skill"

    def __init__(self, skill_code: str) -> None:
        super().__init__(f"duplicate skill code: {skill_code}")
        self.skill_code = skill_code


class NoMatchError(YozukError):
    code = "no_match"


class AmbiguousMatchError(YozukError):
    code = "ambiguous_match"

    def __init__(self, message: str, skill_codes: tuple[str, ...], options: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.skill_codes = skill_codes
        self.options = options


class ExtractionError(YozukError):
    """参数抽取失败基类。"""
    code = "extraction_error"

    def __init__(self, message: str, parameter: str) -> None:
        super().__init__(message)
        self.parameter = parameter


class MissingParameterError(ExtractionError):
    code = "missing_parameter"

    def __init__(
        self,
        parameter: str,
        description: str = "",
        bound: dict[str, Any] | None = None,
        remainder: tuple[Any, ...] = (),
    ) -> None:
        label = description or parameter
        super().__init__(f"missing required parameter: {label}", parameter)
        self.description = description
        self.bound = dict(bound or {})
        self.remainder = remainder


class TypeMismatchError(ExtractionError):
    code = "type_mismatch"

    def __init__(self, parameter: str, raw_value: str, expected: str) -> None:
        super().__init__(f"{parameter}: expected {expected}, got {raw_value!r}", parameter)
        self.raw_value = raw_value
        self.expected = expected


class ExecutionError(YozukError):
    """技能执行失败基类。"""
    code = "execution_error"


class SkillError(ExecutionError):
    """技能自定义失败，可覆盖 code 表达具体错误类型。"""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code:
            self.code = code


class ResourceExceededError(ExecutionError):
    code = "resource_exceeded"

    def __init__(self, skill_code: str, limit: str) -> None:
        super().__init__(f"skill {skill_code} exceeded its {limit} budget")
        self.skill_code = skill_code
        self.limit = limit


class AttachmentTooLargeError(YozukError):
    code = "attachment_too_large"

    def __init__(self, file_name: str | None, size: int, limit: int) -> None:
        label = file_name or "attachment"
        super().__init__(f"{label} is too large ({size} bytes, limit {limit} bytes).")
        self.file_name = file_name
        self.size = size
        self.limit = limit


class ConversationBusyError(YozukError):
    """同一会话排队的请求过多，新请求直接拒绝而不占用工作线程等待。"""
    code = "conversation_busy"

    def __init__(self, conversation_id: str, depth: int) -> None:
        super().__init__("Too many messages are waiting in this conversation. Please try again shortly.")
        self.conversation_id = conversation_id
        self.depth = depth
