"""领域枚举定义：统一词元类型、输出块类型、参数类型与决策取值。"""

from __future__ import annotations

from enum import Enum


class TokenKind(str, Enum):
    """词元类型枚举。"""
    word = "word"
    number = "number"
    symbol = "symbol"
    quoted = "quoted"


class BlockKind(str, Enum):
    """输出块类型枚举。"""
    text = "text"
    code = "code"
    table = "table"
    error = "error"
    clarification = "clarification"
    data = "data"


class Severity(str, Enum):
    """错误块严重级别枚举。"""
    info = "info"
    warning = "warning"
    error = "error"


class ParamType(str, Enum):
    """技能参数类型枚举。"""
    number = "number"
    integer = "integer"
    word = "word"
    option = "option"
    text = "text"


class DecisionKind(str, Enum):
    """消歧决策类型枚举。"""
    execute = "execute"
    clarify = "clarify"
    no_match = "no_match"


class PendingKind(str, Enum):
    """待澄清上下文类型枚举。"""
    choice = "choice"
    parameter = "parameter"
