"""领域数据结构定义：话语、词元、技能描述、匹配候选、会话上下文与输出块等值对象。"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Mapping

from yozuk.domain.enums import BlockKind, DecisionKind, ParamType, PendingKind, Severity, TokenKind


@dataclass(frozen=True, slots=True)
class Attachment:
    """随话语上传的文件，技能可将其内容作为输入。"""
    data: bytes
    media_type: str = "application/octet-stream"
    file_name: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class Utterance:
    """一次用户输入，接收后不可变。"""
    conversation_id: str
    raw_text: str
    received_at: float
    username: str | None = None
    attachments: tuple[Attachment, ...] = ()


@dataclass(frozen=True, slots=True)
class Token:
    """规范化后的词元；leading 保存其前置空白，用于还原原文片段。"""
    kind: TokenKind
    text: str
    value: str
    start: int
    end: int
    leading: str = ""


@dataclass(frozen=True, slots=True)
class ParameterSpec:
    """技能参数定义。vocabulary 为别名到规范值的映射，仅 word/option 类型使用。

    accepts_attachments 仅对 text 类型有效：文本缺失且话语带附件时，参数值为附件元组。
    """
    name: str
    type: ParamType
    required: bool = True
    default: Any = None
    description: str = ""
    vocabulary: Mapping[str, str] | None = None
    minimum: float | None = None
    maximum: float | None = None
    accepts_attachments: bool = False


@dataclass(frozen=True, slots=True)
class SkillDescriptor:
    """技能元信息描述对象，用于目录接口与澄清提示展示。"""
    code: str
    name: str
    aliases: tuple[str, ...]
    description: str
    examples: tuple[str, ...]
    parameters: tuple[ParameterSpec, ...]


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    """单个技能对当前话语的匹配结果。"""
    skill_code: str
    confidence: float
    spans: tuple[tuple[int, int], ...] = ()
    remainder: tuple[Token, ...] = ()
    bound: Mapping[str, Any] = field(default_factory=dict)
    resumed: bool = False

    @property
    def span_length(self) -> int:
        return sum(end - start for start, end in self.spans)


@dataclass(frozen=True, slots=True)
class PendingChoice:
    """等待用户在多个候选技能中选择。"""
    candidates: tuple[MatchCandidate, ...]
    kind: PendingKind = PendingKind.choice


@dataclass(frozen=True, slots=True)
class PendingParameter:
    """等待用户补充某个缺失参数。"""
    skill_code: str
    parameter: str
    bound: Mapping[str, Any]
    remainder: tuple[Token, ...] = ()
    kind: PendingKind = PendingKind.parameter


@dataclass(frozen=True, slots=True)
class LastResult:
    """会话内最近一次成功执行的技能与参数。"""
    skill_code: str
    arguments: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """会话上下文，由会话存储持有并在过期后淘汰。"""
    conversation_id: str
    expires_at: float
    pending: PendingChoice | PendingParameter | None = None
    last_result: LastResult | None = None


@dataclass(frozen=True, slots=True)
class OutputBlock:
    """平台无关的输出块，由适配器按平台格式渲染。data 块携带二进制内容，由适配器作为文件发送。"""
    kind: BlockKind
    content: str
    language: str | None = None
    severity: Severity | None = None
    code: str | None = None
    columns: tuple[str, ...] = ()
    rows: tuple[tuple[str, ...], ...] = ()
    options: tuple[str, ...] = ()
    data: bytes | None = None
    media_type: str | None = None
    file_name: str | None = None

    @classmethod
    def text(cls, content: str) -> OutputBlock:
        return cls(kind=BlockKind.text, content=content)

    @classmethod
    def code_block(cls, content: str, language: str | None = None) -> OutputBlock:
        return cls(kind=BlockKind.code, content=content, language=language)

    @classmethod
    def table(
        cls,
        columns: tuple[str, ...],
        rows: list[tuple[str, ...]] | tuple[tuple[str, ...], ...],
        caption: str = "",
    ) -> OutputBlock:
        return cls(kind=BlockKind.table, content=caption, columns=columns, rows=tuple(rows))

    @classmethod
    def data_block(
        cls,
        data: bytes,
        media_type: str = "application/octet-stream",
        file_name: str | None = None,
        caption: str = "",
    ) -> OutputBlock:
        return cls(kind=BlockKind.data, content=caption, data=data, media_type=media_type, file_name=file_name)

    @classmethod
    def error(cls, content: str, code: str, severity: Severity = Severity.error) -> OutputBlock:
        return cls(kind=BlockKind.error, content=content, code=code, severity=severity)

    @classmethod
    def clarification(cls, content: str, options: tuple[str, ...] = (), code: str | None = None) -> OutputBlock:
        return cls(kind=BlockKind.clarification, content=content, options=options, code=code)

    def size(self) -> int:
        """返回块的输出量（字符数，data 块另计字节数），供执行器校验输出预算。"""
        total = len(self.content)
        total += sum(len(column) for column in self.columns)
        total += sum(len(cell) for row in self.rows for cell in row)
        total += sum(len(option) for option in self.options)
        if self.data is not None:
            total += len(self.data)
        return total

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "content": self.content,
            "language": self.language,
            "severity": self.severity.value if self.severity else None,
            "code": self.code,
            "columns": list(self.columns),
            "rows": [list(row) for row in self.rows],
            "options": list(self.options),
            "data": base64.b64encode(self.data).decode("ascii") if self.data is not None else None,
            "media_type": self.media_type,
            "file_name": self.file_name,
        }


@dataclass(frozen=True, slots=True)
class Decision:
    """消歧结果：执行单个候选、请求澄清或无法匹配。"""
    kind: DecisionKind
    candidates: tuple[MatchCandidate, ...] = ()

    @classmethod
    def execute(cls, candidate: MatchCandidate) -> Decision:
        return cls(kind=DecisionKind.execute, candidates=(candidate,))

    @classmethod
    def clarify(cls, candidates: tuple[MatchCandidate, ...]) -> Decision:
        return cls(kind=DecisionKind.clarify, candidates=candidates)

    @classmethod
    def no_match(cls) -> Decision:
        return cls(kind=DecisionKind.no_match)

    @property
    def selected(self) -> MatchCandidate:
        if self.kind is not DecisionKind.execute:
            raise ValueError(f"decision {self.kind.value} has no selected candidate")
        return self.candidates[0]
