"""参数抽取：按技能参数定义从未消耗的词元中定位并转换参数值。

抽取顺序：
1) 已绑定的参数（来自澄清追问）直接沿用；
2) option 参数从剩余词元的首尾位置提取关键词；
3) number/integer/word 参数按定义顺序逐个读取，跳过连接词；
4) text 参数跳过开头连接词后取剩余全部词元的原文，没有文本时可改用附件。
"""

from __future__ import annotations

from typing import Any, Sequence

from yozuk.domain.enums import ParamType, TokenKind
from yozuk.domain.errors import MissingParameterError, TypeMismatchError
from yozuk.domain.models import Attachment, MatchCandidate, ParameterSpec, Token
from yozuk.domain.skills.base import BaseSkill
from yozuk.domain.text.tokenizer import join_tokens

CONNECTOR_WORDS = frozenset(
    {"to", "in", "into", "as", "from", "of", "for", "the", "a", "an", "please", "me", "with", "using", "by"}
)
CONNECTOR_SYMBOLS = frozenset({"->", "=>", "→", ":"})
POSITIONAL_TYPES = frozenset({ParamType.number, ParamType.integer, ParamType.word})
SIGN_SYMBOLS = frozenset({"-", "+"})


def is_connector(token: Token) -> bool:
    if token.kind is TokenKind.word:
        return token.value in CONNECTOR_WORDS
    return token.kind is TokenKind.symbol and token.value in CONNECTOR_SYMBOLS


def describe_expected(spec: ParameterSpec) -> str:
    """生成参数期望类型的说明文本。"""
    if spec.type is ParamType.number:
        expected = "a number"
    elif spec.type is ParamType.integer:
        expected = "a whole number"
    elif spec.vocabulary:
        choices = sorted(set(spec.vocabulary.values()))
        shown = ", ".join(choices[:12])
        expected = f"one of {shown}" + (", ..." if len(choices) > 12 else "")
    else:
        expected = "text" if spec.type is ParamType.text else "a word"
    if spec.minimum is not None and spec.maximum is not None:
        expected += f" between {spec.minimum:g} and {spec.maximum:g}"
    elif spec.minimum is not None:
        expected += f" of at least {spec.minimum:g}"
    elif spec.maximum is not None:
        expected += f" of at most {spec.maximum:g}"
    return expected


def read_value(spec: ParameterSpec, tokens: Sequence[Token], index: int) -> tuple[Any, int]:
    """从 index 处读取一个参数值，返回值与下一个位置；无法转换时抛出 TypeMismatchError。"""
    token = tokens[index]
    if spec.type in {ParamType.number, ParamType.integer}:
        sign = 1.0
        cursor = index
        if token.kind is TokenKind.symbol and token.value in SIGN_SYMBOLS and cursor + 1 < len(tokens):
            sign = -1.0 if token.value == "-" else 1.0
            cursor += 1
        number = tokens[cursor]
        if number.kind is not TokenKind.number:
            raise TypeMismatchError(spec.name, token.text, describe_expected(spec))
        value: float | int = sign * float(number.value)
        if spec.type is ParamType.integer:
            if not float(value).is_integer():
                raise TypeMismatchError(spec.name, number.text, describe_expected(spec))
            value = int(value)
        _check_range(spec, value, number.text)
        return value, cursor + 1

    if spec.type in {ParamType.word, ParamType.option}:
        if token.kind not in {TokenKind.word, TokenKind.quoted}:
            raise TypeMismatchError(spec.name, token.text, describe_expected(spec))
        if spec.vocabulary is None:
            return token.value, index + 1
        canonical = spec.vocabulary.get(token.value.casefold())
        if canonical is None:
            raise TypeMismatchError(spec.name, token.text, describe_expected(spec))
        return canonical, index + 1

    return join_tokens(tokens[index:]), len(tokens)


def coerce_answer(spec: ParameterSpec, tokens: Sequence[Token]) -> Any:
    """把澄清追问的回复整体解释为指定参数的值。"""
    if not tokens:
        raise MissingParameterError(spec.name, spec.description)
    if spec.type is ParamType.text:
        return join_tokens(tokens)
    index = _skip_connectors(tokens, 0)
    if index >= len(tokens):
        raise TypeMismatchError(spec.name, join_tokens(tokens), describe_expected(spec))
    value, cursor = read_value(spec, tokens, index)
    # 回答必须整体是该参数的值，否则交给匹配器当作新请求处理。
    if _skip_connectors(tokens, cursor) < len(tokens):
        raise TypeMismatchError(spec.name, join_tokens(tokens), describe_expected(spec))
    return value


def extract(
    skill: BaseSkill,
    candidate: MatchCandidate,
    attachments: Sequence[Attachment] = (),
) -> dict[str, Any]:
    """按技能参数定义抽取参数集合；text 参数缺失时可由附件补齐。"""
    values: dict[str, Any] = {
        name: value for name, value in candidate.bound.items() if any(spec.name == name for spec in skill.parameters)
    }
    remaining = list(candidate.remainder)

    for spec in skill.parameters:
        if spec.type is ParamType.option and spec.name not in values:
            value = _pull_option(spec, remaining)
            if value is not None:
                values[spec.name] = value

    cursor = 0
    for spec in skill.parameters:
        if spec.type not in POSITIONAL_TYPES or spec.name in values:
            continue
        cursor = _skip_connectors(remaining, cursor)
        if cursor >= len(remaining):
            _apply_default_or_raise(spec, values, remaining[cursor:])
            continue
        values[spec.name], cursor = read_value(spec, remaining, cursor)

    leftover = remaining[cursor:]
    for spec in skill.parameters:
        if spec.type is not ParamType.text or spec.name in values:
            continue
        start = _skip_connectors(leftover, 0)
        if start < len(leftover):
            values[spec.name] = join_tokens(leftover[start:])
            leftover = []
        elif spec.accepts_attachments and attachments:
            values[spec.name] = tuple(attachments)
        else:
            _apply_default_or_raise(spec, values, ())

    for spec in skill.parameters:
        if spec.name not in values:
            _apply_default_or_raise(spec, values, leftover)
    return values


def _apply_default_or_raise(spec: ParameterSpec, values: dict[str, Any], leftover: Sequence[Token]) -> None:
    if spec.required:
        raise MissingParameterError(spec.name, spec.description, bound=values, remainder=tuple(leftover))
    values[spec.name] = spec.default


def _check_range(spec: ParameterSpec, value: float, raw: str) -> None:
    if spec.minimum is not None and value < spec.minimum:
        raise TypeMismatchError(spec.name, raw, describe_expected(spec))
    if spec.maximum is not None and value > spec.maximum:
        raise TypeMismatchError(spec.name, raw, describe_expected(spec))


def _skip_connectors(tokens: Sequence[Token], index: int) -> int:
    while index < len(tokens) and is_connector(tokens[index]):
        index += 1
    return index


def _pull_option(spec: ParameterSpec, remaining: list[Token]) -> Any:
    """只在剩余词元的首尾查找选项关键词，避免吞掉自由文本中间的单词。"""
    if not remaining or spec.vocabulary is None:
        return None
    for position in (0, len(remaining) - 1):
        token = remaining[position]
        if token.kind is TokenKind.word and token.value in spec.vocabulary:
            del remaining[position]
            return spec.vocabulary[token.value]
    return None
