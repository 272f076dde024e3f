"""分词与规范化：将原始输入转为有序词元序列，纯函数且结果确定。"""

from __future__ import annotations

import re
import unicodedata
from typing import Sequence

from yozuk.domain.enums import TokenKind
from yozuk.domain.models import Token

_QUOTE_PAIRS = {
    '"': '"',
    "'": "'",
    "“": "”",
    "‘": "’",
    "`": "`",
}

_NUMBER_RE = re.compile(
    r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?(?:[eE][+-]?\d+)?"
    r"|\.\d+(?:[eE][+-]?\d+)?"
)
_WORD_RE = re.compile(r"[^\W\d_](?:[\w\-]*\w)?")
_MULTI_SYMBOL_RE = re.compile(r"\*\*|//|->|=>|<=|>=|!=|==")
_SPACE_RE = re.compile(r"\s+")


def normalize_text(raw: str) -> str:
    """Unicode NFKC 规范化，全角数字与运算符统一为 ASCII。"""
    return unicodedata.normalize("NFKC", raw)


def normalize(raw: str) -> list[Token]:
    """将原始文本切分为词元序列；空白输入返回空列表。"""
    text = normalize_text(raw or "")
    tokens: list[Token] = []
    pos = 0
    leading = ""
    length = len(text)

    while pos < length:
        space = _SPACE_RE.match(text, pos)
        if space:
            leading = space.group()
            pos = space.end()
            continue

        token = _read_quoted(text, pos, leading) or _read_plain(text, pos, leading)
        tokens.append(token)
        pos = token.end
        leading = ""
    return tokens


def _read_quoted(text: str, pos: int, leading: str) -> Token | None:
    closing = _QUOTE_PAIRS.get(text[pos])
    # 仅在输入开头或空白之后开启引号，避免 don't 之类的撇号被误判。
    if closing is None or (pos > 0 and not text[pos - 1].isspace()):
        return None
    end = text.find(closing, pos + 1)
    if end == -1:
        return None
    return Token(
        kind=TokenKind.quoted,
        text=text[pos : end + 1],
        value=text[pos + 1 : end],
        start=pos,
        end=end + 1,
        leading=leading,
    )


def _read_plain(text: str, pos: int, leading: str) -> Token:
    number = _NUMBER_RE.match(text, pos)
    if number:
        surface = number.group()
        return Token(TokenKind.number, surface, surface.replace(",", ""), pos, number.end(), leading)

    word = _WORD_RE.match(text, pos)
    if word:
        surface = word.group()
        return Token(TokenKind.word, surface, surface.casefold(), pos, word.end(), leading)

    symbol = _MULTI_SYMBOL_RE.match(text, pos)
    end = symbol.end() if symbol else pos + 1
    surface = text[pos:end]
    return Token(TokenKind.symbol, surface, surface, pos, end, leading)


def join_tokens(tokens: Sequence[Token]) -> str:
    """按原始空白还原词元片段文本；单个引号词元返回其内容。"""
    if len(tokens) == 1 and tokens[0].kind is TokenKind.quoted:
        return tokens[0].value
    parts: list[str] = []
    for index, token in enumerate(tokens):
        if index and token.leading:
            parts.append(token.leading)
        parts.append(token.text)
    return "".join(parts)


def token_values(tokens: Sequence[Token]) -> list[str]:
    return [token.value for token in tokens]
