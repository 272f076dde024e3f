"""匹配谓词：关键词、短语、正则与形状谓词，各自对词元序列给出部分得分。"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from yozuk.domain.enums import TokenKind
from yozuk.domain.models import Token


@dataclass(frozen=True, slots=True)
class PredicateHit:
    """谓词命中结果；span 为左闭右开的词元区间，consumes 表示该区间不再参与参数抽取。"""
    score: float
    span: tuple[int, int]
    consumes: bool = True


class MatchPredicate(ABC):
    """匹配谓词抽象基类。"""
    score: float
    consumes: bool

    @abstractmethod
    def evaluate(self, tokens: Sequence[Token]) -> PredicateHit | None:
        """对词元序列求值，未命中返回 None。"""

    def _hit(self, start: int, end: int) -> PredicateHit:
        return PredicateHit(score=self.score, span=(start, end), consumes=self.consumes)


class KeywordPredicate(MatchPredicate):
    """任一关键词以单词词元出现即命中，取第一次出现的位置。"""

    def __init__(self, keywords: Iterable[str], score: float, *, consumes: bool = True) -> None:
        self.keywords = frozenset(word.casefold() for word in keywords)
        self.score = score
        self.consumes = consumes

    def evaluate(self, tokens: Sequence[Token]) -> PredicateHit | None:
        for index, token in enumerate(tokens):
            if token.kind is TokenKind.word and token.value in self.keywords:
                return self._hit(index, index + 1)
        return None


class PhrasePredicate(MatchPredicate):
    """连续单词序列命中；多个短语时取最长的一个。"""

    def __init__(self, phrases: Iterable[str], score: float, *, consumes: bool = True) -> None:
        self.phrases = sorted(
            (tuple(phrase.casefold().split()) for phrase in phrases),
            key=len,
            reverse=True,
        )
        self.score = score
        self.consumes = consumes

    def evaluate(self, tokens: Sequence[Token]) -> PredicateHit | None:
        values = [token.value if token.kind is TokenKind.word else None for token in tokens]
        for phrase in self.phrases:
            size = len(phrase)
            for start in range(len(values) - size + 1):
                if tuple(values[start : start + size]) == phrase:
                    return self._hit(start, start + size)
        return None


class PatternPredicate(MatchPredicate):
    """正则匹配空格拼接后的词元值，再把字符区间映射回词元区间。"""

    def __init__(self, pattern: str, score: float, *, consumes: bool = True) -> None:
        self.pattern = re.compile(pattern)
        self.score = score
        self.consumes = consumes

    def evaluate(self, tokens: Sequence[Token]) -> PredicateHit | None:
        if not tokens:
            return None
        offsets: list[tuple[int, int]] = []
        cursor = 0
        for token in tokens:
            offsets.append((cursor, cursor + len(token.value)))
            cursor += len(token.value) + 1
        joined = " ".join(token.value for token in tokens)
        match = self.pattern.search(joined)
        if match is None or match.start() == match.end():
            return None
        covered = [
            index
            for index, (start, end) in enumerate(offsets)
            if start < match.end() and end > match.start()
        ]
        if not covered:
            return None
        return self._hit(covered[0], covered[-1] + 1)


ShapeFunction = Callable[[Sequence[Token]], "tuple[int, int] | None"]


class ShapePredicate(MatchPredicate):
    """形状谓词：由技能提供的函数判断词元结构，返回命中区间。"""

    def __init__(self, shape: ShapeFunction, score: float, *, consumes: bool = False) -> None:
        self.shape = shape
        self.score = score
        self.consumes = consumes

    def evaluate(self, tokens: Sequence[Token]) -> PredicateHit | None:
        span = self.shape(tokens)
        if span is None:
            return None
        return self._hit(*span)
