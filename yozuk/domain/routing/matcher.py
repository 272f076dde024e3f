"""匹配器：对全部已注册技能评分，输出按置信度排序的候选列表。

评分规则：
- 每个技能的置信度取其全部谓词命中得分的最大值（而非求和），截断到 [0, 1]；
- 排序依次按置信度降序、命中词元跨度降序、技能编码字典序；
- 会话存在待澄清上下文时，先尝试把新话语解释为对澄清的回答。
"""

from __future__ import annotations

import logging
from typing import Sequence

from yozuk.domain.enums import TokenKind
from yozuk.domain.errors import ExtractionError
from yozuk.domain.models import ExecutionContext, MatchCandidate, PendingChoice, PendingParameter, Token
from yozuk.domain.routing.extractor import coerce_answer, is_connector
from yozuk.domain.routing.predicates import PredicateHit
from yozuk.domain.skills.registry import SkillRegistry

logger = logging.getLogger(__name__)

CONFIRM_WORDS = frozenset({"yes", "y", "ok", "okay", "sure", "yep", "yeah"})
REPEAT_PHRASES = frozenset({("again",), ("repeat",), ("once", "more"), ("one", "more")})


def merge_spans(spans: Sequence[tuple[int, int]]) -> tuple[tuple[int, int], ...]:
    """合并重叠或相邻的区间。"""
    merged: list[tuple[int, int]] = []
    for start, end in sorted(spans):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return tuple(merged)


def ranking_key(candidate: MatchCandidate) -> tuple[float, int, str]:
    return (-candidate.confidence, -candidate.span_length, candidate.skill_code)


class Matcher:
    """技能匹配器，纯函数式评分，相同输入总是得到相同结果。"""
    def __init__(self, registry: SkillRegistry) -> None:
        self._registry = registry

    def match(self, tokens: Sequence[Token], context: ExecutionContext | None = None) -> list[MatchCandidate]:
        """返回排序后的候选；能解释为澄清回答时只返回该候选。"""
        if context is not None:
            resumed = self.resolve_followup(tokens, context)
            if resumed is not None:
                return [resumed]
        return self.rank(tokens)

    def rank(self, tokens: Sequence[Token]) -> list[MatchCandidate]:
        if not tokens:
            return []
        candidates: list[MatchCandidate] = []
        for skill in self._registry.all():
            hits = skill.evaluate(tokens)
            if hits:
                candidates.append(self._candidate(skill.code, tokens, hits))
        candidates.sort(key=ranking_key)
        return candidates

    def resolve_followup(self, tokens: Sequence[Token], context: ExecutionContext) -> MatchCandidate | None:
        if not tokens:
            return None
        pending = context.pending
        if isinstance(pending, PendingChoice):
            return self._resolve_choice(tokens, pending)
        if isinstance(pending, PendingParameter):
            return self._resolve_parameter(tokens, pending)
        if context.last_result is not None and self._is_repeat(tokens):
            last = context.last_result
            if last.skill_code in self._registry:
                return MatchCandidate(
                    skill_code=last.skill_code,
                    confidence=1.0,
                    bound=dict(last.arguments),
                    resumed=True,
                )
        return None

    @staticmethod
    def _candidate(skill_code: str, tokens: Sequence[Token], hits: list[PredicateHit]) -> MatchCandidate:
        confidence = round(min(1.0, max(0.0, max(hit.score for hit in hits))), 4)
        consumed = {index for hit in hits if hit.consumes for index in range(*hit.span)}
        return MatchCandidate(
            skill_code=skill_code,
            confidence=confidence,
            spans=merge_spans([hit.span for hit in hits]),
            remainder=tuple(token for index, token in enumerate(tokens) if index not in consumed),
        )

    def _resolve_choice(self, tokens: Sequence[Token], pending: PendingChoice) -> MatchCandidate | None:
        options = pending.candidates
        chosen: MatchCandidate | None = None
        span: tuple[int, int] | None = None

        first = tokens[0]
        if len(tokens) == 1 and first.kind is TokenKind.number and first.value.isdigit():
            index = int(first.value)
            if 1 <= index <= len(options):
                chosen, span = options[index - 1], (0, 1)
        elif len(options) == 1 and first.kind is TokenKind.word and first.value in CONFIRM_WORDS:
            chosen, span = options[0], (0, 1)
        else:
            named = []
            for option in options:
                found = self._find_name(tokens, option.skill_code)
                if found is not None:
                    named.append((option, found))
            if len(named) == 1:
                chosen, span = named[0]

        if chosen is None or span is None:
            return None
        extra = tuple(
            token
            for index, token in enumerate(tokens)
            if not span[0] <= index < span[1] and not is_connector(token)
        )
        logger.debug(
            "clarification choice resolved",
            extra={"event": "matcher.choice.resolved", "payload_preview": {"skill_code": chosen.skill_code}},
        )
        return MatchCandidate(
            skill_code=chosen.skill_code,
            confidence=1.0,
            spans=chosen.spans,
            remainder=chosen.remainder + extra,
            bound=dict(chosen.bound),
            resumed=True,
        )

    def _resolve_parameter(self, tokens: Sequence[Token], pending: PendingParameter) -> MatchCandidate | None:
        if pending.skill_code not in self._registry:
            return None
        skill = self._registry.get(pending.skill_code)
        try:
            value = coerce_answer(skill.parameter(pending.parameter), tokens)
        except ExtractionError:
            return None
        return MatchCandidate(
            skill_code=skill.code,
            confidence=1.0,
            remainder=pending.remainder,
            bound={**pending.bound, pending.parameter: value},
            resumed=True,
        )

    def _find_name(self, tokens: Sequence[Token], skill_code: str) -> tuple[int, int] | None:
        if skill_code not in self._registry:
            return None
        values = [token.value if token.kind is TokenKind.word else None for token in tokens]
        names = sorted(
            (tuple(name.split()) for name in self._registry.get(skill_code).names()),
            key=lambda name: (-len(name), name),
        )
        for name in names:
            size = len(name)
            for start in range(len(values) - size + 1):
                if tuple(values[start : start + size]) == name:
                    return start, start + size
        return None

    @staticmethod
    def _is_repeat(tokens: Sequence[Token]) -> bool:
        words = tuple(token.value for token in tokens if token.kind is TokenKind.word)
        return len(words) == len(tokens) and words in REPEAT_PHRASES
