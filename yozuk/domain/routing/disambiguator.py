"""消歧器：根据置信度阈值、领先幅度与下限决定执行、澄清或无法匹配。"""

from __future__ import annotations

from typing import Sequence

from yozuk.domain.models import Decision, MatchCandidate

# 浮点误差容忍，避免 0.95 - 0.8 之类的差值因精度落在边界下方。
_EPSILON = 1e-9


class Disambiguator:
    """消歧策略，全部阈值来自配置。"""
    def __init__(
        self,
        *,
        threshold: float = 0.8,
        margin: float = 0.15,
        floor: float = 0.4,
        max_options: int = 5,
    ) -> None:
        if not 0.0 <= floor <= threshold <= 1.0:
            raise ValueError(f"expected 0 <= floor ({floor}) <= threshold ({threshold}) <= 1")
        self._threshold = threshold
        self._margin = margin
        self._floor = floor
        self._max_options = max_options

    def resolve(self, candidates: Sequence[MatchCandidate]) -> Decision:
        """对排序后的候选给出决策。"""
        if not candidates:
            return Decision.no_match()
        top = candidates[0]
        if top.resumed:
            return Decision.execute(top)
        if top.confidence < self._floor:
            return Decision.no_match()

        contenders = [item for item in candidates[1:] if item.confidence >= self._floor]
        runner_up = contenders[0] if contenders else None
        clear_lead = runner_up is None or top.confidence - runner_up.confidence + _EPSILON >= self._margin
        if top.confidence >= self._threshold and clear_lead:
            return Decision.execute(top)

        close = [top] + [item for item in contenders if top.confidence - item.confidence + _EPSILON < self._margin]
        return Decision.clarify(tuple(close[: self._max_options]))
