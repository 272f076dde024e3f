"""货币换算技能：按汇率提供方给出的美元基准汇率换算金额。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

from yozuk.domain.enums import ParamType
from yozuk.domain.errors import SkillError
from yozuk.domain.models import OutputBlock, ParameterSpec
from yozuk.domain.routing.predicates import KeywordPredicate, MatchPredicate, ShapePredicate
from yozuk.domain.skills.base import BaseSkill, SkillRuntime
from yozuk.domain.skills.unit_convert import full_quantity_span, quantity_span

CURRENCY_ALIASES: dict[str, str] = {
    "usd": "USD", "dollar": "USD", "dollars": "USD",
    "eur": "EUR", "euro": "EUR", "euros": "EUR",
    "jpy": "JPY", "yen": "JPY",
    "gbp": "GBP", "sterling": "GBP",
    "cny": "CNY", "rmb": "CNY", "yuan": "CNY",
    "krw": "KRW", "won": "KRW",
    "cad": "CAD",
    "aud": "AUD",
    "chf": "CHF", "franc": "CHF", "francs": "CHF",
    "inr": "INR", "rupee": "INR", "rupees": "INR",
    "hkd": "HKD",
    "sgd": "SGD",
}


@dataclass(frozen=True, slots=True)
class RateTable:
    """以美元为基准的汇率表，rates[code] 表示 1 USD 可兑换的该货币数量。"""
    rates: Mapping[str, float]
    source: str

    def convert(self, amount: float, source: str, target: str) -> float:
        for code in (source, target):
            if code not in self.rates:
                raise SkillError(f"no exchange rate available for {code}", code="unknown_currency")
        return amount / self.rates[source] * self.rates[target]


class RateProvider(Protocol):
    """汇率提供方接口；timeout 为本次调用允许的最长耗时（秒）。"""

    def get_rates(self, timeout: float) -> RateTable:
        ...


class CurrencyConvertSkill(BaseSkill):
    """货币换算技能实现。"""
    code = "currency-convert"
    name = "Currency converter"
    aliases = ("currency", "exchange", "fx")
    description = "Convert an amount of money between currencies."
    examples = ("100 usd to jpy", "convert 20 euros to dollars")
    parameters = (
        ParameterSpec(name="amount", type=ParamType.number, description="amount of money"),
        ParameterSpec(name="source", type=ParamType.word, description="source currency", vocabulary=CURRENCY_ALIASES),
        ParameterSpec(name="target", type=ParamType.word, description="target currency", vocabulary=CURRENCY_ALIASES),
    )

    def __init__(self, provider: RateProvider) -> None:
        self._provider = provider

    def build_predicates(self) -> Sequence[MatchPredicate]:
        return (
            ShapePredicate(full_quantity_span(CURRENCY_ALIASES), 0.95),
            ShapePredicate(quantity_span(CURRENCY_ALIASES), 0.85),
            KeywordPredicate(("currency", "exchange", "fx"), 0.9),
            KeywordPredicate(("convert", "conversion"), 0.6),
        )

    def execute(self, arguments: Mapping[str, Any], runtime: SkillRuntime) -> list[OutputBlock]:
        amount = float(arguments["amount"])
        source = str(arguments["source"])
        target = str(arguments["target"])
        table = self._provider.get_rates(timeout=runtime.remaining())
        runtime.check_cancelled()
        converted = table.convert(amount, source, target)
        return [OutputBlock.text(f"{amount:,.2f} {source} = {converted:,.2f} {target} ({table.source})")]
