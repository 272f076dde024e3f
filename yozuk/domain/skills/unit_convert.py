"""单位换算技能：在长度、质量、时间、体积、数据量与温度单位之间换算。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from yozuk.domain.enums import ParamType, TokenKind
from yozuk.domain.errors import SkillError
from yozuk.domain.models import OutputBlock, ParameterSpec, Token
from yozuk.domain.routing.predicates import KeywordPredicate, MatchPredicate, ShapePredicate
from yozuk.domain.skills.base import BaseSkill, SkillRuntime

CONNECTORS = frozenset({"to", "in", "into", "as"})


@dataclass(frozen=True, slots=True)
class Unit:
    """单位定义：基准值 = 数值 * factor + offset。"""
    symbol: str
    dimension: str
    factor: float
    offset: float = 0.0

    def to_base(self, value: float) -> float:
        return value * self.factor + self.offset

    def from_base(self, value: float) -> float:
        return (value - self.offset) / self.factor


UNITS: dict[str, Unit] = {
    unit.symbol: unit
    for unit in (
        Unit("m", "length", 1.0),
        Unit("km", "length", 1000.0),
        Unit("cm", "length", 0.01),
        Unit("mm", "length", 0.001),
        Unit("mi", "length", 1609.344),
        Unit("yd", "length", 0.9144),
        Unit("ft", "length", 0.3048),
        Unit("inch", "length", 0.0254),
        Unit("kg", "mass", 1.0),
        Unit("g", "mass", 0.001),
        Unit("mg", "mass", 0.000001),
        Unit("t", "mass", 1000.0),
        Unit("lb", "mass", 0.45359237),
        Unit("oz", "mass", 0.028349523125),
        Unit("s", "time", 1.0),
        Unit("ms", "time", 0.001),
        Unit("min", "time", 60.0),
        Unit("h", "time", 3600.0),
        Unit("day", "time", 86400.0),
        Unit("week", "time", 604800.0),
        Unit("l", "volume", 1.0),
        Unit("ml", "volume", 0.001),
        Unit("gal", "volume", 3.785411784),
        Unit("B", "data", 1.0),
        Unit("KB", "data", 1e3),
        Unit("MB", "data", 1e6),
        Unit("GB", "data", 1e9),
        Unit("TB", "data", 1e12),
        Unit("KiB", "data", 1024.0),
        Unit("MiB", "data", 1024.0**2),
        Unit("GiB", "data", 1024.0**3),
        Unit("K", "temperature", 1.0),
        Unit("°C", "temperature", 1.0, 273.15),
        Unit("°F", "temperature", 5 / 9, 273.15 - 32 * 5 / 9),
    )
}

UNIT_ALIASES: dict[str, str] = {
    "m": "m", "meter": "m", "meters": "m", "metre": "m", "metres": "m",
    "km": "km", "kilometer": "km", "kilometers": "km", "kilometre": "km", "kilometres": "km",
    "cm": "cm", "centimeter": "cm", "centimeters": "cm",
    "mm": "mm", "millimeter": "mm", "millimeters": "mm",
    "mi": "mi", "mile": "mi", "miles": "mi",
    "yd": "yd", "yard": "yd", "yards": "yd",
    "ft": "ft", "foot": "ft", "feet": "ft",
    "inch": "inch", "inches": "inch",
    "kg": "kg", "kilogram": "kg", "kilograms": "kg",
    "g": "g", "gram": "g", "grams": "g",
    "mg": "mg", "milligram": "mg", "milligrams": "mg",
    "t": "t", "tonne": "t", "tonnes": "t",
    "lb": "lb", "lbs": "lb", "pound": "lb", "pounds": "lb",
    "oz": "oz", "ounce": "oz", "ounces": "oz",
    "s": "s", "sec": "s", "second": "s", "seconds": "s",
    "ms": "ms", "millisecond": "ms", "milliseconds": "ms",
    "min": "min", "minute": "min", "minutes": "min",
    "h": "h", "hr": "h", "hour": "h", "hours": "h",
    "day": "day", "days": "day",
    "week": "week", "weeks": "week",
    "l": "l", "liter": "l", "liters": "l", "litre": "l", "litres": "l",
    "ml": "ml", "milliliter": "ml", "milliliters": "ml",
    "gal": "gal", "gallon": "gal", "gallons": "gal",
    "byte": "B", "bytes": "B",
    "kb": "KB", "mb": "MB", "gb": "GB", "tb": "TB",
    "kib": "KiB", "mib": "MiB", "gib": "GiB",
    "k": "K", "kelvin": "K",
    "c": "°C", "celsius": "°C",
    "f": "°F", "fahrenheit": "°F",
}


def format_quantity(value: float, digits: int = 6) -> str:
    """按固定小数位四舍五入并去掉多余的零。"""
    if value != 0 and (abs(value) >= 1e15 or abs(value) < 10**-digits):
        return format(value, f".{digits}g")
    text = f"{value:.{digits}f}".rstrip("0").rstrip(".")
    return "0" if text in {"-0", ""} else text


def quantity_span(vocabulary: Mapping[str, str]) -> Any:
    """构造形状函数：匹配“数字 单位 [连接词] [单位]”结构。"""

    def shape(tokens: Sequence[Token]) -> tuple[int, int] | None:
        for index, token in enumerate(tokens[:-1]):
            unit = tokens[index + 1]
            if token.kind is not TokenKind.number or unit.kind is not TokenKind.word or unit.value not in vocabulary:
                continue
            end = index + 2
            if end < len(tokens) and tokens[end].value in CONNECTORS:
                end += 1
            if end < len(tokens) and tokens[end].kind is TokenKind.word and tokens[end].value in vocabulary:
                return index, end + 1
            return index, index + 2
        return None

    return shape


def full_quantity_span(vocabulary: Mapping[str, str]) -> Any:
    """只接受带目标单位的完整结构，用于给出更高的置信度。"""
    base = quantity_span(vocabulary)

    def shape(tokens: Sequence[Token]) -> tuple[int, int] | None:
        span = base(tokens)
        if span is None or span[1] - span[0] < 3:
            return None
        return span

    return shape


class UnitConvertSkill(BaseSkill):
    """单位换算技能实现。"""
    code = "unit-convert"
    name = "Unit converter"
    aliases = ("unit", "units")
    description = "Convert a quantity between units of the same dimension."
    examples = ("10 km to miles", "convert 100 f to c", "5 GiB")
    parameters = (
        ParameterSpec(name="amount", type=ParamType.number, description="amount to convert"),
        ParameterSpec(name="source", type=ParamType.word, description="source unit", vocabulary=UNIT_ALIASES),
        ParameterSpec(
            name="target",
            type=ParamType.word,
            required=False,
            description="target unit",
            vocabulary=UNIT_ALIASES,
        ),
    )

    def build_predicates(self) -> Sequence[MatchPredicate]:
        return (
            ShapePredicate(full_quantity_span(UNIT_ALIASES), 0.95),
            ShapePredicate(quantity_span(UNIT_ALIASES), 0.85),
            KeywordPredicate(("unit", "units"), 0.9),
            KeywordPredicate(("convert", "conversion"), 0.6),
        )

    def execute(self, arguments: Mapping[str, Any], runtime: SkillRuntime) -> list[OutputBlock]:
        """换算到目标单位；未指定目标时输出同量纲下全部单位的表格。"""
        amount = float(arguments["amount"])
        source = UNITS[arguments["source"]]
        target_symbol = arguments.get("target")
        base = source.to_base(amount)

        if target_symbol is None:
            rows = [
                (unit.symbol, format_quantity(unit.from_base(base)))
                for unit in UNITS.values()
                if unit.dimension == source.dimension and unit.symbol != source.symbol
            ]
            caption = f"{format_quantity(amount)} {source.symbol}"
            return [OutputBlock.table(("unit", "value"), rows, caption=caption)]

        target = UNITS[target_symbol]
        if target.dimension != source.dimension:
            raise SkillError(
                f"cannot convert {source.dimension} ({source.symbol}) to {target.dimension} ({target.symbol})",
                code="incompatible_units",
            )
        converted = target.from_base(base)
        return [OutputBlock.text(f"{format_quantity(amount)} {source.symbol} = {format_quantity(converted)} {target.symbol}")]
