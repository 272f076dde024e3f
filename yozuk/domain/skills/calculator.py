"""计算器技能：识别算术表达式并在受限语法树上安全求值。"""

from __future__ import annotations

import ast
import math
import operator
import re
from typing import Any, Callable, Mapping, Sequence

from yozuk.domain.enums import ParamType, TokenKind
from yozuk.domain.errors import ResourceExceededError, SkillError
from yozuk.domain.models import OutputBlock, ParameterSpec, Token
from yozuk.domain.routing.predicates import KeywordPredicate, MatchPredicate, PhrasePredicate, ShapePredicate
from yozuk.domain.skills.base import BaseSkill, SkillRuntime

OPERATOR_SYMBOLS = frozenset({"+", "-", "*", "/", "**", "//", "^", "%", "(", ")", "×", "÷", ","})
FILLER_WORDS = frozenset({"what", "is", "calc", "calculate", "compute", "eval", "evaluate"})
TRAILING_SYMBOLS = frozenset({"?", "="})

FUNCTIONS: dict[str, Callable[..., Any]] = {
    "sqrt": math.sqrt,
    "abs": abs,
    "round": round,
    "floor": math.floor,
    "ceil": math.ceil,
    "exp": math.exp,
    "ln": math.log,
    "log": math.log,
    "log10": math.log10,
    "log2": math.log2,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "min": min,
    "max": max,
}
CONSTANTS: dict[str, float] = {"pi": math.pi, "e": math.e, "tau": math.tau}

_BINARY_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_THOUSANDS_RE = re.compile(r"(?<=\d),(?=\d{3}(?!\d))")

MAX_EXPONENT = 4096
MAX_RESULT_BITS = 10_000


def expression_span(tokens: Sequence[Token]) -> tuple[int, int] | None:
    """判断去掉引导词与结尾问号后的词元是否整体构成算术表达式。"""
    start, end = 0, len(tokens)
    while start < end and tokens[start].kind is TokenKind.word and tokens[start].value in FILLER_WORDS:
        start += 1
    while end > start and tokens[end - 1].kind is TokenKind.symbol and tokens[end - 1].value in TRAILING_SYMBOLS:
        end -= 1
    if start == end:
        return None

    operands = 0
    operators = 0
    body = tokens[start:end]
    for index, token in enumerate(body):
        if token.kind is TokenKind.number:
            operands += 1
        elif token.kind is TokenKind.symbol and token.value in OPERATOR_SYMBOLS:
            if token.value not in {"(", ")", ","}:
                operators += 1
        elif token.kind is TokenKind.word and token.value in CONSTANTS:
            operands += 1
        elif token.kind is TokenKind.word and token.value in FUNCTIONS and _opens_call(body, index):
            # 函数名只有紧跟左括号才算运算符，"5 min" 不是表达式。
            operators += 1
        else:
            return None
    if operands == 0 or operators == 0:
        return None
    return start, end


def _opens_call(tokens: Sequence[Token], index: int) -> bool:
    following = index + 1
    return following < len(tokens) and tokens[following].kind is TokenKind.symbol and tokens[following].value == "("


def format_number(value: Any) -> str:
    """整数或整值浮点输出为整数形式，其余保留 12 位有效数字。"""
    if isinstance(value, bool):
        value = int(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise SkillError("result is not a finite number", code="invalid_result")
        if value.is_integer() and abs(value) < 1e15:
            return str(int(value))
        return format(value, ".12g")
    raise SkillError("result is not a number", code="invalid_result")


class SafeEvaluator:
    """仅支持数字、四则/幂/取模运算、白名单函数与常量的表达式求值器。"""

    def __init__(self, skill_code: str) -> None:
        self._skill_code = skill_code

    def evaluate(self, expression: str) -> Any:
        source = expression.replace("^", "**").replace("×", "*").replace("÷", "/").strip()
        source = _THOUSANDS_RE.sub("", source)
        while source and source[-1] in TRAILING_SYMBOLS:
            source = source[:-1].rstrip()
        try:
            tree = ast.parse(source, mode="eval")
        except SyntaxError as exc:
            raise SkillError(f"invalid expression: {expression}", code="invalid_expression") from exc
        try:
            return self._eval(tree.body)
        except ZeroDivisionError as exc:
            raise SkillError("division by zero", code="division_by_zero") from exc
        except OverflowError as exc:
            raise SkillError("numeric overflow", code="overflow") from exc
        except (ValueError, TypeError) as exc:
            raise SkillError(f"math error: {exc}", code="math_error") from exc

    def _eval(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            return node.value
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            left = self._eval(node.left)
            right = self._eval(node.right)
            if isinstance(node.op, ast.Pow):
                self._check_power(left, right)
            result = _BINARY_OPS[type(node.op)](left, right)
            if isinstance(result, complex):
                raise SkillError("math error: result is not a real number", code="math_error")
            if isinstance(result, int) and result.bit_length() > MAX_RESULT_BITS:
                raise ResourceExceededError(self._skill_code, "memory")
            return result
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](self._eval(node.operand))
        if isinstance(node, ast.Name) and node.id.casefold() in CONSTANTS:
            return CONSTANTS[node.id.casefold()]
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and not node.keywords:
            func = FUNCTIONS.get(node.func.id.casefold())
            if func is not None:
                return func(*(self._eval(arg) for arg in node.args))
        raise SkillError(f"unsupported expression element: {type(node).__name__}", code="invalid_expression")

    def _check_power(self, base: Any, exponent: Any) -> None:
        if not isinstance(base, (int, float)) or not isinstance(exponent, (int, float)):
            raise SkillError("math error: operands must be real numbers", code="math_error")
        if abs(exponent) > MAX_EXPONENT:
            raise ResourceExceededError(self._skill_code, "memory")
        if isinstance(base, int) and isinstance(exponent, int) and exponent > 0:
            if base.bit_length() * exponent > MAX_RESULT_BITS:
                raise ResourceExceededError(self._skill_code, "memory")


class CalculatorSkill(BaseSkill):
    """计算器技能实现。"""
    code = "calc"
    name = "Calculator"
    aliases = ("calculator", "math", "arithmetic")
    description = "Evaluate arithmetic expressions."
    examples = ("2 + 2", "calc sqrt(2) * 3", "what is 2^10")
    parameters = (
        ParameterSpec(name="expression", type=ParamType.text, description="arithmetic expression"),
    )

    def build_predicates(self) -> Sequence[MatchPredicate]:
        return (
            ShapePredicate(expression_span, 0.95),
            KeywordPredicate(("calc", "calculate", "compute", "eval", "evaluate"), 0.9),
            PhrasePredicate(("what is",), 0.3),
        )

    def execute(self, arguments: Mapping[str, Any], runtime: SkillRuntime) -> list[OutputBlock]:
        """求值表达式并以纯文本返回结果。"""
        result = SafeEvaluator(self.code).evaluate(str(arguments["expression"]))
        runtime.check_cancelled()
        try:
            return [OutputBlock.text(format_number(result))]
        except ValueError as exc:
            # 超长整数转字符串会触发解释器的位数上限。
            raise ResourceExceededError(self.code, "memory") from exc
