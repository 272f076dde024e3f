"""技能抽象基类，约束匹配谓词、参数定义与执行接口。"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Mapping, Sequence

from yozuk.config import ResourceLimits
from yozuk.domain.errors import ResourceExceededError
from yozuk.domain.models import Attachment, OutputBlock, ParameterSpec, SkillDescriptor, Token
from yozuk.domain.routing.predicates import MatchPredicate, PredicateHit


@dataclass(slots=True)
class SkillRuntime:
    """单次技能执行的运行时信息：资源预算、截止时间与取消信号。"""
    skill_code: str
    limits: ResourceLimits
    deadline: float
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    def check_cancelled(self) -> None:
        """长耗时技能在循环中调用，超时后尽快退出。"""
        if self.cancel_event.is_set() or time.monotonic() > self.deadline:
            raise ResourceExceededError(self.skill_code, "time")


def input_payloads(value: Any) -> list[tuple[str | None, bytes]]:
    """把 text 参数值统一为 (文件名, 内容) 列表：附件逐个展开，文本按 UTF-8 编码。"""
    if isinstance(value, tuple) and value and all(isinstance(item, Attachment) for item in value):
        return [(item.file_name, item.data) for item in value]
    return [(None, str(value).encode("utf-8"))]


class BaseSkill(ABC):
    """技能抽象基类，定义各技能必须实现的统一接口。"""
    code: str
    name: str
    aliases: tuple[str, ...] = ()
    description: str = ""
    examples: tuple[str, ...] = ()
    parameters: tuple[ParameterSpec, ...] = ()

    @abstractmethod
    def build_predicates(self) -> Sequence[MatchPredicate]:
        """构建技能匹配谓词。"""

    @abstractmethod
    def execute(self, arguments: Mapping[str, Any], runtime: SkillRuntime) -> list[OutputBlock]:
        """基于已校验参数执行技能，失败时抛出 SkillError。"""

    @cached_property
    def predicates(self) -> tuple[MatchPredicate, ...]:
        return tuple(self.build_predicates())

    def evaluate(self, tokens: Sequence[Token]) -> list[PredicateHit]:
        """返回全部命中的谓词结果。"""
        hits: list[PredicateHit] = []
        for predicate in self.predicates:
            hit = predicate.evaluate(tokens)
            if hit is not None:
                hits.append(hit)
        return hits

    def parameter(self, name: str) -> ParameterSpec:
        for spec in self.parameters:
            if spec.name == name:
                return spec
        raise KeyError(f"unknown parameter {name} for skill {self.code}")

    def names(self) -> frozenset[str]:
        """返回可用于在澄清回复中指代本技能的名称集合。"""
        values = {self.code.casefold(), self.name.casefold()}
        values.update(alias.casefold() for alias in self.aliases)
        return frozenset(values)

    def descriptor(self) -> SkillDescriptor:
        """返回技能描述对象。"""
        return SkillDescriptor(
            code=self.code,
            name=self.name,
            aliases=self.aliases,
            description=self.description,
            examples=self.examples,
            parameters=self.parameters,
        )
