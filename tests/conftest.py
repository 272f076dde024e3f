"""测试公共夹具：隔离日志目录，并提供注册中心与引擎构建辅助。"""

from __future__ import annotations

import os
import tempfile
import time
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import pytest

# 必须先于 yozuk.main 导入，避免测试日志写入仓库目录。
os.environ.setdefault("YOZUK_LOG_DIR", tempfile.mkdtemp(prefix="yozuk-test-logs-"))

from yozuk.application.engine import YozukEngine  # noqa: E402
from yozuk.application.executor import SkillExecutor  # noqa: E402
from yozuk.config import ResourceLimits, Settings  # noqa: E402
from yozuk.domain.models import OutputBlock  # noqa: E402
from yozuk.domain.routing.disambiguator import Disambiguator  # noqa: E402
from yozuk.domain.routing.matcher import Matcher  # noqa: E402
from yozuk.domain.routing.predicates import KeywordPredicate, MatchPredicate  # noqa: E402
from yozuk.domain.skills.base import BaseSkill, SkillRuntime  # noqa: E402
from yozuk.domain.skills.registry import SkillRegistry, build_default_registry  # noqa: E402
from yozuk.infra.rates.client import StaticRateProvider  # noqa: E402
from yozuk.infra.session.store import SessionStore  # noqa: E402


class FakeClock:
    """可手动推进的时钟。"""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SlowSkill(BaseSkill):
    """测试用技能：持续运行直到被取消。"""
    code = "slow"
    name = "Slow"

    def build_predicates(self) -> Sequence[MatchPredicate]:
        return (KeywordPredicate(("slow",), 0.9),)

    def execute(self, arguments: Mapping[str, Any], runtime: SkillRuntime) -> list[OutputBlock]:
        while True:
            runtime.check_cancelled()
            time.sleep(0.01)


class CrashSkill(BaseSkill):
    """测试用技能：抛出非领域异常。"""
    code = "crash"
    name = "Crash"

    def build_predicates(self) -> Sequence[MatchPredicate]:
        return (KeywordPredicate(("crash",), 0.9),)

    def execute(self, arguments: Mapping[str, Any], runtime: SkillRuntime) -> list[OutputBlock]:
        raise RuntimeError("boom")


@dataclass
class EngineParts:
    engine: YozukEngine
    store: SessionStore
    registry: SkillRegistry
    clock: FakeClock


def default_registry(**overrides: Any) -> SkillRegistry:
    return build_default_registry(Settings(**overrides), StaticRateProvider())


@pytest.fixture
def build_engine() -> Iterator[Any]:
    """返回引擎构建函数，测试结束后关闭全部执行器。"""
    executors: list[SkillExecutor] = []

    def _build(
        registry: SkillRegistry | None = None,
        *,
        timeout_seconds: float = 2.0,
        max_output_chars: int = 16 * 1024,
        ttl_seconds: float = 120.0,
        max_queue_depth: int = 16,
        max_attachment_bytes: int = 10 * 1024 * 1024,
    ) -> EngineParts:
        if registry is None:
            registry = default_registry()
        clock = FakeClock()
        store = SessionStore(ttl_seconds=ttl_seconds, clock=clock, max_queue_depth=max_queue_depth)
        executor = SkillExecutor(limits_for=lambda _code: ResourceLimits(timeout_seconds, max_output_chars))
        executors.append(executor)
        engine = YozukEngine(
            registry=registry,
            matcher=Matcher(registry),
            disambiguator=Disambiguator(),
            executor=executor,
            store=store,
            max_attachment_bytes=max_attachment_bytes,
        )
        return EngineParts(engine=engine, store=store, registry=registry, clock=clock)

    yield _build
    for executor in executors:
        executor.close()
