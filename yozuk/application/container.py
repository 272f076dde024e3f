"""依赖容器模块，负责单例化创建注册中心、会话存储、执行器与引擎对象。"""

from __future__ import annotations

from functools import lru_cache

from yozuk.application.engine import YozukEngine
from yozuk.application.executor import SkillExecutor
from yozuk.config import get_settings
from yozuk.domain.routing.disambiguator import Disambiguator
from yozuk.domain.routing.matcher import Matcher
from yozuk.domain.skills.currency import RateProvider
from yozuk.domain.skills.registry import SkillRegistry, build_default_registry
from yozuk.infra.rates.client import HttpRateProvider, StaticRateProvider
from yozuk.infra.session.store import SessionStore, SessionSweeper


@lru_cache(maxsize=1)
def get_rate_provider() -> RateProvider:
    """获取汇率提供方单例。
    返回:
    - 配置了 currency_rates_url 时返回 HTTP 提供方，否则返回静态汇率表。
    """
    settings = get_settings()
    if settings.currency_rates_url:
        return HttpRateProvider(settings.currency_rates_url, ttl_seconds=settings.currency_rates_ttl_seconds)
    return StaticRateProvider()


@lru_cache(maxsize=1)
def get_skill_registry() -> SkillRegistry:
    """获取技能注册中心单例。
    返回:
    - 已冻结的注册中心；技能编码重复时抛出 DuplicateSkillError，进程不应继续启动。
    """
    return build_default_registry(get_settings(), get_rate_provider())


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    """获取会话存储单例。"""
    settings = get_settings()
    return SessionStore(
        ttl_seconds=settings.clarification_timeout_seconds,
        max_queue_depth=settings.conversation_queue_depth,
    )


@lru_cache(maxsize=1)
def get_session_sweeper() -> SessionSweeper:
    """获取会话清理线程单例（未启动）。"""
    return SessionSweeper(get_session_store(), get_settings().session_sweep_interval_seconds)


@lru_cache(maxsize=1)
def get_executor() -> SkillExecutor:
    """获取技能执行器单例。"""
    settings = get_settings()
    return SkillExecutor(limits_for=settings.limits_for, max_workers=settings.executor_max_workers)


@lru_cache(maxsize=1)
def get_engine() -> YozukEngine:
    """获取引擎单例。
    返回:
    - 组装好匹配器、消歧器、执行器与会话存储的引擎实例。
    """
    settings = get_settings()
    registry = get_skill_registry()
    return YozukEngine(
        registry=registry,
        matcher=Matcher(registry),
        disambiguator=Disambiguator(
            threshold=settings.confidence_threshold,
            margin=settings.ambiguity_margin,
            floor=settings.confidence_floor,
            max_options=settings.max_clarify_options,
        ),
        executor=get_executor(),
        store=get_session_store(),
        max_attachment_bytes=settings.max_attachment_bytes,
    )


def shutdown_container_resources() -> None:
    """停止后台线程、关闭共享客户端并清理依赖容器缓存。"""
    if get_session_sweeper.cache_info().currsize:
        get_session_sweeper().stop()
    if get_executor.cache_info().currsize:
        get_executor().close()
    if get_rate_provider.cache_info().currsize:
        provider = get_rate_provider()
        if isinstance(provider, HttpRateProvider):
            provider.close()

    # 按依赖顺序清理缓存，确保后续调用可重新构建全新实例。
    for provider_factory in (
        get_engine,
        get_executor,
        get_session_sweeper,
        get_session_store,
        get_skill_registry,
        get_rate_provider,
    ):
        provider_factory.cache_clear()
