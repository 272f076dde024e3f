from __future__ import annotations

import contextvars
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Mapping

from yozuk.config import ResourceLimits
from yozuk.domain.errors import ExecutionError, ResourceExceededError, YozukError
from yozuk.domain.models import OutputBlock
from yozuk.domain.skills.base import BaseSkill, SkillRuntime

logger = logging.getLogger(__name__)


class SkillExecutor:
    def __init__(self, *, limits_for: Callable[[str], ResourceLimits], max_workers: int = 8) -> None:
        self._limits_for = limits_for
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="yozuk-skill")
        self._closed = False

    def execute(self, skill: BaseSkill, arguments: Mapping[str, Any]) -> list[OutputBlock]:
        if self._closed:
            raise RuntimeError("SkillExecutor is already closed")
        limits = self._limits_for(skill.code)
        runtime = SkillRuntime(
            skill_code=skill.code,
            limits=limits,
            deadline=time.monotonic() + limits.timeout_seconds,
        )
        started = time.perf_counter()
        # 工作线程不会继承 contextvars，需显式复制日志上下文。
        context = contextvars.copy_context()
        future = self._pool.submit(context.run, self._run, skill, arguments, runtime)
        try:
            blocks = future.result(timeout=limits.timeout_seconds)
        except FutureTimeoutError as exc:
            runtime.cancel_event.set()
            future.cancel()
            logger.warning(
                "skill execution timed out",
                extra={
                    "event": "skill.execute.timeout",
                    "op": skill.code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "payload_preview": {"timeout_seconds": limits.timeout_seconds},
                },
            )
            raise ResourceExceededError(skill.code, "time") from exc

        output_size = sum(block.size() for block in blocks)
        if output_size > limits.max_output_chars:
            logger.warning(
                "skill output exceeded limit",
                extra={
                    "event": "skill.execute.output_exceeded",
                    "op": skill.code,
                    "payload_preview": {"size": output_size, "limit": limits.max_output_chars},
                },
            )
            raise ResourceExceededError(skill.code, "output")

        logger.info(
            "skill executed",
            extra={
                "event": "skill.execute.succeeded",
                "op": skill.code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return blocks

    @staticmethod
    def _run(skill: BaseSkill, arguments: Mapping[str, Any], runtime: SkillRuntime) -> list[OutputBlock]:
        try:
            blocks = skill.execute(arguments, runtime)
        except YozukError:
            raise
        except Exception as exc:
            logger.exception(
                "skill raised unexpected error",
                extra={"event": "skill.execute.crashed", "op": skill.code, "error_type": type(exc).__name__},
            )
            raise ExecutionError(f"{skill.name} failed: {type(exc).__name__}") from exc
        if not blocks:
            raise ExecutionError(f"{skill.name} produced no output")
        return list(blocks)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pool.shutdown(wait=False, cancel_futures=True)
