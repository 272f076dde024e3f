"""引擎门面：串联分词、匹配、消歧、参数抽取与执行，对适配器只暴露 handle。

任何单次话语的失败都在这里转换为 error 或 clarification 输出块，
异常不会越过引擎边界进入适配器代码。
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Sequence
from uuid import uuid4

from yozuk.application.executor import SkillExecutor
from yozuk.domain.enums import DecisionKind, Severity, TokenKind
from yozuk.domain.errors import (
    AmbiguousMatchError,
    AttachmentTooLargeError,
    ExecutionError,
    MissingParameterError,
    NoMatchError,
    ResourceExceededError,
    TypeMismatchError,
    YozukError,
)
from yozuk.domain.models import (
    Attachment,
    ExecutionContext,
    LastResult,
    MatchCandidate,
    OutputBlock,
    PendingChoice,
    PendingParameter,
    Token,
    Utterance,
)
from yozuk.domain.routing.disambiguator import Disambiguator
from yozuk.domain.routing.extractor import coerce_answer, extract
from yozuk.domain.routing.matcher import Matcher
from yozuk.domain.skills.base import BaseSkill
from yozuk.domain.skills.registry import SkillRegistry
from yozuk.domain.text.tokenizer import normalize
from yozuk.infra.logging.context import bind_log_context
from yozuk.infra.session.store import SessionStore

logger = logging.getLogger(__name__)

NO_MATCH_MESSAGE = "Sorry, I can't understand your request."
NO_MATCH_HINT = 'Say "help" to see what I can do.'
CANCEL_PHRASES = frozenset({("cancel",), ("nevermind",), ("never", "mind"), ("abort",), ("stop",)})
DEFAULT_MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024


def render_error(exc: YozukError, skill: BaseSkill | None = None) -> OutputBlock:
    """把引擎异常转换为面向用户的输出块。"""
    if isinstance(exc, NoMatchError):
        return OutputBlock.error(f"{NO_MATCH_MESSAGE} {NO_MATCH_HINT}", code=exc.code)
    if isinstance(exc, AmbiguousMatchError):
        return OutputBlock.clarification(exc.message, options=exc.options, code=exc.code)
    if isinstance(exc, MissingParameterError):
        label = exc.description or exc.parameter
        target = f" for {skill.name}" if skill is not None else ""
        return OutputBlock.clarification(f"Please provide {label}{target}.", options=(exc.parameter,), code=exc.code)
    if isinstance(exc, TypeMismatchError):
        return OutputBlock.error(
            f'Invalid {exc.parameter}: expected {exc.expected}, got "{exc.raw_value}".',
            code=exc.code,
            severity=Severity.warning,
        )
    if isinstance(exc, ResourceExceededError):
        return OutputBlock.error("Sorry, that request took too much time or memory and was stopped.", code=exc.code)
    return OutputBlock.error(exc.message, code=exc.code)


class YozukEngine:
    """助手核心引擎。"""

    def __init__(
        self,
        *,
        registry: SkillRegistry,
        matcher: Matcher,
        disambiguator: Disambiguator,
        executor: SkillExecutor,
        store: SessionStore,
        clock: Callable[[], float] = time.time,
        max_attachment_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES,
    ) -> None:
        self._registry = registry
        self._matcher = matcher
        self._disambiguator = disambiguator
        self._executor = executor
        self._store = store
        self._clock = clock
        self._max_attachment_bytes = max_attachment_bytes

    def skill_codes(self) -> list[str]:
        return [skill.code for skill in self._registry.all()]

    def handle(
        self,
        conversation_id: str,
        raw_text: str,
        *,
        username: str | None = None,
        attachments: Sequence[Attachment] = (),
    ) -> list[OutputBlock]:
        """处理一条话语，总是返回至少一个输出块。

        参数:
        - conversation_id: 适配器提供的稳定会话标识。
        - raw_text: 用户原始文本。
        - username: 可选的平台用户名，仅用于日志。
        - attachments: 随消息上传的文件，单个超过 max_attachment_bytes 时直接返回错误块。
        """
        utterance = Utterance(
            conversation_id=conversation_id,
            raw_text=raw_text or "",
            received_at=self._clock(),
            username=username,
            attachments=tuple(attachments),
        )
        with bind_log_context(conversation_id=conversation_id, utterance_id=uuid4().hex[:12]):
            started = time.perf_counter()
            try:
                self._check_attachments(utterance.attachments)
                with self._store.ordered(conversation_id):
                    blocks = self._process(utterance)
            except YozukError as exc:
                blocks = [render_error(exc)]
            except Exception as exc:
                logger.exception(
                    "utterance processing failed",
                    extra={"event": "engine.handle.failed", "error_type": type(exc).__name__},
                )
                blocks = [OutputBlock.error("Sorry, something went wrong. Please try again.", code="internal_error")]
            logger.info(
                "utterance handled",
                extra={
                    "event": "engine.handle.completed",
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "payload_preview": {
                        "blocks": [block.kind.value for block in blocks],
                        "user": username,
                        "attachments": len(utterance.attachments),
                    },
                },
            )
        if not blocks:
            blocks = [OutputBlock.error(NO_MATCH_MESSAGE, code=NoMatchError.code)]
        return blocks

    def _process(self, utterance: Utterance) -> list[OutputBlock]:
        conversation_id = utterance.conversation_id
        tokens = normalize(utterance.raw_text)
        if not tokens:
            return [OutputBlock.error("empty input", code="empty_input", severity=Severity.info)]

        context = self._store.get(conversation_id)
        if context is not None and context.pending is not None and self._is_cancel(tokens):
            self._store.clear_pending(conversation_id)
            return [OutputBlock.text("OK, cancelled.")]

        candidates = self._matcher.match(tokens, context)
        decision = self._disambiguator.resolve(candidates)
        logger.debug(
            "utterance matched",
            extra={
                "event": "engine.match.completed",
                "payload_preview": {
                    "decision": decision.kind.value,
                    "candidates": [(item.skill_code, item.confidence) for item in candidates[:5]],
                },
            },
        )

        if decision.kind is DecisionKind.no_match:
            return self._no_match(tokens, context)
        if decision.kind is DecisionKind.clarify:
            return self._clarify(conversation_id, decision.candidates)
        return self._execute(conversation_id, decision.selected, utterance.attachments)

    def _no_match(self, tokens: Sequence[Token], context: ExecutionContext | None) -> list[OutputBlock]:
        pending = context.pending if context is not None else None
        if isinstance(pending, PendingParameter) and pending.skill_code in self._registry:
            skill = self._registry.get(pending.skill_code)
            try:
                coerce_answer(skill.parameter(pending.parameter), tokens)
            except TypeMismatchError as exc:
                # 保留待补参数，用户可以直接重新回答。
                return [render_error(exc, skill)]
        if context is not None and context.pending is not None:
            self._store.clear_pending(context.conversation_id)
        raise NoMatchError(NO_MATCH_MESSAGE)

    def _clarify(self, conversation_id: str, candidates: Sequence[MatchCandidate]) -> list[OutputBlock]:
        skills = [self._registry.get(item.skill_code) for item in candidates]
        self._store.set_pending(conversation_id, PendingChoice(candidates=tuple(candidates)))
        options = tuple(f"{skill.name} ({skill.code})" for skill in skills)
        if len(skills) == 1:
            message = f'Did you mean {skills[0].name}? Reply "yes" to continue.'
        else:
            listing = "\n".join(f"{index}. {option}" for index, option in enumerate(options, start=1))
            message = f"Which one did you mean?\n{listing}"
        raise AmbiguousMatchError(message, tuple(skill.code for skill in skills), options)

    def _check_attachments(self, attachments: Sequence[Attachment]) -> None:
        for attachment in attachments:
            if attachment.size > self._max_attachment_bytes:
                raise AttachmentTooLargeError(attachment.file_name, attachment.size, self._max_attachment_bytes)

    def _execute(
        self,
        conversation_id: str,
        candidate: MatchCandidate,
        attachments: Sequence[Attachment] = (),
    ) -> list[OutputBlock]:
        skill = self._registry.get(candidate.skill_code)
        with bind_log_context(skill_code=skill.code):
            try:
                arguments = extract(skill, candidate, attachments)
            except MissingParameterError as exc:
                self._store.set_pending(
                    conversation_id,
                    PendingParameter(
                        skill_code=skill.code,
                        parameter=exc.parameter,
                        bound=exc.bound,
                        remainder=tuple(exc.remainder),
                    ),
                )
                return [render_error(exc, skill)]
            except TypeMismatchError:
                self._store.clear_pending(conversation_id)
                raise

            try:
                blocks = self._executor.execute(skill, arguments)
            except ExecutionError as exc:
                self._store.clear_pending(conversation_id)
                logger.warning(
                    "skill execution failed",
                    extra={"event": "engine.execute.failed", "op": skill.code, "error_type": exc.code, "error": exc.message},
                )
                raise
            self._store.record_result(conversation_id, LastResult(skill_code=skill.code, arguments=arguments))
            return blocks

    @staticmethod
    def _is_cancel(tokens: Sequence[Token]) -> bool:
        words = tuple(token.value for token in tokens if token.kind is TokenKind.word)
        return len(words) == len(tokens) and words in CANCEL_PHRASES
