"""引擎测试：覆盖端到端话语处理、澄清往返、取消、重复执行与错误隔离。"""

from __future__ import annotations

import threading

from conftest import CrashSkill, SlowSkill, default_registry

from yozuk.domain.enums import BlockKind, Severity
from yozuk.domain.models import Attachment, PendingChoice, PendingParameter
from yozuk.domain.skills.calculator import CalculatorSkill
from yozuk.domain.skills.registry import SkillRegistry

HELLO_SHA256 = "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"


def test_arithmetic_is_answered_directly(build_engine) -> None:
    parts = build_engine()

    blocks = parts.engine.handle("c1", "2 + 2")

    assert len(blocks) == 1
    assert blocks[0].kind is BlockKind.text
    assert blocks[0].content == "4"


def test_unit_conversion(build_engine) -> None:
    blocks = build_engine().engine.handle("c1", "10 km to miles")

    assert blocks[0].content == "10 km = 6.213712 mi"


def test_currency_conversion_with_static_rates(build_engine) -> None:
    blocks = build_engine().engine.handle("c1", "100 usd to jpy")

    assert blocks[0].content == "100.00 USD = 15,000.00 JPY (indicative static rates)"


def test_missing_parameter_round_trip(build_engine) -> None:
    """缺少参数时追问，下一条消息作为参数值继续执行。"""
    parts = build_engine()

    first = parts.engine.handle("c1", "hash")
    second = parts.engine.handle("c1", "hello")

    assert first[0].kind is BlockKind.clarification
    assert first[0].code == "missing_parameter"
    assert first[0].content == "Please provide text to hash for Hash."
    assert second[0].kind is BlockKind.code
    assert second[0].content == HELLO_SHA256
    context = parts.store.get("c1")
    assert context is not None
    assert context.pending is None
    assert context.last_result is not None
    assert context.last_result.skill_code == "hash"


def test_ambiguous_request_lists_options_then_resolves(build_engine) -> None:
    parts = build_engine()

    first = parts.engine.handle("c1", "convert")

    assert first[0].kind is BlockKind.clarification
    assert first[0].code == "ambiguous_match"
    assert first[0].options == ("Currency converter (currency-convert)", "Unit converter (unit-convert)")
    assert first[0].content.startswith("Which one did you mean?")
    assert isinstance(parts.store.get("c1").pending, PendingChoice)

    second = parts.engine.handle("c1", "unit")

    assert second[0].kind is BlockKind.clarification
    assert second[0].code == "missing_parameter"
    pending = parts.store.get("c1").pending
    assert isinstance(pending, PendingParameter)
    assert pending.skill_code == "unit-convert"
    assert pending.parameter == "amount"

    third = parts.engine.handle("c1", "10")
    fourth = parts.engine.handle("c1", "km")

    assert third[0].options == ("source",)
    assert fourth[0].kind is BlockKind.table
    assert fourth[0].content == "10 km"


def test_choice_by_number(build_engine) -> None:
    parts = build_engine()
    parts.engine.handle("c1", "convert")

    blocks = parts.engine.handle("c1", "2")

    assert blocks[0].code == "missing_parameter"
    assert parts.store.get("c1").pending.skill_code == "unit-convert"


def test_single_weak_candidate_asks_for_confirmation(build_engine) -> None:
    parts = build_engine(default_registry(disabled_skills="currency-convert"))

    first = parts.engine.handle("c1", "convert")
    second = parts.engine.handle("c1", "yes")

    assert first[0].kind is BlockKind.clarification
    assert first[0].content.startswith("Did you mean Unit converter?")
    assert second[0].code == "missing_parameter"


def test_unknown_request_is_no_match_without_state(build_engine) -> None:
    parts = build_engine()

    blocks = parts.engine.handle("c1", "xyzzy nonsense")

    assert blocks[0].kind is BlockKind.error
    assert blocks[0].code == "no_match"
    assert blocks[0].severity is Severity.error
    assert "help" in blocks[0].content
    assert len(parts.store) == 0


def test_empty_input(build_engine) -> None:
    blocks = build_engine().engine.handle("c1", "   ")

    assert blocks[0].kind is BlockKind.error
    assert blocks[0].code == "empty_input"
    assert blocks[0].severity is Severity.info


def test_timeout_is_isolated(build_engine) -> None:
    """超时技能不影响同一会话的后续消息。"""
    registry = SkillRegistry()
    registry.register(SlowSkill())
    registry.register(CalculatorSkill())
    parts = build_engine(registry.freeze(), timeout_seconds=0.1)

    first = parts.engine.handle("c1", "slow")
    second = parts.engine.handle("c1", "2 + 2")

    assert first[0].kind is BlockKind.error
    assert first[0].code == "resource_exceeded"
    assert second[0].content == "4"


def test_crashing_skill_becomes_error_block(build_engine) -> None:
    registry = SkillRegistry()
    registry.register(CrashSkill())
    parts = build_engine(registry.freeze())

    blocks = parts.engine.handle("c1", "crash")

    assert blocks[0].kind is BlockKind.error
    assert blocks[0].code == "execution_error"


def test_skill_error_code_is_reported(build_engine) -> None:
    blocks = build_engine().engine.handle("c1", "10 km to kg")

    assert blocks[0].code == "incompatible_units"


def test_out_of_range_value_is_a_warning(build_engine) -> None:
    blocks = build_engine().engine.handle("c1", "uuid 50")

    assert blocks[0].kind is BlockKind.error
    assert blocks[0].code == "type_mismatch"
    assert blocks[0].severity is Severity.warning


def test_bad_answer_keeps_pending_parameter(build_engine) -> None:
    parts = build_engine()
    parts.engine.handle("c1", "unit")

    retry = parts.engine.handle("c1", "abc")
    answer = parts.engine.handle("c1", "3")

    assert retry[0].code == "type_mismatch"
    assert answer[0].options == ("source",)


def test_cancel_clears_pending(build_engine) -> None:
    parts = build_engine()
    parts.engine.handle("c1", "hash")

    blocks = parts.engine.handle("c1", "cancel")

    assert blocks[0].content == "OK, cancelled."
    assert parts.store.get("c1") is None


def test_again_repeats_last_result(build_engine) -> None:
    parts = build_engine()
    parts.engine.handle("c1", "2 * 21")

    blocks = parts.engine.handle("c1", "again")

    assert blocks[0].content == "42"


def test_expired_clarification_is_forgotten(build_engine) -> None:
    parts = build_engine(ttl_seconds=120)
    parts.engine.handle("c1", "hash")
    parts.clock.advance(121)

    blocks = parts.engine.handle("c1", "hello")

    assert blocks[0].code == "no_match"


def test_conversations_are_independent(build_engine) -> None:
    parts = build_engine()
    parts.engine.handle("c1", "hash")

    other = parts.engine.handle("c2", "hello")
    resumed = parts.engine.handle("c1", "hello")

    assert other[0].code == "no_match"
    assert resumed[0].content == HELLO_SHA256


def test_handle_always_returns_blocks(build_engine) -> None:
    engine = build_engine().engine

    for text in ["", "?", "help", "base64 decode !!!", "calc 1/0", "'unterminated", "1e999 km to m", "convert"]:
        blocks = engine.handle("totality", text)
        assert blocks
        assert all(block.kind in set(BlockKind) for block in blocks)


def test_concurrent_conversations(build_engine) -> None:
    engine = build_engine().engine
    results: dict[str, str] = {}

    def worker(index: int) -> None:
        results[f"c{index}"] = engine.handle(f"c{index}", f"{index} + 1")[0].content

    threads = [threading.Thread(target=worker, args=(index,)) for index in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10)

    assert results == {f"c{index}": str(index + 1) for index in range(8)}


def test_leading_verb_is_not_taken_as_count(build_engine) -> None:
    blocks = build_engine().engine.handle("c1", "generate 3 uuids")

    assert blocks[0].kind is BlockKind.code
    assert len(blocks[0].content.splitlines()) == 3


def test_quantity_named_like_a_function_is_converted(build_engine) -> None:
    """"5 min" 是时间数量，min 后没有括号，不应与计算器产生歧义。"""
    blocks = build_engine().engine.handle("c1", "5 min")

    assert blocks[0].kind is BlockKind.table
    assert blocks[0].content == "5 min"


def test_leading_connector_is_not_hashed(build_engine) -> None:
    blocks = build_engine().engine.handle("c1", "md5 of hello")

    assert blocks[0].content == "5d41402abc4b2a76b9719d911017c592"


def test_complex_power_is_a_math_error(build_engine) -> None:
    blocks = build_engine().engine.handle("c1", "2 ** ((-8) ** 0.5)")

    assert blocks[0].kind is BlockKind.error
    assert blocks[0].code == "math_error"


def test_attachment_is_hashed_when_text_is_absent(build_engine) -> None:
    attachment = Attachment(data=b"hello", media_type="text/plain", file_name="hello.txt")

    blocks = build_engine().engine.handle("c1", "hash", attachments=[attachment])

    assert blocks[0].kind is BlockKind.code
    assert blocks[0].content == HELLO_SHA256


def test_oversized_attachment_is_rejected(build_engine) -> None:
    parts = build_engine(max_attachment_bytes=4)
    attachment = Attachment(data=b"hello", file_name="hello.txt")

    blocks = parts.engine.handle("c1", "hash", attachments=[attachment])

    assert blocks[0].kind is BlockKind.error
    assert blocks[0].code == "attachment_too_large"
    assert "hello.txt" in blocks[0].content
    assert parts.store.get("c1") is None


def test_full_conversation_queue_answers_busy(build_engine) -> None:
    """会话排队已满时新消息立即得到错误块，不阻塞调用线程。"""
    parts = build_engine(max_queue_depth=1)

    with parts.store.ordered("c1"):
        busy = parts.engine.handle("c1", "2 + 2")
        other = parts.engine.handle("c2", "2 + 2")

    assert busy[0].kind is BlockKind.error
    assert busy[0].code == "conversation_busy"
    assert other[0].content == "4"
    assert parts.engine.handle("c1", "2 + 2")[0].content == "4"
