"""参数抽取测试：验证位置参数、选项、默认值、范围校验与缺参信息。"""

from __future__ import annotations

import pytest

from yozuk.domain.enums import ParamType
from yozuk.domain.errors import MissingParameterError, TypeMismatchError
from yozuk.domain.models import Attachment, MatchCandidate, ParameterSpec
from yozuk.domain.routing.extractor import coerce_answer, describe_expected, extract
from yozuk.domain.skills.calculator import CalculatorSkill
from yozuk.domain.skills.digest import DigestSkill
from yozuk.domain.skills.unit_convert import UnitConvertSkill
from yozuk.domain.skills.uuid_gen import UuidSkill
from yozuk.domain.text.tokenizer import normalize


def _candidate(code: str, text: str, bound: dict | None = None) -> MatchCandidate:
    return MatchCandidate(skill_code=code, confidence=1.0, remainder=tuple(normalize(text)), bound=bound or {})


def test_positional_values_skip_connectors() -> None:
    values = extract(UnitConvertSkill(), _candidate("unit-convert", "10 km to miles"))

    assert values == {"amount": 10.0, "source": "km", "target": "mi"}


def test_negative_amount_and_temperature_aliases() -> None:
    values = extract(UnitConvertSkill(), _candidate("unit-convert", "-40 c to f"))

    assert values == {"amount": -40.0, "source": "°C", "target": "°F"}


def test_optional_parameter_uses_default() -> None:
    values = extract(UnitConvertSkill(), _candidate("unit-convert", "5 GiB"))

    assert values == {"amount": 5.0, "source": "GiB", "target": None}


def test_non_numeric_amount_is_type_mismatch() -> None:
    with pytest.raises(TypeMismatchError) as exc_info:
        extract(UnitConvertSkill(), _candidate("unit-convert", "abc km"))

    assert exc_info.value.parameter == "amount"
    assert exc_info.value.raw_value == "abc"


def test_missing_parameter_reports_bound_values() -> None:
    """缺参异常应携带已抽取的参数，供澄清后续补全。"""
    with pytest.raises(MissingParameterError) as exc_info:
        extract(UnitConvertSkill(), _candidate("unit-convert", "10"))

    assert exc_info.value.parameter == "source"
    assert exc_info.value.bound == {"amount": 10.0}


def test_integer_range_is_enforced() -> None:
    with pytest.raises(TypeMismatchError):
        extract(UuidSkill(), _candidate("uuid", "50"))
    with pytest.raises(TypeMismatchError):
        extract(UuidSkill(), _candidate("uuid", "2.5"))

    assert extract(UuidSkill(), _candidate("uuid", "")) == {"count": 1}
    assert extract(UuidSkill(), _candidate("uuid", "3")) == {"count": 3}


def test_option_is_taken_from_edges_only() -> None:
    skill = DigestSkill()

    leading = extract(skill, _candidate("hash", "md5 hello world"))
    middle = extract(skill, _candidate("hash", "hello md5 world"))

    assert leading == {"algorithm": "md5", "text": "hello world"}
    assert middle == {"algorithm": "sha256", "text": "hello md5 world"}


def test_bound_values_take_precedence() -> None:
    values = extract(DigestSkill(), _candidate("hash", "", bound={"text": "hello", "unrelated": 1}))

    assert values == {"text": "hello", "algorithm": "sha256"}


def test_missing_text_parameter() -> None:
    with pytest.raises(MissingParameterError) as exc_info:
        extract(DigestSkill(), _candidate("hash", ""))

    assert exc_info.value.parameter == "text"
    assert exc_info.value.description == "text to hash"


def test_coerce_answer_requires_whole_reply() -> None:
    spec = ParameterSpec(name="amount", type=ParamType.number)

    assert coerce_answer(spec, normalize("to 5")) == 5.0
    with pytest.raises(TypeMismatchError):
        coerce_answer(spec, normalize("5 km"))


def test_describe_expected_mentions_range() -> None:
    assert describe_expected(UuidSkill().parameter("count")) == "a whole number between 1 and 32"


def test_text_parameter_skips_leading_connectors() -> None:
    skill = DigestSkill()

    assert extract(skill, _candidate("hash", "md5 of hello")) == {"algorithm": "md5", "text": "hello"}
    assert extract(skill, _candidate("hash", "of 'of hello'")) == {"algorithm": "sha256", "text": "of hello"}


def test_attachments_fill_missing_text() -> None:
    attachment = Attachment(data=b"hello", file_name="a.txt")

    values = extract(DigestSkill(), _candidate("hash", "md5"), attachments=[attachment])

    assert values == {"algorithm": "md5", "text": (attachment,)}


def test_text_wins_over_attachments() -> None:
    values = extract(DigestSkill(), _candidate("hash", "hello"), attachments=[Attachment(data=b"ignored")])

    assert values["text"] == "hello"


def test_attachments_do_not_fill_plain_text_parameters() -> None:
    with pytest.raises(MissingParameterError):
        extract(CalculatorSkill(), _candidate("calc", ""), attachments=[Attachment(data=b"2 + 2")])
