"""Base64 技能：对文本或附件进行 Base64 编码或解码，解码得到二进制内容时以 data 块返回。"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Mapping, Sequence

from yozuk.domain.enums import ParamType
from yozuk.domain.errors import SkillError
from yozuk.domain.models import OutputBlock, ParameterSpec
from yozuk.domain.routing.predicates import KeywordPredicate, MatchPredicate
from yozuk.domain.skills.base import BaseSkill, SkillRuntime, input_payloads

MODES = {
    "encode": "encode",
    "enc": "encode",
    "decode": "decode",
    "dec": "decode",
}


class Base64Skill(BaseSkill):
    """Base64 编解码技能实现。"""
    code = "base64"
    name = "Base64"
    aliases = ("b64",)
    description = "Encode text or attached files to Base64, or decode Base64."
    examples = ("base64 hello", "base64 decode aGVsbG8=")
    parameters = (
        ParameterSpec(
            name="mode",
            type=ParamType.option,
            required=False,
            default="encode",
            description="encode or decode",
            vocabulary=MODES,
        ),
        ParameterSpec(
            name="text",
            type=ParamType.text,
            description="text to encode or decode",
            accepts_attachments=True,
        ),
    )

    def build_predicates(self) -> Sequence[MatchPredicate]:
        return (KeywordPredicate(("base64", "b64"), 0.9),)

    def execute(self, arguments: Mapping[str, Any], runtime: SkillRuntime) -> list[OutputBlock]:
        """每个输入（文本或附件）各输出一个块。"""
        decode = arguments.get("mode") == "decode"
        blocks = []
        for file_name, data in input_payloads(arguments["text"]):
            runtime.check_cancelled()
            if decode:
                blocks.append(self._decode(data, file_name))
            else:
                blocks.append(OutputBlock.code_block(base64.b64encode(data).decode("ascii")))
        return blocks

    @staticmethod
    def _decode(data: bytes, file_name: str | None) -> OutputBlock:
        compact = b"".join(data.split())
        # 兼容缺失补位符的输入。
        compact += b"=" * (-len(compact) % 4)
        try:
            raw = base64.b64decode(compact, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SkillError("invalid base64 input", code="invalid_encoding") from exc
        try:
            return OutputBlock.code_block(raw.decode("utf-8"))
        except UnicodeDecodeError:
            name = f"{file_name}.bin" if file_name else "decoded.bin"
            return OutputBlock.data_block(raw, file_name=name)
