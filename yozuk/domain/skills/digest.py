"""摘要技能：计算文本的哈希摘要，支持指定算法或一次输出全部算法。"""

from __future__ import annotations

import hashlib
from typing import Any, Mapping, Sequence

from yozuk.domain.enums import ParamType
from yozuk.domain.models import OutputBlock, ParameterSpec
from yozuk.domain.routing.predicates import KeywordPredicate, MatchPredicate
from yozuk.domain.skills.base import BaseSkill, SkillRuntime, input_payloads

ALGORITHMS: dict[str, str] = {
    "md5": "md5",
    "sha1": "sha1",
    "sha-1": "sha1",
    "sha224": "sha224",
    "sha256": "sha256",
    "sha-256": "sha256",
    "sha384": "sha384",
    "sha512": "sha512",
    "sha-512": "sha512",
    "sha3-256": "sha3_256",
    "sha3-512": "sha3_512",
    "blake2b": "blake2b",
    "blake2s": "blake2s",
    "all": "all",
}
ALL_ALGORITHMS = ("md5", "sha1", "sha224", "sha256", "sha384", "sha512", "sha3_256", "sha3_512", "blake2b", "blake2s")


class DigestSkill(BaseSkill):
    """哈希摘要技能实现。"""
    code = "hash"
    name = "Hash"
    aliases = ("digest", "checksum")
    description = "Compute a hash digest of the given text or attached files."
    examples = ("hash hello", "md5 'hello world'", "hash all password")
    parameters = (
        ParameterSpec(
            name="algorithm",
            type=ParamType.option,
            required=False,
            default="sha256",
            description="hash algorithm",
            vocabulary=ALGORITHMS,
        ),
        ParameterSpec(name="text", type=ParamType.text, description="text to hash", accepts_attachments=True),
    )

    def build_predicates(self) -> Sequence[MatchPredicate]:
        algorithm_names = [name for name in ALGORITHMS if name != "all"]
        return (
            KeywordPredicate(("hash", "digest", "checksum"), 0.9),
            # 算法名同时作为参数值，不消耗词元。
            KeywordPredicate(algorithm_names, 0.85, consumes=False),
        )

    def execute(self, arguments: Mapping[str, Any], runtime: SkillRuntime) -> list[OutputBlock]:
        """按算法计算摘要；algorithm=all 或多个附件时输出表格。"""
        inputs = input_payloads(arguments["text"])
        algorithm = str(arguments.get("algorithm") or "sha256")
        algorithms = ALL_ALGORITHMS if algorithm == "all" else (algorithm,)
        if len(inputs) == 1 and len(algorithms) == 1:
            return [OutputBlock.code_block(hashlib.new(algorithm, inputs[0][1]).hexdigest())]

        rows = []
        for file_name, data in inputs:
            for name in algorithms:
                runtime.check_cancelled()
                digest = hashlib.new(name, data).hexdigest()
                rows.append((name, digest) if len(inputs) == 1 else (file_name or "", name, digest))
        columns = ("algorithm", "digest") if len(inputs) == 1 else ("file", "algorithm", "digest")
        return [OutputBlock.table(columns, rows)]
