"""UUID 技能：生成一个或多个随机 UUID v4。"""

from __future__ import annotations

import uuid
from typing import Any, Mapping, Sequence

from yozuk.domain.enums import ParamType
from yozuk.domain.models import OutputBlock, ParameterSpec
from yozuk.domain.routing.predicates import KeywordPredicate, MatchPredicate, PatternPredicate
from yozuk.domain.skills.base import BaseSkill, SkillRuntime


class UuidSkill(BaseSkill):
    code = "uuid"
    name = "UUID generator"
    aliases = ("guid",)
    description = "Generate random UUIDs (version 4)."
    examples = ("uuid", "uuid 5", "generate 3 uuids")
    parameters = (
        ParameterSpec(
            name="count",
            type=ParamType.integer,
            required=False,
            default=1,
            description="number of UUIDs",
            minimum=1,
            maximum=32,
        ),
    )

    def build_predicates(self) -> Sequence[MatchPredicate]:
        return (
            KeywordPredicate(("uuid", "uuids", "guid", "guids"), 0.9),
            # 引导动词不是参数，命中后从剩余词元中移除。
            PatternPredicate(r"^(?:generate|create|new|random)\b", 0.5),
        )

    def execute(self, arguments: Mapping[str, Any], runtime: SkillRuntime) -> list[OutputBlock]:
        count = int(arguments.get("count") or 1)
        return [OutputBlock.code_block("\n".join(str(uuid.uuid4()) for _ in range(count)))]
