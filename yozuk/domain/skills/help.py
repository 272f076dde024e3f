"""帮助技能：列出当前启用的技能与示例输入。"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Sequence

from yozuk.domain.models import OutputBlock
from yozuk.domain.routing.predicates import KeywordPredicate, MatchPredicate
from yozuk.domain.skills.base import BaseSkill, SkillRuntime

if TYPE_CHECKING:
    from yozuk.domain.skills.registry import SkillRegistry


class HelpSkill(BaseSkill):
    code = "help"
    name = "Help"
    aliases = ("commands", "skills")
    description = "List available skills."
    examples = ("help",)

    def __init__(self, registry: SkillRegistry) -> None:
        self._registry = registry

    def build_predicates(self) -> Sequence[MatchPredicate]:
        return (KeywordPredicate(("help", "commands", "skills"), 0.9),)

    def execute(self, arguments: Mapping[str, Any], runtime: SkillRuntime) -> list[OutputBlock]:
        rows = [
            (descriptor.code, descriptor.name, descriptor.examples[0] if descriptor.examples else "")
            for descriptor in self._registry.descriptors()
        ]
        return [OutputBlock.table(("skill", "name", "example"), rows, caption="Available skills")]
