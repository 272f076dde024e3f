"""技能注册中心：管理技能实例注册、查询与描述信息汇总。"""

from __future__ import annotations

from yozuk.config import Settings
from yozuk.domain.errors import DuplicateSkillError
from yozuk.domain.models import SkillDescriptor
from yozuk.domain.skills.base import BaseSkill
from yozuk.domain.skills.base64_codec import Base64Skill
from yozuk.domain.skills.calculator import CalculatorSkill
from yozuk.domain.skills.currency import CurrencyConvertSkill, RateProvider
from yozuk.domain.skills.digest import DigestSkill
from yozuk.domain.skills.help import HelpSkill
from yozuk.domain.skills.unit_convert import UnitConvertSkill
from yozuk.domain.skills.uuid_gen import UuidSkill


class SkillRegistry:
    """技能注册中心，启动时构建，冻结后只读。"""
    def __init__(self) -> None:
        self._skills: dict[str, BaseSkill] = {}
        self._frozen = False

    def register(self, skill: BaseSkill) -> None:
        """注册技能实例到注册中心。
        参数:
        - skill: 待注册技能，code 必须全局唯一。
        返回:
        - 无；编码重复时抛出 DuplicateSkillError，冻结后注册抛出 RuntimeError。
        """
        if self._frozen:
            raise RuntimeError("skill registry is frozen")
        if skill.code in self._skills:
            raise DuplicateSkillError(skill.code)
        self._skills[skill.code] = skill

    def freeze(self) -> SkillRegistry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, skill_code: str) -> BaseSkill:
        """按技能编码获取技能实例。
        参数:
        - skill_code: 技能编码。
        返回:
        - 技能实例；未知编码抛出 KeyError。
        """
        try:
            return self._skills[skill_code]
        except KeyError as exc:
            raise KeyError(f"unknown skill_code: {skill_code}") from exc

    def all(self) -> list[BaseSkill]:
        """按注册顺序返回全部技能实例。"""
        return list(self._skills.values())

    def descriptors(self) -> list[SkillDescriptor]:
        """返回全部技能描述信息。"""
        return [skill.descriptor() for skill in self._skills.values()]

    def __contains__(self, skill_code: object) -> bool:
        return skill_code in self._skills

    def __len__(self) -> int:
        return len(self._skills)


def build_default_registry(settings: Settings, rate_provider: RateProvider) -> SkillRegistry:
    """按配置启用的内置技能构建并冻结注册中心。"""
    registry = SkillRegistry()
    builtin: list[BaseSkill] = [
        CalculatorSkill(),
        DigestSkill(),
        Base64Skill(),
        UnitConvertSkill(),
        CurrencyConvertSkill(rate_provider),
        UuidSkill(),
        HelpSkill(registry),
    ]
    for skill in builtin:
        if settings.is_skill_enabled(skill.code):
            registry.register(skill)
    return registry.freeze()
