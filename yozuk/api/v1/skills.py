"""技能目录接口：列出可用技能并查询指定技能的元数据。"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from yozuk.api.v1.schemas import ParameterResponse, SkillResponse
from yozuk.application.container import get_skill_registry
from yozuk.domain.models import SkillDescriptor
from yozuk.domain.skills.registry import SkillRegistry

router = APIRouter()


def _registry() -> SkillRegistry:
    """依赖注入辅助函数，返回技能注册中心。
    返回:
    - 容器中的注册中心单例。
    """
    return get_skill_registry()


def _to_response(descriptor: SkillDescriptor) -> SkillResponse:
    return SkillResponse(
        code=descriptor.code,
        name=descriptor.name,
        aliases=descriptor.aliases,
        description=descriptor.description,
        examples=descriptor.examples,
        parameters=[
            ParameterResponse(
                name=spec.name,
                type=spec.type.value,
                required=spec.required,
                default=spec.default,
                description=spec.description,
                accepts_attachments=spec.accepts_attachments,
            )
            for spec in descriptor.parameters
        ],
    )


@router.get("/skills", response_model=list[SkillResponse])
def list_skills(registry: SkillRegistry = Depends(_registry)) -> list[SkillResponse]:
    """返回全部已启用技能。"""
    return [_to_response(descriptor) for descriptor in registry.descriptors()]


@router.get("/skills/{skill_code}", response_model=SkillResponse)
def get_skill(skill_code: str, registry: SkillRegistry = Depends(_registry)) -> SkillResponse:
    """返回指定技能的详细元数据。
    参数:
    - skill_code: 技能编码。
    返回:
    - 技能元数据；未知编码返回 404。
    """
    try:
        return _to_response(registry.get(skill_code).descriptor())
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
