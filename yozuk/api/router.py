"""API 总路由配置，按业务域注册 messages 与 skills 子路由。"""

from __future__ import annotations

from fastapi import APIRouter

from yozuk.api.v1.messages import router as messages_router
from yozuk.api.v1.skills import router as skills_router
from yozuk.config import get_settings

settings = get_settings()

api_router = APIRouter(prefix=settings.api_prefix)
api_router.include_router(messages_router, tags=["messages"])
api_router.include_router(skills_router, tags=["skills"])
