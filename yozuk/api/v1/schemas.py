"""API 请求与响应数据模型定义，约束消息处理与技能目录接口结构。"""

from __future__ import annotations

from typing import Any

from pydantic import Base64Bytes, BaseModel, Field


class AttachmentRequest(BaseModel):
    """消息附件，data 为 Base64 编码的文件内容。"""
    data: Base64Bytes
    media_type: str = "application/octet-stream"
    file_name: str | None = Field(default=None, max_length=255)


class MessageRequest(BaseModel):
    """消息处理接口请求模型。"""
    text: str = Field(default="", max_length=10_000)
    username: str | None = None
    attachments: list[AttachmentRequest] = Field(default_factory=list, max_length=10)


class OutputBlockResponse(BaseModel):
    """输出块响应模型。"""
    kind: str
    content: str
    language: str | None = None
    severity: str | None = None
    code: str | None = None
    columns: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)
    options: list[str] = Field(default_factory=list)
    data: str | None = None
    media_type: str | None = None
    file_name: str | None = None


class MessageResponse(BaseModel):
    """消息处理接口响应模型。"""
    conversation_id: str
    blocks: list[OutputBlockResponse]


class ParameterResponse(BaseModel):
    """技能参数定义响应模型。"""
    name: str
    type: str
    required: bool
    default: Any = None
    description: str
    accepts_attachments: bool = False


class SkillResponse(BaseModel):
    """技能元数据接口响应模型。"""
    code: str
    name: str
    aliases: tuple[str, ...]
    description: str
    examples: tuple[str, ...]
    parameters: list[ParameterResponse]
