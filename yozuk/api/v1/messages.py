"""消息接口：适配器转发会话 ID 与用户文本，返回平台无关的输出块。"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from yozuk.api.v1.schemas import MessageRequest, MessageResponse, OutputBlockResponse
from yozuk.application.container import get_engine
from yozuk.application.engine import YozukEngine
from yozuk.domain.models import Attachment

router = APIRouter()


def _engine() -> YozukEngine:
    """依赖注入辅助函数，返回引擎实例。
    返回:
    - 容器中的引擎单例。
    """
    return get_engine()


@router.post("/conversations/{conversation_id}/messages", response_model=MessageResponse)
def post_message(
    conversation_id: str,
    payload: MessageRequest,
    engine: YozukEngine = Depends(_engine),
) -> MessageResponse:
    """处理一条用户消息。
    参数:
    - conversation_id: 适配器提供的稳定会话标识，例如频道+线程或聊天 ID。
    - payload: 用户文本、可选用户名与 Base64 编码的附件。
    返回:
    - 至少包含一个输出块的响应。
    """
    attachments = [
        Attachment(data=item.data, media_type=item.media_type, file_name=item.file_name) for item in payload.attachments
    ]
    blocks = engine.handle(conversation_id, payload.text, username=payload.username, attachments=attachments)
    return MessageResponse(
        conversation_id=conversation_id,
        blocks=[OutputBlockResponse(**block.to_dict()) for block in blocks],
    )
