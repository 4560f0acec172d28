"""聊天请求校验。"""

from collections.abc import Mapping
from typing import Any, List, Optional

from shohoj_core.domain.exceptions import ValidationError
from shohoj_core.domain.models import ROLES, ChatMessage, ChatTurnRequest, PersonaConfig


MESSAGES_REQUIRED = "Invalid request: messages array required"
BAD_MESSAGE = "Invalid request: each message needs a user/assistant role and text content"


def validate_chat_turn(body: Any) -> ChatTurnRequest:
    """校验解码后的 POST 请求体并构建 ChatTurnRequest。

    只强制校验 ``messages``。persona（``doctorContext`` 或 ``personaConfig``）
    原样接收：映射转换为 PersonaConfig，其他真值转换为空 PersonaConfig，
    假值表示使用默认 persona。
    """

    if not isinstance(body, Mapping):
        raise ValidationError(code="INVALID_REQUEST", message=MESSAGES_REQUIRED)
    raw_messages = body.get("messages")
    if not isinstance(raw_messages, (list, tuple)):
        raise ValidationError(code="INVALID_REQUEST", message=MESSAGES_REQUIRED)

    messages: List[ChatMessage] = []
    for index, item in enumerate(raw_messages):
        if not isinstance(item, Mapping):
            raise ValidationError(code="INVALID_MESSAGE", message=BAD_MESSAGE, index=index)
        role = item.get("role")
        content = item.get("content")
        if role not in ROLES or not isinstance(content, str):
            raise ValidationError(code="INVALID_MESSAGE", message=BAD_MESSAGE, index=index)
        messages.append(ChatMessage(role=role, content=content))

    raw_persona = body.get("doctorContext")
    if raw_persona is None:
        raw_persona = body.get("personaConfig")
    return ChatTurnRequest(messages=messages, persona_config=_persona_from(raw_persona))


def _persona_from(raw: Any) -> Optional[PersonaConfig]:
    if not raw:
        return None
    if isinstance(raw, PersonaConfig):
        return raw
    if isinstance(raw, Mapping):
        return PersonaConfig.from_mapping(raw)
    return PersonaConfig()
