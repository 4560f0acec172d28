"""聊天轮次服务。

每个 HTTP 请求调用一次：校验 -> 解析 persona -> 组装 system instruction
-> 调用模型 -> 打开 relay。服务本身不保存请求级状态，并发的轮次互不影响。
"""

import logging
import time
from typing import Any, Dict, Optional
from uuid import uuid4

from shohoj_core.api.validation import validate_chat_turn
from shohoj_core.config.settings import ensure_credentials, settings
from shohoj_core.domain.cancellation import CancelToken
from shohoj_core.domain.exceptions import ValidationError
from shohoj_core.domain.models import ChatTurnRequest, GenerationParams
from shohoj_core.domain.persona import resolve_persona
from shohoj_core.infrastructure.logging.logger import logger
from shohoj_core.prompts import compose_system_instruction
from shohoj_core.providers import ModelStreamAdapter, create_provider
from shohoj_core.relay import RelayOutcome, open_relay


def _new_log_ctx() -> Dict[str, Any]:
    return {"trace_id": f"tr-{uuid4().hex}"}


def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
    payload = dict(log_ctx)
    payload.update(fields)
    logger.log(level, message, extra={"extra": payload})


def reject_turn(e: ValidationError, log_ctx: Optional[Dict[str, Any]] = None) -> RelayOutcome:
    """把校验失败转换为 400 结果，不触达模型。"""

    _log(logging.WARNING, "Rejected chat request", log_ctx or _new_log_ctx(), code=e.code, error=e.message)
    return RelayOutcome(status_code=e.http_status, envelope=e.to_envelope())


class ChatTurnService:
    def __init__(
        self,
        adapter: ModelStreamAdapter,
        params: GenerationParams,
        max_field_length: int = 200,
    ):
        self._adapter = adapter
        self._params = params
        self._max_field_length = max_field_length

    @property
    def params(self) -> GenerationParams:
        return self._params

    def handle(self, body: Any, cancel: Optional[CancelToken] = None) -> RelayOutcome:
        """校验原始请求体并执行一次轮次。"""

        log_ctx = _new_log_ctx()
        try:
            turn = validate_chat_turn(body)
        except ValidationError as e:
            return reject_turn(e, log_ctx)
        return self.run_turn(turn, cancel=cancel, log_ctx=log_ctx)

    def run_turn(
        self,
        turn: ChatTurnRequest,
        cancel: Optional[CancelToken] = None,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> RelayOutcome:
        """执行一次已校验的轮次，返回 relay 结果。

        阻塞直到第一个片段（或失败）确定；返回的 stream 由调用方消费。
        """

        start_time = time.time()
        log_ctx = log_ctx or _new_log_ctx()

        persona = resolve_persona(turn.persona_config)
        system_instruction = compose_system_instruction(persona, self._max_field_length)
        _log(
            logging.INFO,
            "Calling provider (stream)",
            log_ctx,
            provider=self._adapter.provider_name,
            model=self._params.model,
            temperature=self._params.temperature,
            message_count=len(turn.messages),
            persona=persona.name,
        )

        fragments = self._adapter.invoke(system_instruction, turn.messages, self._params, cancel=cancel)
        outcome = open_relay(fragments, cancel=cancel, log_ctx=log_ctx)
        _log(
            logging.INFO,
            "First byte decided",
            log_ctx,
            status_code=outcome.status_code,
            elapsed_seconds=round(time.time() - start_time, 2),
        )
        return outcome


def build_turn_service(cfg=None, provider=None) -> ChatTurnService:
    """显式的启动初始化。

    只检查一次凭据（失败抛出 ConfigurationError），并从同一个 settings
    对象组装 provider、adapter 和生成参数。
    """

    cfg = cfg or settings
    if provider is None:
        ensure_credentials(cfg)
        provider = create_provider(cfg=cfg)
    params = GenerationParams(
        model=getattr(cfg, "default_model", "shohoj-chat"),
        temperature=getattr(cfg, "temperature", 0.4),
        max_output_tokens=getattr(cfg, "max_output_tokens", None),
    )
    return ChatTurnService(
        adapter=ModelStreamAdapter(provider),
        params=params,
        max_field_length=getattr(cfg, "max_persona_field_length", 200),
    )
