"""Gemini（Google Generative Language API）Provider 适配器。

流式接口：
- URL: {base_url}/models/{model}:streamGenerateContent?alt=sse
- 鉴权: x-goog-api-key: <api_key>

回复以 server-sent events 返回；每个 ``data:`` 行是一个 GenerateContentResponse JSON 对象。
"""

import json
from typing import Any, Dict, Iterable, List, Optional

import httpx

from shohoj_core.config.settings import ensure_credentials, settings
from shohoj_core.domain.cancellation import CancelToken
from shohoj_core.domain.exceptions import ApiError, ConfigurationError, NetworkError, RateLimitError
from shohoj_core.domain.models import ChatMessage, ChatRequest, ChatStreamChunk, ChatUsage
from shohoj_core.providers.registry import GEMINI_CONFIG, ModelConfig, resolve_model


class GeminiClient:
    """Gemini Provider 客户端实现。"""

    name = "gemini"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def chat_stream(self, req: ChatRequest, cancel: Optional[CancelToken] = None) -> Iterable[ChatStreamChunk]:
        api_key = ensure_credentials(self._settings)
        model_cfg = resolve_model(GEMINI_CONFIG, req.model)
        payload = self._build_payload(req, model_cfg)
        base = getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url
        url = f"{base}/models/{model_cfg.provider_model}:streamGenerateContent"
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    url,
                    params={"alt": "sse"},
                    json=payload,
                    headers={
                        "x-goog-api-key": api_key,
                        "Content-Type": "application/json",
                    },
                ) as resp:
                    self._raise_for_status(resp)
                    unregister = cancel.on_cancel(resp.close) if cancel else None
                    try:
                        for line in resp.iter_lines():
                            if cancel and cancel.cancelled:
                                return
                            chunk = self._parse_line(line, req)
                            if chunk is not None:
                                yield chunk
                    finally:
                        if unregister:
                            unregister()
        except (httpx.RequestError, httpx.StreamError) as e:
            if cancel and cancel.cancelled:
                return
            raise NetworkError(code="NETWORK_ERROR", message="Model service unreachable", details=str(e)) from e

    # ---- 辅助方法 ----

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        resp.read()
        detail = self._error_message(resp)
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="Gemini rate limit", details=detail, upstream_status=429)
        if resp.status_code in (401, 403):
            raise ConfigurationError(
                code="INVALID_API_KEY",
                message="Gemini rejected the API key",
                details=detail,
                upstream_status=resp.status_code,
            )
        raise ApiError(
            code="API_ERROR",
            message="Gemini API error",
            details=detail,
            upstream_status=resp.status_code,
        )

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return resp.text
        err = data.get("error") if isinstance(data, dict) else None
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        return resp.text

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> Dict[str, Any]:
        temperature = req.temperature if req.temperature is not None else model_cfg.default_temperature
        generation_config: Dict[str, Any] = {"temperature": temperature}
        max_tokens = req.max_tokens or model_cfg.max_tokens
        if max_tokens:
            generation_config["maxOutputTokens"] = max_tokens
        payload: Dict[str, Any] = {
            "systemInstruction": {"parts": [{"text": req.system}]},
            "contents": [self._message_to_payload(m) for m in req.messages],
            "generationConfig": generation_config,
        }
        return payload

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        role = "model" if message.role == "assistant" else "user"
        return {"role": role, "parts": [{"text": message.content}]}

    def _parse_line(self, line: str, req: ChatRequest) -> Optional[ChatStreamChunk]:
        data_str = line.strip()
        if not data_str or not data_str.startswith("data:"):
            return None
        data_str = data_str[5:].strip()
        if not data_str or data_str == "[DONE]":
            return None
        try:
            data = json.loads(data_str)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None
        return self._parse_stream_chunk(data, req)

    def _parse_stream_chunk(self, data: dict, req: ChatRequest) -> ChatStreamChunk:
        texts: List[str] = []
        finish_reason = None
        candidates = data.get("candidates") or []
        if candidates:
            first = candidates[0] or {}
            content = first.get("content") or {}
            for part in content.get("parts") or []:
                text = part.get("text")
                # thought 部分是模型推理过程，不属于回复文本
                if text and not part.get("thought"):
                    texts.append(text)
            finish_reason = first.get("finishReason")
        else:
            feedback = data.get("promptFeedback") or {}
            finish_reason = feedback.get("blockReason")

        usage_raw = data.get("usageMetadata") or {}
        usage = None
        if usage_raw:
            usage = ChatUsage(
                prompt_tokens=usage_raw.get("promptTokenCount", 0),
                completion_tokens=usage_raw.get("candidatesTokenCount", 0),
                total_tokens=usage_raw.get("totalTokenCount", 0),
            )
        return ChatStreamChunk(
            provider=self.name,
            model=req.model,
            text="".join(texts),
            finish_reason=finish_reason,
            usage=usage,
            raw=data,
        )
