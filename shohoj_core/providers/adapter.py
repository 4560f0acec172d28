"""模型流适配器：输入 provider chunk，输出纯文本片段。"""

from typing import Iterator, List, Optional

from shohoj_core.domain.cancellation import CancelToken
from shohoj_core.domain.models import ChatMessage, ChatRequest, GenerationParams
from shohoj_core.infrastructure.logging.logger import logger
from shohoj_core.providers.base import ProviderClient


class ModelStreamAdapter:
    """包装一个 ProviderClient，把其回复暴露为文本片段。"""

    def __init__(self, provider: ProviderClient):
        self._provider = provider

    @property
    def provider_name(self) -> str:
        return getattr(self._provider, "name", "unknown")

    def invoke(
        self,
        system_instruction: str,
        messages: List[ChatMessage],
        params: GenerationParams,
        cancel: Optional[CancelToken] = None,
    ) -> Iterator[str]:
        """发起一次模型调用。

        返回的迭代器是惰性的、有限的、只能使用一次：第一次 ``next()`` 之前不会发送
        任何请求，重试需要重新 ``invoke``。连接/凭据错误在第一次 ``next()`` 时抛出，
        早于任何片段。
        """

        req = ChatRequest(
            provider=self.provider_name,
            model=params.model,
            system=system_instruction,
            messages=list(messages),
            temperature=params.temperature,
            max_tokens=params.max_output_tokens,
        )
        return self._fragments(req, cancel)

    def _fragments(self, req: ChatRequest, cancel: Optional[CancelToken]) -> Iterator[str]:
        stream = iter(self._provider.chat_stream(req, cancel=cancel))
        try:
            for chunk in stream:
                if cancel and cancel.cancelled:
                    return
                if chunk.usage:
                    logger.info(
                        "Token usage",
                        extra={"extra": {
                            "provider": req.provider,
                            "model": req.model,
                            "prompt_tokens": chunk.usage.prompt_tokens,
                            "completion_tokens": chunk.usage.completion_tokens,
                            "total_tokens": chunk.usage.total_tokens,
                        }},
                    )
                if chunk.text:
                    yield chunk.text
        finally:
            close = getattr(stream, "close", None)
            if close:
                close()
