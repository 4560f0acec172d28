"""Provider 抽象接口。

轮次流程不直接依赖厂商 SDK，而是依赖这里的协议。每个厂商对应一个
ProviderClient，负责把 ChatRequest 转换为 API 调用，并把流式回复解析为
ChatStreamChunk。
"""

from typing import Iterable, Optional, Protocol

from shohoj_core.domain.cancellation import CancelToken
from shohoj_core.domain.models import ChatRequest, ChatStreamChunk


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name：provider 名称，用于日志。
    - chat_stream(req, cancel)：惰性的回复增量流。无法建立调用时必须在产出
      第一个 chunk 之前抛出异常。
    """

    name: str

    def chat_stream(self, req: ChatRequest, cancel: Optional[CancelToken] = None) -> Iterable[ChatStreamChunk]:
        ...
