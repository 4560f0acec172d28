"""客户端流消费。

ChatSession 持有一个聊天视图的对话记录。``send`` 先乐观地追加用户消息，
提交完整对话记录，读取流式回复直到结束，再一次性追加助手消息。
部分文本不会写入对话记录；读取回复期间只通过 ``pending`` 表示。
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import httpx

from shohoj_core.domain.cancellation import CancelToken
from shohoj_core.domain.exceptions import ClientTransportError
from shohoj_core.domain.models import ChatMessage, PersonaConfig
from shohoj_core.domain.persona import PersonaRecord


PersonaLike = Union[PersonaConfig, PersonaRecord, Mapping[str, Any]]


@dataclass
class ConversationState:
    """一个聊天视图的对话记录与发送状态。"""

    messages: List[ChatMessage] = field(default_factory=list)
    pending: bool = False
    last_error: Optional[str] = None


Listener = Callable[[ConversationState], None]


class ChatSession:
    """单线程聊天客户端，同一时间最多一个发送中的请求。"""

    def __init__(
        self,
        url: str,
        persona: Optional[PersonaLike] = None,
        client: Optional[httpx.Client] = None,
        listener: Optional[Listener] = None,
        timeout: float = 60.0,
    ):
        self._url = url
        self._persona = persona
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._listener = listener
        self._cancel: Optional[CancelToken] = None
        self.state = ConversationState()

    # ---- 公共接口 ----

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self.state.messages)

    def send(self, text: str) -> bool:
        """发送一条用户消息。调用未产生任何效果时返回 False。"""

        if self.state.pending or not text or not text.strip():
            return False

        self.state.last_error = None
        self.state.messages.append(ChatMessage(role="user", content=text))
        self.state.pending = True
        self._notify()

        cancel = CancelToken()
        self._cancel = cancel
        try:
            reply = self._request(cancel)
            if reply is not None:
                self.state.messages.append(ChatMessage(role="assistant", content=reply))
        except ClientTransportError as e:
            self.state.last_error = e.message
        finally:
            self._cancel = None
            self.state.pending = False
            self._notify()
        return True

    def cancel(self) -> None:
        """中止进行中的发送（如果有），不会为其追加任何消息。"""

        if self._cancel is not None:
            self._cancel.cancel()

    def clear(self) -> bool:
        """清空对话记录与错误（对应视图的“重试”操作）。"""

        if self.state.pending:
            return False
        self.state.messages.clear()
        self.state.last_error = None
        self._notify()
        return True

    def close(self) -> None:
        """视图销毁：取消发送并释放连接池。"""

        self.cancel()
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ChatSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- 辅助方法 ----

    def _request(self, cancel: CancelToken) -> Optional[str]:
        payload: Dict[str, Any] = {"messages": [m.to_payload() for m in self.state.messages]}
        context = self._persona_context()
        if context:
            payload["doctorContext"] = context

        try:
            with self._client.stream("POST", self._url, json=payload) as resp:
                if not resp.is_success:
                    raise ClientTransportError(
                        code="API_ERROR",
                        message=f"API request failed (HTTP {resp.status_code})",
                        http_status=resp.status_code,
                    )
                unregister = cancel.on_cancel(resp.close)
                try:
                    pieces: List[str] = []
                    for text in resp.iter_text():
                        if cancel.cancelled:
                            return None
                        pieces.append(text)
                finally:
                    unregister()
                if cancel.cancelled:
                    return None
                return "".join(pieces)
        except (httpx.HTTPError, httpx.StreamError) as e:
            if cancel.cancelled:
                return None
            raise ClientTransportError(
                code="TRANSPORT_ERROR",
                message="Could not reach the chat service",
                details=str(e),
            ) from e

    def _persona_context(self) -> Optional[Dict[str, Any]]:
        persona = self._persona
        if not persona:
            return None
        if isinstance(persona, PersonaRecord):
            return persona.to_dict()
        if isinstance(persona, PersonaConfig):
            return persona.to_context()
        return dict(persona)

    def _notify(self) -> None:
        if self._listener:
            self._listener(self.state)
