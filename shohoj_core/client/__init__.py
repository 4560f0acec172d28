"""chat relay 的客户端部分。"""

from shohoj_core.client.consumer import ChatSession, ConversationState

__all__ = ["ChatSession", "ConversationState"]
