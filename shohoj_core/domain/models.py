"""通用数据模型定义。

- ChatMessage：客户端与服务端之间交换的一条消息。
- PersonaConfig：助手以谁的身份回答。
- ChatTurnRequest：已校验的 POST 请求体。
- GenerationParams / ChatRequest：发送给 provider 的内容。
- ChatStreamChunk：provider 流中解析出的一个增量。

Provider 适配器只依赖这些模型，并负责与各自的协议 JSON 互相转换。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional


Role = Literal["user", "assistant"]
ROLES = ("user", "assistant")


@dataclass(frozen=True)
class ChatMessage:
    """一条消息，追加到对话记录后不可变。"""

    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


# 协议字段 -> 属性；同时兼容较长的写法
_PERSONA_KEYS = {
    "name": "name",
    "specialty": "specialty",
    "language": "preferred_language",
    "preferredLanguage": "preferred_language",
    "preferred_language": "preferred_language",
    "tone": "tone",
    "notes": "guideline_notes",
    "guidelineNotes": "guideline_notes",
    "guideline_notes": "guideline_notes",
}


@dataclass(frozen=True)
class PersonaConfig:
    """助手 persona（即 doctorContext），所有字段均为自由文本。"""

    name: str = ""
    specialty: str = ""
    preferred_language: str = ""
    tone: str = ""
    guideline_notes: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PersonaConfig":
        """从类似 doctorContext 的映射构建。

        未知字段（目录中的 id、image_url、theme 等）会被忽略；缺失字段保持为空，
        不会从默认 persona 补全。
        """

        values: Dict[str, str] = {}
        for key, attr in _PERSONA_KEYS.items():
            if attr in values:
                continue
            raw = data.get(key)
            if raw is not None:
                values[attr] = str(raw)
        return cls(**values)

    def to_context(self) -> Dict[str, str]:
        """作为 ``doctorContext`` 发送的协议格式。"""

        return {
            "name": self.name,
            "specialty": self.specialty,
            "language": self.preferred_language,
            "tone": self.tone,
            "notes": self.guideline_notes,
        }


@dataclass
class ChatTurnRequest:
    """已校验的聊天请求，仅在单次请求内有效。"""

    messages: List[ChatMessage]
    persona_config: Optional[PersonaConfig] = None


@dataclass(frozen=True)
class GenerationParams:
    """单次调用的模型选择与采样参数。"""

    model: str
    temperature: float = 0.4
    max_output_tokens: Optional[int] = None


@dataclass
class ChatRequest:
    """交给 ProviderClient 的完整请求。"""

    provider: str  # 逻辑 provider 名，例如 "gemini"
    model: str  # 逻辑模型名，例如 "shohoj-chat"（由 registry 映射）
    system: str
    messages: List[ChatMessage]
    temperature: float = 0.4
    max_tokens: Optional[int] = None


@dataclass
class ChatUsage:
    """provider 返回的 token 用量。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatStreamChunk:
    """流式回复中的一个增量。"""

    provider: str
    model: str
    text: str = ""
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = field(default=None, repr=False)
