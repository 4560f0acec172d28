"""Persona 解析与 persona 目录接口。"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol

from shohoj_core.domain.models import PersonaConfig


DEFAULT_PERSONA = PersonaConfig(
    name="Shohoj Bot",
    specialty="General Health",
    preferred_language="Bangla",
    tone="Professional yet warm",
    guideline_notes="Always advise seeing a real doctor for emergencies.",
)


def resolve_persona(override: Optional[Any]) -> Any:
    """选择当前生效的 persona。

    只要 override 存在且为真值就整体使用它；部分字段不会与默认 persona 合并。
    """

    if override:
        return override
    return DEFAULT_PERSONA


@dataclass
class PersonaRecord:
    """目录条目：persona 加上聊天视图用的展示信息。"""

    id: str
    persona: PersonaConfig
    image_url: str = ""
    theme: str = "teal"
    quick_questions: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {"id": self.id}
        data.update(self.persona.to_context())
        data["image_url"] = self.image_url
        data["theme"] = self.theme
        data["quick_questions"] = list(self.quick_questions)
        return data


class PersonaStore(Protocol):
    def get_persona(self, persona_id: str) -> PersonaRecord:
        ...

    def list_personas(self) -> List[PersonaRecord]:
        ...
