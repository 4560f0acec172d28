"""Provider 与模型配置。

将代码/配置中使用的逻辑模型名（"shohoj-chat"）与厂商模型 id
（"gemini-3-flash-preview"）解耦，升级底层模型只需修改这里。

max_tokens 为 None 表示不设置输出上限，由模型自身的上限决定；需要时可通过
Settings.max_output_tokens 配置。
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: Optional[int]
    default_temperature: float


@dataclass
class ProviderConfig:
    """Provider 的配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]


GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    models={
        "shohoj-chat": ModelConfig(
            logical_name="shohoj-chat",
            provider_model="gemini-3-flash-preview",
            max_tokens=None,
            default_temperature=0.4,
        ),
        "shohoj-chat-stable": ModelConfig(
            logical_name="shohoj-chat-stable",
            provider_model="gemini-2.5-flash",
            max_tokens=None,
            default_temperature=0.4,
        ),
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "gemini": GEMINI_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """按名称查找 ProviderConfig（不区分大小写）。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")


def resolve_model(provider: ProviderConfig, name: str) -> ModelConfig:
    """映射逻辑模型名；未知名称直接作为厂商模型 id 使用。"""

    cfg = provider.models.get(name)
    if cfg is not None:
        return cfg
    return ModelConfig(logical_name=name, provider_model=name, max_tokens=None, default_temperature=0.4)
