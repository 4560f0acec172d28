"""LLM Provider 集成模块。

- base：ProviderClient 协议。
- registry：provider 与逻辑模型配置。
- gemini_client：Gemini 实现。
- adapter：ModelStreamAdapter，把 provider 的流暴露为文本片段。
"""

from typing import Optional

from shohoj_core.config.settings import settings
from shohoj_core.domain.exceptions import ConfigurationError
from shohoj_core.providers.adapter import ModelStreamAdapter
from shohoj_core.providers.base import ProviderClient
from shohoj_core.providers.gemini_client import GeminiClient
from shohoj_core.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None, cfg=None) -> ProviderClient:
    """按名称创建 provider，默认使用配置中的 provider。"""

    cfg = cfg or settings
    provider_name = (name or getattr(cfg, "default_provider", "gemini")).lower()
    try:
        get_provider_config(provider_name)
    except KeyError as e:
        raise ConfigurationError(code="UNKNOWN_PROVIDER", message=str(e)) from e
    return GeminiClient(cfg)


__all__ = ["ModelStreamAdapter", "ProviderClient", "GeminiClient", "create_provider"]
