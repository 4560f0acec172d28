"""配置加载模块。

配置来源（优先级从高到低）：初始化参数、环境变量、``.env``、可选的 ``config.yaml``。

缺少凭据不会在 import 时报错；需要模型凭据的调用方在启动时调用一次
:func:`ensure_credentials`。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shohoj_core.domain.exceptions import ConfigurationError


def _load_config_from_yaml() -> Dict[str, Any]:
    """如果存在 config.yaml 则加载。"""
    candidates = []
    explicit = os.getenv("SHOHOJ_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """应用配置。"""

    # ---- 模型 Provider 相关配置 ----
    default_provider: str = Field(default="gemini", description="Provider name")
    default_model: str = Field(
        default="shohoj-chat",
        description="Logical model name, mapped to a provider model by the registry",
    )
    temperature: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Sampling temperature (0 = deterministic, 1 = creative)",
    )
    max_output_tokens: Optional[int] = Field(default=None, ge=1, description="Reply token cap")

    google_generative_ai_api_key: Optional[str] = Field(default=None, description="Gemini API key")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini API base URL",
    )
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP timeout in seconds")

    # ---- Prompt ----
    max_persona_field_length: int = Field(
        default=200,
        ge=16,
        le=2000,
        description="Persona fields are truncated to this many characters before templating",
    )

    # ---- 存储 / 日志 ----
    persona_file: str = Field(default="personas.yaml", description="Doctor persona catalog")
    log_dir: str = Field(default="logs", description="Log directory")
    log_redact_content: bool = Field(default=False, description="Truncate logged messages")

    # ---- HTTP 服务 ----
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


def ensure_credentials(cfg: Any) -> str:
    """返回模型 API key，缺失或无效时抛出 ConfigurationError。"""

    key = getattr(cfg, "google_generative_ai_api_key", None)
    if not key:
        raise ConfigurationError(
            code="MISSING_API_KEY",
            message="Missing GOOGLE_GENERATIVE_AI_API_KEY in environment variables",
        )
    if len(key) < 10:
        raise ConfigurationError(code="INVALID_API_KEY", message="API key seems too short")
    return key


settings = Settings()
