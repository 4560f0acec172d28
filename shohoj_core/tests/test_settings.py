import pydantic
import pytest

from shohoj_core.config.settings import Settings, ensure_credentials
from shohoj_core.domain.exceptions import ConfigurationError


def test_settings_load_without_credential(monkeypatch):
    monkeypatch.delenv("GOOGLE_GENERATIVE_AI_API_KEY", raising=False)
    cfg = Settings(_env_file=None, google_generative_ai_api_key=None)
    assert cfg.google_generative_ai_api_key is None
    with pytest.raises(ConfigurationError) as ei:
        ensure_credentials(cfg)
    assert ei.value.code == "MISSING_API_KEY"


def test_settings_reads_credential_from_environment(monkeypatch):
    monkeypatch.setenv("GOOGLE_GENERATIVE_AI_API_KEY", "AIza-test-key-0001")
    cfg = Settings(_env_file=None)
    assert ensure_credentials(cfg) == "AIza-test-key-0001"


def test_short_credential_rejected():
    cfg = Settings(_env_file=None, google_generative_ai_api_key="short")
    with pytest.raises(ConfigurationError) as ei:
        ensure_credentials(cfg)
    assert ei.value.code == "INVALID_API_KEY"


def test_temperature_bounds():
    with pytest.raises(pydantic.ValidationError):
        Settings(_env_file=None, temperature=1.5)
