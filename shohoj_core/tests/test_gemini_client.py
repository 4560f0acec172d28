import httpx
import pytest

from shohoj_core.domain.cancellation import CancelToken
from shohoj_core.domain.exceptions import ApiError, ConfigurationError, NetworkError, RateLimitError
from shohoj_core.domain.models import ChatMessage, ChatRequest
from shohoj_core.providers.gemini_client import GeminiClient


class SettingsStub:
    google_generative_ai_api_key = "g-test-key-123"
    http_timeout = 1.0
    gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"


def _request():
    return ChatRequest(
        provider="gemini",
        model="shohoj-chat",
        system="be brief",
        messages=[
            ChatMessage(role="user", content="hi"),
            ChatMessage(role="assistant", content="hello"),
            ChatMessage(role="user", content="জ্বর হয়েছে"),
        ],
        temperature=0.4,
    )


class FakeResponse:
    def __init__(self, lines, status_code=200, body=b""):
        self._lines = list(lines)
        self.status_code = status_code
        self._body = body
        self.closed = False

    def iter_lines(self):
        for line in self._lines:
            yield line

    def read(self):
        return self._body

    def json(self):
        import json

        return json.loads(self._body)

    @property
    def text(self):
        return self._body.decode("utf-8")

    def close(self):
        self.closed = True


class StreamContext:
    def __init__(self, response):
        self._response = response

    def __enter__(self):
        return self._response

    def __exit__(self, *args):
        return False


def _install_client(monkeypatch, response=None, error=None):
    captured = {"constructed": 0}

    class Client:
        def __init__(self, *a, **kw):
            captured["constructed"] += 1
            captured["client_kwargs"] = kw

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def stream(self, method, url, **kw):
            captured["method"] = method
            captured["url"] = url
            captured.update(kw)
            if error is not None:
                raise error
            return StreamContext(response)

    monkeypatch.setattr("httpx.Client", Client)
    return captured


def test_gemini_client_stream(monkeypatch):
    lines = [
        'data: {"candidates": [{"content": {"role": "model", "parts": [{"text": "দয়া"}]}}]}',
        "",
        'data: {"candidates": [{"content": {"parts": [{"text": " করে"}]}, "finishReason": "STOP"}], '
        '"usageMetadata": {"promptTokenCount": 5, "candidatesTokenCount": 2, "totalTokenCount": 7}}',
    ]
    captured = _install_client(monkeypatch, FakeResponse(lines))
    chunks = list(GeminiClient(SettingsStub()).chat_stream(_request()))

    assert [c.text for c in chunks] == ["দয়া", " করে"]
    assert chunks[1].finish_reason == "STOP"
    assert chunks[1].usage.total_tokens == 7
    assert captured["method"] == "POST"
    assert captured["url"].endswith("/models/gemini-3-flash-preview:streamGenerateContent")
    assert captured["params"] == {"alt": "sse"}
    assert captured["headers"]["x-goog-api-key"] == "g-test-key-123"


def test_gemini_client_payload(monkeypatch):
    captured = _install_client(monkeypatch, FakeResponse([]))
    list(GeminiClient(SettingsStub()).chat_stream(_request()))

    payload = captured["json"]
    assert payload["systemInstruction"] == {"parts": [{"text": "be brief"}]}
    assert [c["role"] for c in payload["contents"]] == ["user", "model", "user"]
    assert payload["contents"][2]["parts"][0]["text"] == "জ্বর হয়েছে"
    assert payload["generationConfig"]["temperature"] == 0.4
    assert "maxOutputTokens" not in payload["generationConfig"]


def test_gemini_client_output_cap_only_when_configured(monkeypatch):
    captured = _install_client(monkeypatch, FakeResponse([]))
    req = _request()
    req.max_tokens = 2048
    list(GeminiClient(SettingsStub()).chat_stream(req))
    assert captured["json"]["generationConfig"]["maxOutputTokens"] == 2048


def test_gemini_client_zero_temperature_is_kept(monkeypatch):
    captured = _install_client(monkeypatch, FakeResponse([]))
    req = _request()
    req.temperature = 0.0
    list(GeminiClient(SettingsStub()).chat_stream(req))
    assert captured["json"]["generationConfig"]["temperature"] == 0.0


def test_gemini_client_unknown_model_passes_through(monkeypatch):
    captured = _install_client(monkeypatch, FakeResponse([]))
    req = _request()
    req.model = "gemini-2.0-flash"
    list(GeminiClient(SettingsStub()).chat_stream(req))
    assert captured["url"].endswith("/models/gemini-2.0-flash:streamGenerateContent")


def test_gemini_client_skips_thoughts_and_junk(monkeypatch):
    lines = [
        ": keep-alive",
        "data: not-json",
        'data: {"candidates": [{"content": {"parts": [{"text": "plan", "thought": true}, {"text": "ok"}]}}]}',
        "data: [DONE]",
    ]
    _install_client(monkeypatch, FakeResponse(lines))
    chunks = list(GeminiClient(SettingsStub()).chat_stream(_request()))
    assert [c.text for c in chunks] == ["ok"]


def test_gemini_client_missing_key(monkeypatch):
    class NoKey(SettingsStub):
        google_generative_ai_api_key = None

    captured = _install_client(monkeypatch, FakeResponse([]))
    stream = GeminiClient(NoKey()).chat_stream(_request())
    with pytest.raises(ConfigurationError) as ei:
        next(iter(stream))
    assert ei.value.code == "MISSING_API_KEY"
    assert captured["constructed"] == 0


@pytest.mark.parametrize(
    "status,exc_type",
    [(429, RateLimitError), (403, ConfigurationError), (500, ApiError), (400, ApiError)],
)
def test_gemini_client_error_status(monkeypatch, status, exc_type):
    body = b'{"error": {"code": %d, "message": "upstream says no"}}' % status
    _install_client(monkeypatch, FakeResponse([], status_code=status, body=body))
    with pytest.raises(exc_type) as ei:
        next(iter(GeminiClient(SettingsStub()).chat_stream(_request())))
    assert ei.value.http_status == 500
    assert ei.value.extra["details"] == "upstream says no"
    assert ei.value.extra["upstream_status"] == status


def test_gemini_client_network_error(monkeypatch):
    _install_client(monkeypatch, error=httpx.ConnectError("connection refused"))
    with pytest.raises(NetworkError) as ei:
        next(iter(GeminiClient(SettingsStub()).chat_stream(_request())))
    assert "connection refused" in ei.value.extra["details"]


def test_gemini_client_cancel_closes_response(monkeypatch):
    lines = [
        'data: {"candidates": [{"content": {"parts": [{"text": "a"}]}}]}',
        'data: {"candidates": [{"content": {"parts": [{"text": "b"}]}}]}',
    ]
    response = FakeResponse(lines)
    _install_client(monkeypatch, response)
    token = CancelToken()
    stream = iter(GeminiClient(SettingsStub()).chat_stream(_request(), cancel=token))

    assert next(stream).text == "a"
    token.cancel()
    assert response.closed
    assert list(stream) == []
