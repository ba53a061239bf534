import httpx
import pytest
import requests

from api.dependencies import build_providers
from integration.waha_client import OutboundReply, WahaClient
from llm.providers import gemini_provider, groq_provider
from llm.providers.base import ProviderError
from llm.providers.gemini_provider import GeminiProvider
from llm.providers.groq_provider import GroqProvider
from llm.providers.mock_provider import MockProvider


class FakeHttpxClient:
    def __init__(self, response, sent):
        self.response = response
        self.sent = sent

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def post(self, url, **kwargs):
        self.sent.append((url, kwargs))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture
def fake_http(monkeypatch):
    sent = []

    def _install(module, response):
        monkeypatch.setattr(module.httpx, "Client", lambda timeout: FakeHttpxClient(response, sent))
        return sent
    return _install


def test_missing_keys():
    with pytest.raises(RuntimeError):
        GroqProvider(api_key="")
    with pytest.raises(RuntimeError):
        GeminiProvider(api_key="")


def test_groq_request_and_answer(fake_http):
    sent = fake_http(groq_provider, httpx.Response(200, json={"choices": [{"message": {"content": "{}"}}]}))
    provider = GroqProvider(api_key="k", base_url="https://groq.test/v1")
    assert provider.generate(system="sys", user="hi", model="m", image_base64="aGk=", max_tokens=800) == "{}"
    url, kwargs = sent[0]
    assert url == "https://groq.test/v1/chat/completions"
    assert kwargs["headers"]["Authorization"] == "Bearer k"
    assert kwargs["json"]["max_tokens"] == 800
    assert kwargs["json"]["messages"][1]["content"][1]["image_url"]["url"] == "data:image/jpeg;base64,aGk="


def test_groq_rate_limit(fake_http):
    fake_http(groq_provider, httpx.Response(429, text="slow down"))
    with pytest.raises(ProviderError) as exc:
        GroqProvider(api_key="k").generate(system="s", user="u", model="m")
    assert exc.value.rate_limited
    assert exc.value.status_code == 429


def test_groq_transport_error(fake_http):
    fake_http(groq_provider, httpx.ConnectTimeout("timed out"))
    with pytest.raises(ProviderError) as exc:
        GroqProvider(api_key="k").generate(system="s", user="u", model="m")
    assert not exc.value.rate_limited


def test_gemini_request_and_answer(fake_http):
    body = {"candidates": [{"content": {"parts": [{"text": '{"type": "unrecognized"}'}]}}]}
    sent = fake_http(gemini_provider, httpx.Response(200, json=body))
    provider = GeminiProvider(api_key="g", base_url="https://gemini.test/v1beta")
    assert provider.generate(system="s", user="u", model="gemini-2.5-flash") == '{"type": "unrecognized"}'
    url, kwargs = sent[0]
    assert url == "https://gemini.test/v1beta/models/gemini-2.5-flash:generateContent"
    assert kwargs["params"] == {"key": "g"}


def test_gemini_empty_answer(fake_http):
    fake_http(gemini_provider, httpx.Response(200, json={"candidates": []}))
    with pytest.raises(ProviderError):
        GeminiProvider(api_key="g").generate(system="s", user="u", model="m")


def test_build_providers(monkeypatch):
    providers = build_providers("mock")
    assert isinstance(providers["groq"], MockProvider)
    assert providers["groq"] is providers["gemini"]

    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    assert build_providers("live") == {}

    monkeypatch.setenv("GROQ_API_KEY", "k")
    assert set(build_providers("live")) == {"groq"}


class FakeResponse:
    def __init__(self, status=200, content=b""):
        self.status = status
        self.content = content

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status}")


def test_waha_send_text(monkeypatch):
    calls = []

    def fake_post(url, json, headers, timeout):
        calls.append((url, json, headers))
        return FakeResponse()

    monkeypatch.setattr(requests, "post", fake_post)
    client = WahaClient(base_url="http://waha.test/", api_key="secret", session="bot")
    assert client.send_text(OutboundReply("1203630@g.us", "halo", reply_to="wamid-1"))
    url, body, headers = calls[0]
    assert url == "http://waha.test/api/sendText"
    assert body == {"session": "bot", "chatId": "1203630@g.us", "text": "halo", "reply_to": "wamid-1"}
    assert headers["X-Api-Key"] == "secret"


def test_waha_send_failure(monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "post", fake_post)
    assert not WahaClient(base_url="http://waha.test").send_text(OutboundReply("x@c.us", "halo"))


def test_waha_media(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, headers, timeout: FakeResponse(content=b"hi"))
    assert WahaClient(base_url="http://waha.test").fetch_media_base64("http://waha.test/f.jpg") == "aGk="
    monkeypatch.setattr(requests, "get", lambda url, headers, timeout: FakeResponse(status=404))
    assert WahaClient(base_url="http://waha.test").fetch_media_base64("http://waha.test/f.jpg") is None
