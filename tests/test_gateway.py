"""Tests for council_mcp/gateway.py and the provider adapters. No real network."""

import json

import httpx
import pytest

from council_mcp.gateway import ModelGateway
from council_mcp.models import CallLimits, ModelSpec
from council_mcp.providers.anthropic import AnthropicProvider
from council_mcp.providers.gemini import GeminiProvider
from council_mcp.providers.openai_provider import OpenAIProvider

LIMITS = CallLimits(timeout_sec=5, temperature=0.3, max_tokens=100)


class Recorder:
    """httpx.MockTransport handler that records requests and replays one response."""

    def __init__(self, status: int = 200, body: object = None, raw: str | None = None) -> None:
        self.status = status
        self.body = body
        self.raw = raw
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raw is not None:
            return httpx.Response(self.status, text=self.raw)
        return httpx.Response(self.status, json=self.body if self.body is not None else {})

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


def _gateway(recorder: Recorder) -> ModelGateway:
    return ModelGateway(client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)))


async def test_openai_request_and_extraction():
    recorder = Recorder(body={"choices": [{"message": {"content": "hello from openai"}}]})
    spec = ModelSpec(id="o", provider="openai", model="gpt-x", api_key="sk-1", system_prompt="Be terse.")

    result = await _gateway(recorder).call(spec, "Say hi", LIMITS)

    assert (result.code, result.text) == (0, "hello from openai")
    request = recorder.requests[0]
    assert str(request.url) == "https://api.openai.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-1"
    assert recorder.last_json == {
        "model": "gpt-x",
        "messages": [
            {"role": "system", "content": "Be terse."},
            {"role": "user", "content": "Say hi"},
        ],
        "temperature": 0.3,
    }


async def test_openai_custom_base_url_trailing_slash():
    recorder = Recorder(body={"choices": [{"message": {"content": "ok"}}]})
    spec = ModelSpec(id="o", provider="openai", model="m", api_key="k", api_url="https://proxy.local/v1/")
    await _gateway(recorder).call(spec, "p", LIMITS)
    assert str(recorder.requests[0].url) == "https://proxy.local/v1/chat/completions"


async def test_openai_missing_key_fails_before_network():
    recorder = Recorder()
    result = await _gateway(recorder).call(ModelSpec(id="o", provider="openai", model="m"), "p", LIMITS)
    assert result.code == 2
    assert "missing api_key" in result.text
    assert recorder.requests == []


def test_openai_multi_fragment_content():
    payload = {"choices": [{"message": {"content": [{"type": "text", "text": "a"}, {"text": "b"}, {"x": 1}]}}]}
    assert OpenAIProvider().extract_text(payload) == "a\nb"


async def test_openai_no_choices_falls_back_to_raw_json():
    recorder = Recorder(body={"id": "resp-1", "choices": []})
    spec = ModelSpec(id="o", provider="openai", model="m", api_key="k")
    result = await _gateway(recorder).call(spec, "p", LIMITS)
    assert result.code == 0
    assert json.loads(result.text) == {"id": "resp-1", "choices": []}


async def test_anthropic_request_and_extraction():
    recorder = Recorder(body={"content": [
        {"type": "text", "text": "part one"},
        {"type": "tool_use", "name": "x"},
        {"type": "text", "text": "part two"},
    ]})
    spec = ModelSpec(id="a", provider="anthropic", model="claude-x", api_key="ak")

    result = await _gateway(recorder).call(spec, "Think", LIMITS)

    assert result.text == "part one\npart two"
    request = recorder.requests[0]
    assert str(request.url) == "https://api.anthropic.com/v1/messages"
    assert request.headers["x-api-key"] == "ak"
    assert request.headers["anthropic-version"] == "2023-06-01"
    assert recorder.last_json == {
        "model": "claude-x",
        "system": "You are a helpful assistant.",
        "max_tokens": 100,
        "messages": [{"role": "user", "content": "Think"}],
    }


def test_anthropic_without_text_blocks_returns_none():
    assert AnthropicProvider().extract_text({"content": [{"type": "tool_use"}]}) is None


async def test_gemini_without_key_or_url_fails_before_network():
    recorder = Recorder()
    result = await _gateway(recorder).call(ModelSpec(id="g", provider="gemini", model="gemini-x"), "p", LIMITS)
    assert result.code == 2
    assert "missing api_key for gemini" in result.text
    assert recorder.requests == []


async def test_gemini_default_endpoint_uses_query_key():
    recorder = Recorder(body={"candidates": [{"content": {"parts": [{"text": "g1"}, {"text": "g2"}]}}]})
    spec = ModelSpec(id="g", provider="gemini", model="gemini-2.0-flash", api_key="gk")

    result = await _gateway(recorder).call(spec, "p", LIMITS)

    assert result.text == "g1\ng2"
    url = recorder.requests[0].url
    assert url.path == "/v1beta/models/gemini-2.0-flash:generateContent"
    assert url.params["key"] == "gk"
    body = recorder.last_json
    assert body["generationConfig"] == {"temperature": 0.3, "maxOutputTokens": 100}
    assert body["contents"] == [{"role": "user", "parts": [{"text": "p"}]}]


async def test_gemini_explicit_url_sends_key_header():
    recorder = Recorder(body={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]})
    spec = ModelSpec(id="g", provider="gemini", model="m", api_key="gk", api_url="https://gw.local/gen")
    await _gateway(recorder).call(spec, "p", LIMITS)
    request = recorder.requests[0]
    assert str(request.url) == "https://gw.local/gen"
    assert request.headers["x-goog-api-key"] == "gk"
    assert "key" not in request.url.params


async def test_gemini_explicit_url_without_key_is_allowed():
    recorder = Recorder(body={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]})
    spec = ModelSpec(id="g", provider="gemini", model="m", api_url="https://gw.local/gen")
    result = await _gateway(recorder).call(spec, "p", LIMITS)
    assert result.code == 0
    assert "x-goog-api-key" not in recorder.requests[0].headers


def test_gemini_without_candidates_returns_none():
    assert GeminiProvider().extract_text({"promptFeedback": {"blockReason": "SAFETY"}}) is None


async def test_custom_requires_url():
    recorder = Recorder()
    result = await _gateway(recorder).call(ModelSpec(id="c", provider="custom", model="m"), "p", LIMITS)
    assert result.code == 2
    assert "missing api_url" in result.text
    assert recorder.requests == []


async def test_custom_posts_to_full_url_with_optional_bearer():
    recorder = Recorder(body={"choices": [{"message": {"content": "local"}}]})
    spec = ModelSpec(id="c", provider="custom", model="llama", api_url="http://localhost:8080/v1/chat/completions")

    result = await _gateway(recorder).call(spec, "p", LIMITS)

    assert result.text == "local"
    request = recorder.requests[0]
    assert str(request.url) == "http://localhost:8080/v1/chat/completions"
    assert "Authorization" not in request.headers


async def test_http_error_returns_status_and_raw_body():
    recorder = Recorder(status=429, raw='{"error": "rate limited"}')
    spec = ModelSpec(id="o", provider="openai", model="m", api_key="k")
    result = await _gateway(recorder).call(spec, "p", LIMITS)
    assert result.code == 429
    assert result.text == '{"error": "rate limited"}'


async def test_timeout_is_reported_as_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    gateway = ModelGateway(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    spec = ModelSpec(id="o", provider="openai", model="m", api_key="k")
    result = await gateway.call(spec, "p", LIMITS)
    assert result.code == 1
    assert "timed out after 5s" in result.text


async def test_connection_error_is_reported_as_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway = ModelGateway(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    spec = ModelSpec(id="a", provider="anthropic", model="m", api_key="k")
    result = await gateway.call(spec, "p", LIMITS)
    assert result.code == 1
    assert "connection refused" in result.text


async def test_non_json_success_body_is_returned_raw():
    recorder = Recorder(raw="plain text body")
    spec = ModelSpec(id="c", provider="custom", model="m", api_url="http://x")
    result = await _gateway(recorder).call(spec, "p", LIMITS)
    assert (result.code, result.text) == (0, "plain text body")


async def test_gateway_closes_only_its_own_client():
    client = httpx.AsyncClient(transport=httpx.MockTransport(Recorder()))
    async with ModelGateway(client=client):
        pass
    assert client.is_closed is False
    await client.aclose()


@pytest.mark.parametrize("provider", ["openai", "anthropic", "gemini", "custom"])
async def test_every_provider_reports_http_failure_without_extraction(provider):
    recorder = Recorder(status=500, raw="upstream down")
    spec = ModelSpec(id="p", provider=provider, model="m", api_key="k", api_url="http://upstream/x")
    result = await _gateway(recorder).call(spec, "p", LIMITS)
    assert result.code == 500
    assert result.text == "upstream down"


async def test_non_ascii_api_key_is_failure_not_exception():
    recorder = Recorder()
    spec = ModelSpec(id="o", provider="openai", model="m", api_key="kéy")
    result = await _gateway(recorder).call(spec, "p", LIMITS)
    assert result.code == 1
    assert result.text.startswith("[o] invalid request:")
    assert recorder.requests == []


async def test_nan_temperature_is_failure_not_exception():
    recorder = Recorder()
    spec = ModelSpec(id="g", provider="gemini", model="m", api_key="k")
    limits = CallLimits(timeout_sec=5, temperature=float("nan"), max_tokens=100)
    result = await _gateway(recorder).call(spec, "p", limits)
    assert result.code == 1
    assert "invalid request" in result.text
    assert recorder.requests == []


async def test_malformed_api_url_is_failure_not_exception():
    recorder = Recorder()
    spec = ModelSpec(id="c", provider="custom", model="m", api_url="http://[::1")
    result = await _gateway(recorder).call(spec, "p", LIMITS)
    assert result.code == 1
    assert recorder.requests == []
