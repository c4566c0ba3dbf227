"""Tests for the Gemini and Ollama provider clients (HTTP mocked with httpx.MockTransport)."""
import json

import httpx
import pytest

from app.config import Settings
from app.services.content_provider import (
    GeminiProvider,
    OllamaProvider,
    ProviderError,
    build_content_provider,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _gemini(handler, api_key: str = "test-key") -> GeminiProvider:
    return GeminiProvider(
        api_key=api_key,
        model="gemini-1.5-flash",
        base_url="https://gemini.test/v1beta",
        client=_client(handler),
    )


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_gemini_returns_candidate_text():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "world"}]}}]},
        )

    provider = _gemini(handler)
    assert await provider.generate("Write something", max_tokens=300) == "Hello world"
    assert seen["url"] == "https://gemini.test/v1beta/models/gemini-1.5-flash:generateContent"
    assert seen["key"] == "test-key"
    assert seen["body"]["generationConfig"]["maxOutputTokens"] == 300
    assert seen["body"]["contents"][0]["parts"][0]["text"] == "Write something"
    await provider.aclose()


@pytest.mark.asyncio
async def test_gemini_http_error_raises_provider_error():
    provider = _gemini(lambda request: httpx.Response(429, text="quota exceeded"))
    with pytest.raises(ProviderError, match="HTTP 429"):
        await provider.generate("x")


@pytest.mark.asyncio
async def test_gemini_blocked_prompt_raises_provider_error():
    provider = _gemini(
        lambda request: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})
    )
    with pytest.raises(ProviderError, match="SAFETY"):
        await provider.generate("x")


@pytest.mark.asyncio
async def test_gemini_non_json_body_raises_provider_error():
    provider = _gemini(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(ProviderError, match="malformed"):
        await provider.generate("x")


@pytest.mark.asyncio
async def test_gemini_without_key_fails_without_calling_out():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    provider = _gemini(handler, api_key="")
    with pytest.raises(ProviderError, match="GEMINI_API_KEY"):
        await provider.generate("x")
    assert await provider.check_health() is False
    assert calls == []


@pytest.mark.asyncio
async def test_gemini_connection_error_raises_provider_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    provider = _gemini(handler)
    with pytest.raises(ProviderError, match="connection error"):
        await provider.generate("x")
    assert await provider.check_health() is False


# ---------------------------------------------------------------------------
# Ollama
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_ollama_generate_and_health():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/generate":
            body = json.loads(request.content)
            assert body["model"] == "qwen2.5:3b"
            assert body["stream"] is False
            return httpx.Response(200, json={"response": "Generated text"})
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "qwen2.5:3b"}]})
        return httpx.Response(404)

    provider = OllamaProvider("http://ollama.test", "qwen2.5:3b", client=_client(handler))
    assert await provider.generate("prompt") == "Generated text"
    assert await provider.check_health() is True


@pytest.mark.asyncio
async def test_ollama_missing_model_is_unhealthy():
    provider = OllamaProvider(
        "http://ollama.test",
        "qwen2.5:3b",
        client=_client(lambda request: httpx.Response(200, json={"models": [{"name": "llama3"}]})),
    )
    assert await provider.check_health() is False


@pytest.mark.asyncio
async def test_ollama_empty_response_raises_provider_error():
    provider = OllamaProvider(
        "http://ollama.test",
        "qwen2.5:3b",
        client=_client(lambda request: httpx.Response(200, json={"response": "  "})),
    )
    with pytest.raises(ProviderError, match="empty"):
        await provider.generate("prompt")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_build_content_provider_dispatch():
    gemini = build_content_provider(Settings(CONTENT_PROVIDER="gemini", GEMINI_API_KEY="k"))
    ollama = build_content_provider(Settings(CONTENT_PROVIDER="ollama"))
    assert isinstance(gemini, GeminiProvider)
    assert isinstance(ollama, OllamaProvider)
    await gemini.aclose()
    await ollama.aclose()

    with pytest.raises(ValueError, match="Unsupported CONTENT_PROVIDER"):
        build_content_provider(Settings(CONTENT_PROVIDER="openai"))
