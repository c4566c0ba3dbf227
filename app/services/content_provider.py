"""
Clients for the external content-generation providers.

A provider turns one prompt into one block of text.  Exactly one client is
built at startup (see ``build_content_provider``), kept on ``app.state`` and
handed to the ContentGenerator, so tests can substitute a fake.

Supported providers
-------------------
gemini  — Google Generative Language REST API (``:generateContent``)
ollama  — local Ollama server (``/api/generate``)
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from app.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """The provider could not return usable text (network, HTTP, quota, payload)."""


class ContentProvider(Protocol):
    """Anything that can turn a prompt into text."""

    name: str

    async def generate(self, prompt: str, max_tokens: int = 2048) -> str:
        ...

    async def check_health(self) -> bool:
        ...

    async def aclose(self) -> None:
        ...


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------

class GeminiProvider:
    """Gemini via the public REST endpoint."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))

    async def generate(self, prompt: str, max_tokens: int = 2048) -> str:
        if not self._api_key:
            raise ProviderError("GEMINI_API_KEY is not configured")

        try:
            resp = await self._client.post(
                f"{self.base_url}/models/{self.model}:generateContent",
                headers={"x-goog-api-key": self._api_key},
                json={
                    "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                    "generationConfig": {
                        "maxOutputTokens": max_tokens,
                        "temperature": 0.7,
                    },
                },
            )
        except httpx.TimeoutException as exc:
            raise ProviderError("Gemini request timed out") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Gemini connection error: {exc}") from exc

        if resp.status_code != 200:
            raise ProviderError(
                f"Gemini returned HTTP {resp.status_code}: {resp.text[:300]}"
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise ProviderError("Gemini returned a malformed response") from exc
        return self._extract_text(payload)

    @staticmethod
    def _extract_text(payload: Dict[str, Any]) -> str:
        if not isinstance(payload, dict):
            raise ProviderError("Gemini returned a malformed response")
        candidates = payload.get("candidates") or []
        if not candidates:
            feedback = payload.get("promptFeedback", {})
            reason = feedback.get("blockReason", "no candidates returned")
            raise ProviderError(f"Gemini returned no content ({reason})")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            finish = candidates[0].get("finishReason", "unknown")
            raise ProviderError(f"Gemini returned an empty response (finishReason={finish})")
        return text

    async def check_health(self) -> bool:
        if not self._api_key:
            return False
        try:
            resp = await self._client.get(
                f"{self.base_url}/models/{self.model}",
                headers={"x-goog-api-key": self._api_key},
            )
        except httpx.HTTPError as exc:
            logger.warning("Gemini health check failed: %s", exc)
            return False
        return resp.status_code == 200

    async def aclose(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# Ollama
# ---------------------------------------------------------------------------

class OllamaProvider:
    """Local Ollama server via /api/generate."""

    name = "ollama"

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))

    async def generate(self, prompt: str, max_tokens: int = 2048) -> str:
        try:
            resp = await self._client.post(
                f"{self.base_url}/api/generate",
                json={
                    "model": self.model,
                    "prompt": prompt,
                    "stream": False,
                    "options": {"num_predict": max_tokens, "temperature": 0.7},
                },
            )
        except httpx.TimeoutException as exc:
            raise ProviderError("Ollama request timed out") from exc
        except httpx.ConnectError as exc:
            raise ProviderError(f"Ollama connection error: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"Ollama request failed: {exc}") from exc

        if resp.status_code != 200:
            raise ProviderError(
                f"Ollama returned HTTP {resp.status_code}: {resp.text[:300]}"
            )

        try:
            text = resp.json().get("response", "")
        except (ValueError, AttributeError) as exc:
            raise ProviderError("Ollama returned a malformed response") from exc
        if not isinstance(text, str) or not text.strip():
            raise ProviderError("Ollama returned an empty response")
        return text

    async def check_health(self) -> bool:
        """Reachable and the configured model is pulled."""
        try:
            resp = await self._client.get(f"{self.base_url}/api/tags")
        except httpx.HTTPError as exc:
            logger.warning("Ollama health check failed: %s", exc)
            return False
        if resp.status_code != 200:
            return False

        try:
            available = [m.get("name", "") for m in resp.json().get("models", [])]
        except (ValueError, AttributeError):
            return False
        # Partial match so "qwen2.5:3b" still matches "qwen2.5:3b-instruct"
        return any(
            m == self.model or m.startswith(self.model.split(":")[0]) for m in available
        )

    async def aclose(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def build_content_provider(config: Settings = default_settings) -> ContentProvider:
    """Construct the provider selected by CONTENT_PROVIDER."""
    provider = config.CONTENT_PROVIDER.lower().strip()
    if provider == "gemini":
        if not config.GEMINI_API_KEY:
            logger.warning("GEMINI_API_KEY is empty; generation requests will fail")
        return GeminiProvider(
            api_key=config.GEMINI_API_KEY,
            model=config.GEMINI_MODEL,
            base_url=config.GEMINI_BASE_URL,
            timeout=float(config.LLM_TIMEOUT),
        )
    if provider == "ollama":
        return OllamaProvider(
            base_url=config.OLLAMA_BASE_URL,
            model=config.OLLAMA_LLM_MODEL,
            timeout=float(config.LLM_TIMEOUT),
        )
    raise ValueError(f"Unsupported CONTENT_PROVIDER: {config.CONTENT_PROVIDER!r}")
