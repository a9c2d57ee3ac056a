"""Abstraction layer around the language model providers.

Every provider is reached over its REST API with ``httpx`` and exposes the
same one-method interface, ``generate(prompt) -> str``.  The engine never
looks at which provider it talks to; :func:`create_content_generator` picks
the variant from the model catalog.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

import httpx

from app.config import settings
from app.services.errors import ContentGenerationError

logger = logging.getLogger(__name__)

LLM_TIMEOUT_SECONDS = 120.0


class AIProvider(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"


@dataclass(frozen=True)
class AIModel:
    id: str
    name: str
    provider: AIProvider
    max_tokens: int


AI_MODELS: List[AIModel] = [
    AIModel("gemini-2.5-flash", "Gemini 2.5 Flash", AIProvider.GEMINI, 8192),
    AIModel("gemini-1.5-flash", "Gemini 1.5 Flash", AIProvider.GEMINI, 8192),
    AIModel("gemini-1.5-pro", "Gemini 1.5 Pro", AIProvider.GEMINI, 8192),
    AIModel("gpt-4o", "GPT-4o", AIProvider.OPENAI, 16384),
    AIModel("gpt-4-turbo", "GPT-4 Turbo", AIProvider.OPENAI, 4096),
    AIModel("gpt-3.5-turbo", "GPT-3.5 Turbo", AIProvider.OPENAI, 4096),
    AIModel("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet", AIProvider.ANTHROPIC, 8192),
    AIModel("claude-3-opus-20240229", "Claude 3 Opus", AIProvider.ANTHROPIC, 4096),
    AIModel("llama3", "Llama 3 (Ollama)", AIProvider.OLLAMA, 4096),
]


def find_model(model_id: str) -> Optional[AIModel]:
    return next((m for m in AI_MODELS if m.id == model_id), None)


class ContentGenerator(Protocol):
    model_id: str

    def generate(self, prompt: str) -> str:
        ...


class _HTTPGenerator:
    """Shared POST/JSON plumbing for the provider variants."""

    provider: AIProvider

    def __init__(self, api_key: str, model_id: str, max_tokens: int = 4096) -> None:
        self.api_key = api_key
        self.model_id = model_id
        self.max_tokens = max_tokens

    def _post(self, url: str, payload: Dict[str, Any], headers: Dict[str, str] | None = None,
              params: Dict[str, str] | None = None) -> Dict[str, Any]:
        try:
            with httpx.Client(timeout=LLM_TIMEOUT_SECONDS) as client:
                response = client.post(url, json=payload, headers=headers, params=params)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            logger.error("%s request for model %s failed with HTTP %s", self.provider.value, self.model_id, status_code)
            raise ContentGenerationError(
                f"{self.provider.value} returned HTTP {status_code}",
                retryable=status_code not in (400, 401, 403, 404),
            ) from exc
        except httpx.RequestError as exc:
            logger.error("%s request for model %s failed: %s", self.provider.value, self.model_id, exc)
            raise ContentGenerationError(f"{self.provider.value} request failed: {exc}") from exc

    @staticmethod
    def _require_text(text: Optional[str], provider: AIProvider) -> str:
        if not text or not text.strip():
            raise ContentGenerationError(f"{provider.value} returned an empty response")
        return text


class GeminiGenerator(_HTTPGenerator):
    provider = AIProvider.GEMINI
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def generate(self, prompt: str) -> str:
        data = self._post(
            f"{self.BASE_URL}/models/{self.model_id}:generateContent",
            {"contents": [{"parts": [{"text": prompt}]}], "generationConfig": {"maxOutputTokens": self.max_tokens}},
            params={"key": self.api_key},
        )
        candidates = data.get("candidates") or []
        parts = (candidates[0].get("content") or {}).get("parts") if candidates else None
        text = "".join(p.get("text", "") for p in parts or [])
        return self._require_text(text, self.provider)


class OpenAIGenerator(_HTTPGenerator):
    provider = AIProvider.OPENAI
    BASE_URL = "https://api.openai.com/v1"

    def generate(self, prompt: str) -> str:
        data = self._post(
            f"{self.BASE_URL}/chat/completions",
            {"model": self.model_id, "messages": [{"role": "user", "content": prompt}], "temperature": 0.7},
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        choices = data.get("choices") or []
        text = (choices[0].get("message") or {}).get("content") if choices else None
        return self._require_text(text, self.provider)


class AnthropicGenerator(_HTTPGenerator):
    provider = AIProvider.ANTHROPIC
    BASE_URL = "https://api.anthropic.com/v1"

    def generate(self, prompt: str) -> str:
        data = self._post(
            f"{self.BASE_URL}/messages",
            {"model": self.model_id, "max_tokens": self.max_tokens, "messages": [{"role": "user", "content": prompt}]},
            headers={"x-api-key": self.api_key, "anthropic-version": "2023-06-01"},
        )
        text = "".join(block.get("text", "") for block in data.get("content") or [] if block.get("type") == "text")
        return self._require_text(text, self.provider)


class OllamaGenerator(_HTTPGenerator):
    provider = AIProvider.OLLAMA

    def __init__(self, api_key: str, model_id: str, max_tokens: int = 4096, base_url: str | None = None) -> None:
        super().__init__(api_key, model_id, max_tokens)
        self.base_url = (base_url or settings.OLLAMA_URL).rstrip("/")

    def generate(self, prompt: str) -> str:
        data = self._post(
            f"{self.base_url}/api/generate",
            {"model": self.model_id, "prompt": prompt, "stream": False},
        )
        return self._require_text(data.get("response"), self.provider)


_GENERATORS = {
    AIProvider.GEMINI: GeminiGenerator,
    AIProvider.OPENAI: OpenAIGenerator,
    AIProvider.ANTHROPIC: AnthropicGenerator,
    AIProvider.OLLAMA: OllamaGenerator,
}

_FALLBACK_KEYS = {
    AIProvider.GEMINI: lambda: settings.GEMINI_API_KEY,
    AIProvider.OPENAI: lambda: settings.OPENAI_API_KEY,
    AIProvider.ANTHROPIC: lambda: settings.ANTHROPIC_API_KEY,
    AIProvider.OLLAMA: lambda: "",
}


def create_content_generator(model_id: Optional[str] = None, api_key: Optional[str] = None) -> ContentGenerator:
    """Build the generator for ``model_id`` (default model when omitted).

    Raises:
        ContentGenerationError: unknown model or no API key for its provider.
            Neither is retryable.
    """
    model_id = model_id or settings.DEFAULT_AI_MODEL
    model = find_model(model_id)
    if model is None:
        raise ContentGenerationError(f"Unknown AI model: {model_id}", retryable=False)

    key = api_key or _FALLBACK_KEYS[model.provider]()
    if not key and model.provider is not AIProvider.OLLAMA:
        raise ContentGenerationError(
            f"No API key found for {model.provider.value}. Please configure your API keys.", retryable=False
        )
    logger.info("Using %s (%s) for blog generation", model.name, model.provider.value)
    return _GENERATORS[model.provider](key, model.id, model.max_tokens)
