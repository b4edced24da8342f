import hashlib
import logging
import time
import httpx
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum

logger = logging.getLogger(__name__)


class AIProvider(str, Enum):
    NONE = "none"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OPENAI_COMPATIBLE = "openai_compatible"


DEFAULT_MODELS: Dict[AIProvider, str] = {
    AIProvider.OPENAI: "gpt-4o-mini",
    AIProvider.ANTHROPIC: "claude-3-5-haiku-latest",
}


@dataclass
class CacheEntry:
    response: str
    timestamp: float


class AIBackend(ABC):
    @abstractmethod
    async def complete(self, prompt: str, system_prompt: Optional[str] = None, max_tokens: int = 500) -> str:
        pass


class OpenAIChatBackend(AIBackend):
    """Chat-completions API: OpenAI itself or any compatible host (Groq, OpenRouter, ...)."""

    def __init__(self, api_key: str, model: str, base_url: str = "https://api.openai.com/v1", timeout: float = 60.0):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def complete(self, prompt: str, system_prompt: Optional[str] = None, max_tokens: int = 500) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "messages": messages,
                    "temperature": 0.7,
                    "max_tokens": max_tokens,
                },
            )
            response.raise_for_status()
            data = response.json()
            return data["choices"][0]["message"]["content"]


class AnthropicBackend(AIBackend):
    def __init__(self, api_key: str, model: str, timeout: float = 60.0):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    async def complete(self, prompt: str, system_prompt: Optional[str] = None, max_tokens: int = 500) -> str:
        request_json: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request_json["system"] = system_prompt

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                "https://api.anthropic.com/v1/messages",
                headers={
                    "x-api-key": self.api_key,
                    "anthropic-version": "2023-06-01",
                    "Content-Type": "application/json",
                },
                json=request_json,
            )
            response.raise_for_status()
            data = response.json()
            return data["content"][0]["text"]


class AIService:
    _backend: Optional[AIBackend] = None
    _provider: AIProvider = AIProvider.NONE
    _model: Optional[str] = None
    _cache: Dict[str, CacheEntry] = {}
    _cache_ttl: float = 3600.0  # 1 hour default

    @classmethod
    def configure(
        cls,
        provider: AIProvider,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 60.0,
    ):
        cls._provider = provider

        if provider == AIProvider.OPENAI and api_key:
            cls._model = model or DEFAULT_MODELS[provider]
            cls._backend = OpenAIChatBackend(api_key, cls._model, timeout=timeout)
        elif provider == AIProvider.ANTHROPIC and api_key:
            cls._model = model or DEFAULT_MODELS[provider]
            cls._backend = AnthropicBackend(api_key, cls._model, timeout=timeout)
        elif provider == AIProvider.OPENAI_COMPATIBLE and api_key and base_url and model:
            cls._model = model
            cls._backend = OpenAIChatBackend(api_key, model, base_url=base_url, timeout=timeout)
        else:
            cls._backend = None
            cls._model = None

    @classmethod
    def is_configured(cls) -> bool:
        return cls._backend is not None

    @classmethod
    def get_provider(cls) -> AIProvider:
        return cls._provider

    @classmethod
    def get_model(cls) -> Optional[str]:
        return cls._model

    @staticmethod
    def _make_cache_key(prompt: str, system_prompt: Optional[str] = None) -> str:
        combined = (system_prompt or "") + "||" + prompt
        return hashlib.sha256(combined.encode()).hexdigest()

    @classmethod
    def _get_cached(cls, cache_key: str) -> Optional[str]:
        entry = cls._cache.get(cache_key)
        if entry is None:
            return None
        if (time.time() - entry.timestamp) > cls._cache_ttl:
            del cls._cache[cache_key]
            return None
        return entry.response

    @classmethod
    def clear_cache(cls) -> int:
        """Clear all cached responses. Returns the number of entries cleared."""
        count = len(cls._cache)
        cls._cache.clear()
        return count

    @classmethod
    async def complete(
        cls,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 500,
        endpoint: str = "general",
    ) -> str:
        """Run a completion against the configured provider.

        Identical prompts within the cache TTL are answered from memory.

        Raises:
            RuntimeError: If no AI backend is configured.
            httpx.HTTPError: If the provider call fails.
        """
        if not cls._backend:
            raise RuntimeError("AI service is not configured. Set up a provider first.")

        cache_key = cls._make_cache_key(prompt, system_prompt)
        cached_response = cls._get_cached(cache_key)
        if cached_response is not None:
            logger.debug(f"AI cache hit for endpoint={endpoint}")
            return cached_response

        logger.info(f"AI request endpoint={endpoint} provider={cls._provider.value} model={cls._model}")
        response = await cls._backend.complete(prompt, system_prompt, max_tokens)
        cls._cache[cache_key] = CacheEntry(response=response, timestamp=time.time())
        return response


def configure_ai_from_settings(settings) -> bool:
    try:
        provider = AIProvider(settings.ai_provider or "none")
    except ValueError:
        logger.warning(f"Unknown AI provider '{settings.ai_provider}', AI features disabled")
        provider = AIProvider.NONE

    if provider == AIProvider.NONE:
        AIService.configure(AIProvider.NONE)
        return False

    AIService.configure(
        provider=provider,
        api_key=settings.ai_api_key,
        base_url=settings.ai_base_url,
        model=settings.ai_model,
        timeout=settings.ai_timeout_seconds,
    )
    return AIService.is_configured()
