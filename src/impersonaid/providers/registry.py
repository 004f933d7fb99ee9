"""Provider name to adapter resolution."""

from __future__ import annotations

from collections.abc import Callable

from impersonaid.config import AppConfig
from impersonaid.errors import UnknownProviderError
from impersonaid.providers.base import GenerationAdapter
from impersonaid.providers.chat_models import (
    AnthropicAdapter,
    GoogleAdapter,
    OllamaAdapter,
    OpenAIAdapter,
    OpenRouterAdapter,
)

AdapterFactory = Callable[[AppConfig], GenerationAdapter]

_ALIASES = {"claude": "anthropic", "gemini": "google"}


class ProviderRegistry:
    """Creates one adapter per provider name and reuses it.

    Adapters hold no per-request state, so sharing them between concurrent
    simulations is safe.
    """

    def __init__(
        self,
        config: AppConfig,
        factories: dict[str, AdapterFactory] | None = None,
    ) -> None:
        self.config = config
        self._factories: dict[str, AdapterFactory] = dict(
            factories
            or {
                "openai": OpenAIAdapter,
                "anthropic": AnthropicAdapter,
                "google": GoogleAdapter,
                "ollama": OllamaAdapter,
                "openrouter": OpenRouterAdapter,
            }
        )
        self._adapters: dict[str, GenerationAdapter] = {}

    def register(self, name: str, factory: AdapterFactory) -> None:
        key = name.lower()
        if key in self._factories:
            raise ValueError(f"Provider already registered: {name}")
        self._factories[key] = factory

    def get(self, name: str) -> GenerationAdapter:
        key = _ALIASES.get(name.lower(), name.lower())
        adapter = self._adapters.get(key)
        if adapter is not None:
            return adapter
        factory = self._factories.get(key)
        if factory is None:
            raise UnknownProviderError(f"Unsupported LLM provider: {name}")
        adapter = factory(self.config)
        self._adapters[key] = adapter
        return adapter

    def close(self) -> None:
        for adapter in self._adapters.values():
            adapter.close()
        self._adapters.clear()

    def supported(self) -> list[str]:
        return list(self._factories)

    def default_models(self) -> dict[str, str | None]:
        return {name: self.config.default_model(name) for name in self._factories}
