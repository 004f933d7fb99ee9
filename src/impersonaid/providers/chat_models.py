"""LangChain chat-model backends."""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Any

import httpx
from langchain_core.messages import HumanMessage, SystemMessage

from impersonaid.config import AppConfig
from impersonaid.errors import ProviderError
from impersonaid.providers.base import GenerationAdapter, GenerationOptions
from impersonaid.types import CapabilityDescriptor

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class ChatModelAdapter(GenerationAdapter):
    """Adapter backed by a LangChain chat model.

    Provider packages are imported when the client is first built, so only the
    backends actually used need their integration installed. A prebuilt
    client can be injected (tests, custom wrappers); it must expose
    `invoke(messages)`.
    """

    requires_api_key = True

    def __init__(
        self,
        config: AppConfig,
        *,
        client: Any | None = None,
        capabilities: CapabilityDescriptor | None = None,
    ) -> None:
        super().__init__(config, capabilities=capabilities)
        self.api_key = config.get_api_key(self.provider)
        self._client = client

    @abstractmethod
    def _build_client(self, model: str, temperature: float, max_tokens: int) -> Any:
        """Construct the LangChain chat model for one option set."""

    def initialize(self) -> bool:
        if self._client is not None:
            return True
        if self.requires_api_key and not self.api_key:
            logger.error(
                "%s API key not found. Please set it in the config or as an environment variable.",
                self.display_name,
            )
            return False
        try:
            self._client = self._build_client(*self._resolve(GenerationOptions()))
        except Exception as exc:
            logger.error("Error initializing %s client: %s", self.display_name, exc)
            return False
        return True

    def is_ready(self) -> bool:
        return self._client is not None or not self.requires_api_key or bool(self.api_key)

    def _complete(
        self, system_text: str, user_text: str, options: GenerationOptions
    ) -> str:
        client = self._client_for(options)
        messages = [SystemMessage(content=system_text), HumanMessage(content=user_text)]
        try:
            result = client.invoke(messages)
        except Exception as exc:
            logger.error("Error generating response from %s: %s", self.display_name, exc)
            raise ProviderError(
                f"Error generating response from {self.display_name}: {exc}",
                provider=self.provider,
                status_code=_status_code(exc),
            ) from exc
        return message_text(result)

    def _client_for(self, options: GenerationOptions) -> Any:
        if self._client is None and not self.initialize():
            raise ProviderError(
                f"Failed to initialize {self.display_name} client", provider=self.provider
            )
        if options.model is None and options.temperature is None and options.max_tokens is None:
            return self._client
        try:
            return self._build_client(*self._resolve(options))
        except Exception as exc:
            raise ProviderError(
                f"Failed to configure {self.display_name} client: {exc}",
                provider=self.provider,
            ) from exc

    def _resolve(self, options: GenerationOptions) -> tuple[str, float, int]:
        generation = self.config.generation
        return (
            options.model or self.name,
            generation.temperature if options.temperature is None else options.temperature,
            options.max_tokens or generation.max_tokens,
        )


class OpenAIAdapter(ChatModelAdapter):
    provider = "openai"
    display_name = "OpenAI"
    # Claims reference support but does not browse; content must be embedded.
    default_capabilities = CapabilityDescriptor(
        supports_direct_reference=True,
        requires_embedded_content_despite_capability=True,
    )

    def _build_client(self, model: str, temperature: float, max_tokens: int) -> Any:
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=model,
            api_key=self.api_key,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self.config.generation.request_timeout_seconds,
        )


class OpenRouterAdapter(ChatModelAdapter):
    provider = "openrouter"
    display_name = "OpenRouter"
    default_capabilities = CapabilityDescriptor()

    def _build_client(self, model: str, temperature: float, max_tokens: int) -> Any:
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=model,
            api_key=self.api_key,
            base_url=OPENROUTER_BASE_URL,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self.config.generation.request_timeout_seconds,
        )


class AnthropicAdapter(ChatModelAdapter):
    provider = "anthropic"
    display_name = "Anthropic"
    default_capabilities = CapabilityDescriptor(supports_direct_reference=True)
    reference_system_suffix = (
        " When analyzing web content, focus on the user's specific questions and "
        "provide helpful responses based on the content at the URL."
    )

    def _build_client(self, model: str, temperature: float, max_tokens: int) -> Any:
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(
            model=model,
            api_key=self.api_key,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self.config.generation.request_timeout_seconds,
        )


class GoogleAdapter(ChatModelAdapter):
    provider = "google"
    display_name = "Google Generative AI"
    default_capabilities = CapabilityDescriptor(supports_direct_reference=True)

    def _build_client(self, model: str, temperature: float, max_tokens: int) -> Any:
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=self.api_key,
            temperature=temperature,
            max_output_tokens=max_tokens,
            timeout=self.config.generation.request_timeout_seconds,
        )


class OllamaAdapter(ChatModelAdapter):
    """Local models served by Ollama. No API key; readiness is a server check."""

    provider = "ollama"
    display_name = "Ollama"
    default_capabilities = CapabilityDescriptor()
    requires_api_key = False

    def __init__(
        self,
        config: AppConfig,
        *,
        client: Any | None = None,
        capabilities: CapabilityDescriptor | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        super().__init__(config, client=client, capabilities=capabilities)
        self.base_url = config.ollama.host.rstrip("/")
        self._http = http_client or httpx.Client(timeout=10.0)

    def initialize(self) -> bool:
        try:
            response = self._http.get(f"{self.base_url}/api/tags")
        except httpx.HTTPError as exc:
            logger.error("Error connecting to Ollama server: %s", exc)
            return False
        if response.status_code != 200:
            logger.error("Unexpected response from Ollama: %s", response.status_code)
            return False
        return super().initialize()

    def is_ready(self) -> bool:
        wanted = _without_latest(self.name)
        return any(
            _without_latest(str(model.get("name", ""))) == wanted for model in self.list_models()
        )

    def list_models(self) -> list[dict[str, Any]]:
        try:
            response = self._http.get(f"{self.base_url}/api/tags")
            response.raise_for_status()
            return list(response.json().get("models", []))
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error listing Ollama models: %s", exc)
            return []

    def close(self) -> None:
        self._http.close()

    def _build_client(self, model: str, temperature: float, max_tokens: int) -> Any:
        from langchain_ollama import ChatOllama

        return ChatOllama(
            model=model,
            base_url=self.base_url,
            temperature=temperature,
            num_predict=max_tokens,
        )


def message_text(result: Any) -> str:
    """Flatten a chat-model result into plain text."""

    content = getattr(result, "content", result)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            elif isinstance(item, str):
                parts.append(item)
        return "".join(parts)
    return str(content)


def _status_code(exc: Exception) -> int | None:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    return status if isinstance(status, int) else None


def _without_latest(tag: str) -> str:
    return tag.removesuffix(":latest")
