from typing import Any

import httpx
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from impersonaid.config import AppConfig, CapabilityOverride
from impersonaid.errors import ProviderError, UnknownProviderError
from impersonaid.providers.base import DEFAULT_REFERENCE_SYSTEM_TEXT, DEFAULT_SYSTEM_TEXT
from impersonaid.providers.chat_models import (
    AnthropicAdapter,
    OllamaAdapter,
    OpenAIAdapter,
    OpenRouterAdapter,
    message_text,
)
from impersonaid.providers.registry import ProviderRegistry


class _FakeChatModel:
    def __init__(self, reply: Any = "Simulated reply", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[list[Any]] = []

    def invoke(self, messages: list[Any]) -> AIMessage:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return AIMessage(content=self.reply)


class _StatusError(Exception):
    status_code = 429


def test_generate_sends_system_and_user_messages() -> None:
    client = _FakeChatModel()
    adapter = OpenAIAdapter(AppConfig(), client=client)

    assert adapter.initialize()
    assert adapter.generate("Hello") == "Simulated reply"

    system, human = client.calls[0]
    assert isinstance(system, SystemMessage)
    assert isinstance(human, HumanMessage)
    assert system.content == DEFAULT_SYSTEM_TEXT
    assert human.content == "Hello"


def test_openai_requires_embedded_content_for_reference() -> None:
    client = _FakeChatModel()
    adapter = OpenAIAdapter(AppConfig(), client=client)

    with pytest.raises(ProviderError, match="Document content is required"):
        adapter.generate_with_reference("https://docs.example.com", "Summarize.")

    adapter.generate_with_reference("https://docs.example.com", "summarize.", embedded_content="Body")
    human = client.calls[0][1]
    assert human.content.startswith("The following is the content from https://docs.example.com:")
    assert "Body" in human.content


def test_anthropic_reference_uses_direct_wording_and_suffix() -> None:
    client = _FakeChatModel()
    adapter = AnthropicAdapter(AppConfig(), client=client)

    adapter.generate_with_reference("https://docs.example.com", "Is it clear?")

    system, human = client.calls[0]
    assert system.content.startswith(DEFAULT_REFERENCE_SYSTEM_TEXT)
    assert system.content.endswith("based on the content at the URL.")
    assert human.content == "Please visit and analyze the content at https://docs.example.com. Is it clear?"


def test_reference_unsupported_backend_raises() -> None:
    adapter = OpenRouterAdapter(AppConfig(), client=_FakeChatModel())

    with pytest.raises(ProviderError, match="Web browsing not supported by OpenRouter"):
        adapter.generate_with_reference("https://docs.example.com", "Hi")


def test_backend_failure_carries_status_code() -> None:
    adapter = AnthropicAdapter(AppConfig(), client=_FakeChatModel(error=_StatusError("rate limited")))

    with pytest.raises(ProviderError) as excinfo:
        adapter.generate("Hello")

    assert excinfo.value.status_code == 429
    assert excinfo.value.provider == "anthropic"
    assert excinfo.value.stage == "generate"


def test_missing_api_key_fails_initialization(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    adapter = OpenAIAdapter(AppConfig())

    assert not adapter.is_ready()
    assert not adapter.initialize()


def test_environment_key_wins_over_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
    adapter = AnthropicAdapter(AppConfig(api_keys={"anthropic": "file-key"}))

    assert adapter.api_key == "env-key"
    assert adapter.is_ready()


def test_capabilities_defaults_and_overrides() -> None:
    assert OpenAIAdapter(AppConfig()).capabilities.requires_embedded_content_despite_capability
    assert not OpenRouterAdapter(AppConfig()).capabilities.supports_direct_reference

    config = AppConfig(
        capabilities={"openai": CapabilityOverride(requires_embedded_content_despite_capability=False)}
    )
    capabilities = OpenAIAdapter(config).capabilities

    assert capabilities.supports_direct_reference
    assert not capabilities.requires_embedded_content_despite_capability


def test_model_defaults_follow_config() -> None:
    config = AppConfig(models={"gemini_default": "gemini-2.0-flash"})
    registry = ProviderRegistry(config)

    assert registry.get("gemini").name == "gemini-2.0-flash"
    assert registry.get("openai").name == "gpt-4o"


def test_registry_aliases_and_unknown_provider() -> None:
    registry = ProviderRegistry(AppConfig())

    assert registry.get("claude") is registry.get("anthropic")
    assert registry.supported() == ["openai", "anthropic", "google", "ollama", "openrouter"]
    with pytest.raises(UnknownProviderError, match="Unsupported LLM provider: mistral"):
        registry.get("mistral")
    with pytest.raises(ValueError):
        registry.register("openai", OpenAIAdapter)


def test_ollama_lists_models_and_checks_readiness() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/tags"
        return httpx.Response(200, json={"models": [{"name": "llama3"}, {"name": "mistral"}]})

    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    adapter = OllamaAdapter(AppConfig(), client=_FakeChatModel(), http_client=http_client)

    assert [model["name"] for model in adapter.list_models()] == ["llama3", "mistral"]
    assert adapter.is_ready()
    assert adapter.initialize()


def test_ollama_unreachable_server() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    adapter = OllamaAdapter(AppConfig(), client=_FakeChatModel(), http_client=http_client)

    assert adapter.list_models() == []
    assert not adapter.is_ready()
    assert not adapter.initialize()


def test_message_text_flattens_content_blocks() -> None:
    result = AIMessage(content=[{"type": "text", "text": "Hello "}, "world"])

    assert message_text(result) == "Hello world"


def test_ollama_readiness_ignores_latest_tag() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"models": [{"name": "llama3:latest"}]})

    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    adapter = OllamaAdapter(AppConfig(), client=_FakeChatModel(), http_client=http_client)

    assert adapter.is_ready()

    adapter.close()
    assert http_client.is_closed


def test_registry_close_releases_adapters() -> None:
    http_client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    registry = ProviderRegistry(
        AppConfig(),
        factories={"ollama": lambda cfg: OllamaAdapter(cfg, http_client=http_client)},
    )
    first = registry.get("ollama")

    registry.close()

    assert http_client.is_closed
    assert registry.get("ollama") is not first
