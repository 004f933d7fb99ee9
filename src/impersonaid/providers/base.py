"""Generation adapter interface shared by every backend."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from impersonaid.config import AppConfig
from impersonaid.errors import ProviderError
from impersonaid.types import CapabilityDescriptor

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_TEXT = "You are a helpful assistant."
DEFAULT_REFERENCE_SYSTEM_TEXT = "You are a helpful assistant with web browsing capabilities."


class GenerationOptions(BaseModel):
    """Per-call overrides; unset fields fall back to the adapter defaults."""

    model: str | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)


def reference_prompt(url: str, text: str, embedded_content: str | None = None) -> str:
    """Wrap a request so the backend knows which document it is about."""

    if embedded_content is None:
        return f"Please visit and analyze the content at {url}. {text}"
    return (
        f"The following is the content from {url}:\n\n"
        f"{embedded_content}\n\n"
        f"Based on this content, {text}"
    )


class GenerationAdapter(ABC):
    """Uniform contract over heterogeneous language-model backends.

    Capabilities are fixed at construction so the delivery router can ask for
    them before any content is prepared. Adapters send text exactly as given:
    shortening content is the reducer's job alone.
    """

    provider = "base"
    display_name = "Base"
    default_capabilities = CapabilityDescriptor()
    reference_system_suffix = ""

    def __init__(
        self,
        config: AppConfig,
        *,
        capabilities: CapabilityDescriptor | None = None,
    ) -> None:
        self.config = config
        self.name = config.default_model(self.provider) or self.provider
        self.capabilities = capabilities or self._configured_capabilities(config)

    @abstractmethod
    def initialize(self) -> bool:
        """Prepare the backend client. Returns False when it cannot be used."""

    @abstractmethod
    def is_ready(self) -> bool:
        """Report whether the backend looks usable without calling it."""

    @abstractmethod
    def _complete(
        self, system_text: str, user_text: str, options: GenerationOptions
    ) -> str:
        """Send one system + user exchange and return the response text."""

    def generate(
        self,
        text: str,
        *,
        system_text: str | None = None,
        options: GenerationOptions | None = None,
    ) -> str:
        return self._complete(
            system_text or DEFAULT_SYSTEM_TEXT, text, options or GenerationOptions()
        )

    def generate_with_reference(
        self,
        url: str,
        text: str,
        *,
        system_text: str | None = None,
        embedded_content: str | None = None,
        options: GenerationOptions | None = None,
    ) -> str:
        if not self.capabilities.supports_direct_reference:
            raise ProviderError(
                f"Web browsing not supported by {self.display_name}",
                provider=self.provider,
            )
        if (
            self.capabilities.requires_embedded_content_despite_capability
            and embedded_content is None
        ):
            raise ProviderError(
                f"Document content is required for {self.display_name} "
                "when generating with a reference",
                provider=self.provider,
            )
        system = (system_text or DEFAULT_REFERENCE_SYSTEM_TEXT) + self.reference_system_suffix
        return self._complete(
            system,
            reference_prompt(url, text, embedded_content),
            options or GenerationOptions(),
        )

    def close(self) -> None:
        """Release any connections held by the adapter."""

    def describe(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.name,
            "supports_direct_reference": self.capabilities.supports_direct_reference,
            "requires_embedded_content": (
                self.capabilities.requires_embedded_content_despite_capability
            ),
        }

    def _configured_capabilities(self, config: AppConfig) -> CapabilityDescriptor:
        override = config.capabilities.get(self.provider)
        base = self.default_capabilities
        if override is None:
            return base
        return CapabilityDescriptor(
            supports_direct_reference=(
                base.supports_direct_reference
                if override.supports_direct_reference is None
                else override.supports_direct_reference
            ),
            requires_embedded_content_despite_capability=(
                base.requires_embedded_content_despite_capability
                if override.requires_embedded_content_despite_capability is None
                else override.requires_embedded_content_despite_capability
            ),
        )
