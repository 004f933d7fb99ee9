"""Configuration models and the `config.toml` loader."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from impersonaid.errors import ConfigError
from impersonaid.types import ReductionBudget

logger = logging.getLogger(__name__)

API_KEY_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}

DEFAULT_MODELS = {
    "openai": "gpt-4o",
    "anthropic": "claude-3-opus-20240229",
    "google": "gemini-1.5-pro",
    "ollama": "llama3",
    "openrouter": "openai/gpt-4o",
}

# `[models]` keys in config.toml, kept compatible with existing config files.
_MODEL_KEYS = {
    "openai": "openai_default",
    "anthropic": "anthropic_default",
    "google": "gemini_default",
    "ollama": "ollama_default",
    "openrouter": "openrouter_default",
}


class ReductionConfig(BaseModel):
    """Configures how oversized documents are shrunk before embedding."""

    max_chars: int = Field(default=8000, ge=1)
    aggressive_threshold_ratio: float = Field(default=1.5, gt=1.0)
    section_char_cap: int = Field(default=1000, ge=1)
    first_section_ratio: float = Field(default=0.3, gt=0.0, le=1.0)
    middle_sections_ratio: float = Field(default=0.5, gt=0.0, le=1.0)
    head_ratio: float = Field(default=0.6, ge=0.0, le=1.0)
    tail_ratio: float = Field(default=0.4, ge=0.0, le=1.0)

    def budget(self) -> ReductionBudget:
        return ReductionBudget(
            max_chars=self.max_chars,
            aggressive_threshold_ratio=self.aggressive_threshold_ratio,
        )


class CapabilityOverride(BaseModel):
    supports_direct_reference: bool | None = None
    requires_embedded_content_despite_capability: bool | None = None


class OllamaConfig(BaseModel):
    host: str = "http://localhost:11434"


class OutputConfig(BaseModel):
    default_format: str = "text"
    output_dir: Path = Field(default_factory=lambda: Path.cwd() / "output")


class PersonasConfig(BaseModel):
    personas_dir: Path = Field(default_factory=lambda: Path.cwd() / "personas")


class GenerationConfig(BaseModel):
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, ge=1)
    request_timeout_seconds: float = Field(default=120.0, gt=0.0)


class AppConfig(BaseModel):
    """Process configuration, passed explicitly to the components that need it."""

    api_keys: dict[str, str] = Field(default_factory=dict)
    models: dict[str, str] = Field(default_factory=dict)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    personas: PersonasConfig = Field(default_factory=PersonasConfig)
    reduction: ReductionConfig = Field(default_factory=ReductionConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    capabilities: dict[str, CapabilityOverride] = Field(default_factory=dict)

    def get_api_key(self, provider: str) -> str | None:
        env_var = API_KEY_ENV_VARS.get(provider)
        if env_var and os.getenv(env_var):
            return os.getenv(env_var)
        return self.api_keys.get(provider) or None

    def default_model(self, provider: str) -> str | None:
        key = _MODEL_KEYS.get(provider, f"{provider}_default")
        return self.models.get(key) or DEFAULT_MODELS.get(provider)


def load_config(path: str | Path | None = None, *, load_env: bool = True) -> AppConfig:
    """Load `config.toml` (default: current directory) and `.env`.

    A missing file yields the defaults. A file that cannot be parsed or
    validated raises `ConfigError`.
    """

    if load_env:
        load_dotenv()

    config_path = Path(path) if path is not None else Path.cwd() / "config.toml"
    if not config_path.exists():
        logger.warning("Config file not found at %s. Using default settings.", config_path)
        return AppConfig()

    try:
        raw: dict[str, Any] = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Error loading config from {config_path}: {exc}") from exc

    try:
        config = AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {config_path}: {exc}") from exc

    # Relative directories are resolved against the config file location.
    base = config_path.parent
    if not config.output.output_dir.is_absolute():
        config.output.output_dir = base / config.output.output_dir
    if not config.personas.personas_dir.is_absolute():
        config.personas.personas_dir = base / config.personas.personas_dir
    logger.debug("Loaded configuration from %s", config_path)
    return config
