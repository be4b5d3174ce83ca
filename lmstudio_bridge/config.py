"""Configuration management for the LM Studio bridge."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .prompts import PromptSettings

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")


class EndpointConfig(BaseModel):
    """Server base URL and API paths."""
    base_url: str = "http://localhost:1234"
    chat_completions: str = "/v1/chat/completions"
    models: str = "/v1/models"


class SamplingConfig(BaseModel):
    """Default sampling parameters applied when a query leaves them unset."""
    max_tokens: int = Field(default=2048, gt=0)
    temperature: float = Field(default=0.7, ge=0.0)
    top_p: float = Field(default=0.9, gt=0.0, le=1.0)
    stream: bool = True


class HttpClientConfig(BaseModel):
    connect_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=120.0, gt=0)


class LMStudioSettings(BaseModel):
    """Canonical settings schema for talking to an LM Studio server."""
    endpoints: EndpointConfig = Field(default_factory=EndpointConfig)
    default_model: str = "ibm/granite-3.2-8b"
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    http_client: HttpClientConfig = Field(default_factory=HttpClientConfig)

    @property
    def base_url(self) -> str:
        return self.endpoints.base_url.rstrip("/")


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_fragments: bool = False


class QueryOptions(BaseModel):
    """Per-call overrides; ``None`` means use the configured default."""
    model: str | None = None
    system_prompt: str | None = None
    max_tokens: int | None = Field(default=None, gt=0)
    temperature: float | None = Field(default=None, ge=0.0)
    top_p: float | None = Field(default=None, gt=0.0, le=1.0)
    stream: bool | None = None


class Configuration:
    """Manages configuration and environment variables for the bridge."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for endpoint overrides
        self._config = self._load_yaml_config(config_path or DEFAULT_CONFIG_PATH)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    @staticmethod
    def _load_yaml_config(config_path: str) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(config_path) as file:
            config = yaml.safe_load(file) or {}
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary."""
        return self._config

    def get_lmstudio_settings(self) -> LMStudioSettings:
        """Get validated LM Studio settings with environment overrides applied.

        ``LMSTUDIO_BASE_URL`` and ``LMSTUDIO_MODEL`` take precedence over
        the YAML values.

        Raises:
            pydantic.ValidationError: If the ``lmstudio`` section is invalid.
        """
        raw = dict(self._config.get("lmstudio", {}) or {})
        endpoints = dict(raw.get("endpoints", {}) or {})

        if base_url := os.getenv("LMSTUDIO_BASE_URL"):
            endpoints["base_url"] = base_url
        if model := os.getenv("LMSTUDIO_MODEL"):
            raw["default_model"] = model

        raw["endpoints"] = endpoints
        return LMStudioSettings.model_validate(raw)

    def get_prompt_settings(self) -> PromptSettings:
        """Get prompt templates and UI strings."""
        return PromptSettings.model_validate(self._config.get("prompts", {}) or {})

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        return LoggingConfig.model_validate(self._config.get("logging", {}) or {})
