"""Typed configuration contracts for the generation proxy."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

DEFAULT_CHAT_URL = "https://llm.chutes.ai/v1/chat/completions"
DEFAULT_MODEL = "deepseek-ai/DeepSeek-R1"
DEFAULT_CONTEXT_SIZE = 32000


class ContractModel(BaseModel):
    """Base model config used by all configuration contracts."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class GenerationOptions(ContractModel):
    """Per-call overrides passed to the text generator."""

    max_tokens: int | None = Field(default=None, ge=1, le=32000)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    stream: bool = False


class ProxyConfig(ContractModel):
    """OpenAI-compatible chat completion proxy settings."""

    chat_url: str = Field(default=DEFAULT_CHAT_URL, max_length=2000)
    api_key: SecretStr = SecretStr("")
    model: str = Field(default=DEFAULT_MODEL, max_length=300)
    max_tokens: int = Field(default=350, ge=1, le=32000)
    temperature: float = Field(default=0.9, ge=0.0, le=2.0)
    context_size: int = Field(default=DEFAULT_CONTEXT_SIZE, ge=2)

    @field_validator("chat_url", "model")
    @classmethod
    def _collapse(cls, value: str) -> str:
        return " ".join(value.split())

    def missing_settings(self) -> list[str]:
        """Return human-readable names of unset required settings."""
        missing: list[str] = []
        if not self.chat_url:
            missing.append("chat completion URL")
        if not self.api_key.get_secret_value().strip():
            missing.append("API key")
        if not self.model:
            missing.append("model name")
        return missing

    def resolve(self, options: GenerationOptions | None) -> tuple[int, float, bool]:
        """Merge call options over configured defaults."""
        if options is None:
            return self.max_tokens, self.temperature, False
        max_tokens = options.max_tokens if options.max_tokens is not None else self.max_tokens
        temperature = options.temperature if options.temperature is not None else self.temperature
        return max_tokens, temperature, options.stream


def _plain_payload(config: ProxyConfig) -> dict[str, Any]:
    payload = config.model_dump(mode="python")
    payload["api_key"] = config.api_key.get_secret_value()
    return payload


def save_proxy_config(path: Path, config: ProxyConfig) -> None:
    """Persist proxy settings as readable JSON, including the key."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(_plain_payload(config), indent=2) + "\n", encoding="utf-8")


def load_proxy_config(path: Path) -> ProxyConfig:
    """Load proxy settings from disk, falling back to defaults when absent."""
    if not path.exists():
        return ProxyConfig()
    return ProxyConfig.model_validate_json(path.read_text(encoding="utf-8"))


def proxy_config_from_env(base: ProxyConfig | None = None) -> ProxyConfig:
    """Apply CAST_STUDIO_PROXY_* environment overrides."""
    config = base or ProxyConfig()
    overrides: dict[str, Any] = {}
    for env_name, field_name in (
        ("CAST_STUDIO_PROXY_URL", "chat_url"),
        ("CAST_STUDIO_PROXY_API_KEY", "api_key"),
        ("CAST_STUDIO_PROXY_MODEL", "model"),
    ):
        value = os.environ.get(env_name, "").strip()
        if value:
            overrides[field_name] = value
    if not overrides:
        return config
    merged = _plain_payload(config)
    merged.update(overrides)
    return ProxyConfig.model_validate(merged)
