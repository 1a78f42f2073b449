from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from cast_studio.contracts import (
    DEFAULT_MODEL,
    GenerationOptions,
    ProxyConfig,
    load_proxy_config,
    proxy_config_from_env,
    save_proxy_config,
)


def test_defaults_report_missing_api_key() -> None:
    config = ProxyConfig()
    assert config.model == DEFAULT_MODEL
    assert config.missing_settings() == ["API key"]
    assert ProxyConfig(chat_url=" ", model="", api_key="k").missing_settings() == [
        "chat completion URL",
        "model name",
    ]


def test_field_validation_and_extra_fields_rejected() -> None:
    with pytest.raises(ValidationError):
        ProxyConfig(temperature=3.0)
    with pytest.raises(ValidationError):
        ProxyConfig(max_tokens=0)
    with pytest.raises(ValidationError):
        GenerationOptions(unknown=True)  # type: ignore[call-arg]


def test_resolve_merges_call_options_over_defaults() -> None:
    config = ProxyConfig(api_key="k", max_tokens=300, temperature=0.7)
    assert config.resolve(None) == (300, 0.7, False)
    assert config.resolve(GenerationOptions(temperature=0.2, stream=True)) == (300, 0.2, True)
    assert config.resolve(GenerationOptions(max_tokens=900)) == (900, 0.7, False)


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "config" / "proxy.json"
    assert load_proxy_config(path) == ProxyConfig()
    config = ProxyConfig(api_key="secret-key", model="my-model")
    save_proxy_config(path, config)
    assert json.loads(path.read_text(encoding="utf-8"))["api_key"] == "secret-key"
    loaded = load_proxy_config(path)
    assert loaded.api_key.get_secret_value() == "secret-key"
    assert loaded.model == "my-model"
    assert "secret-key" not in repr(loaded)


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CAST_STUDIO_PROXY_API_KEY", "env-key")
    monkeypatch.setenv("CAST_STUDIO_PROXY_MODEL", "env-model")
    monkeypatch.delenv("CAST_STUDIO_PROXY_URL", raising=False)
    config = proxy_config_from_env(ProxyConfig(temperature=0.5))
    assert config.api_key.get_secret_value() == "env-key"
    assert config.model == "env-model"
    assert config.temperature == 0.5
