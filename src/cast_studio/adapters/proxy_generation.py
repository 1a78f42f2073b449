"""OpenAI-compatible chat completion client used as an opaque text source."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from cast_studio.contracts import GenerationOptions, ProxyConfig
from cast_studio.core.errors import GenerationError

logger = logging.getLogger(__name__)


def _first_choice_text(payload: Any, *, delta: bool) -> str:
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    choice = choices[0]
    candidates: list[Any] = []
    if delta and isinstance(choice.get("delta"), dict):
        candidates.append(choice["delta"].get("content"))
    if isinstance(choice.get("message"), dict):
        candidates.append(choice["message"].get("content"))
    candidates.append(choice.get("text"))
    for candidate in candidates:
        if isinstance(candidate, str):
            return candidate
    return ""


def merge_stream_body(raw: str) -> str:
    """Concatenate content from ``data:`` server-sent event lines."""
    merged: list[str] = []
    for line in raw.splitlines():
        line = line.strip()
        if not line.startswith("data:"):
            continue
        data = line[len("data:") :].strip()
        if not data or data == "[DONE]":
            continue
        try:
            part = json.loads(data)
        except json.JSONDecodeError:
            merged.append(data)
            continue
        merged.append(_first_choice_text(part, delta=True))
    return "".join(merged)


class ProxyTextGenerator:
    """Posts one system + user prompt pair and returns the reply text."""

    def __init__(self, config: ProxyConfig, *, timeout: float = 120.0) -> None:
        self._config = config
        self._timeout = timeout

    @property
    def config(self) -> ProxyConfig:
        return self._config

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        options: GenerationOptions | None = None,
    ) -> str:
        missing = self._config.missing_settings()
        if missing:
            raise GenerationError(f"Generation is not configured: set the {', '.join(missing)}.")
        max_tokens, temperature, stream = self._config.resolve(options)
        body = {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": stream,
        }
        try:
            response = httpx.post(
                self._config.chat_url,
                json=body,
                headers={
                    "Authorization": f"Bearer {self._config.api_key.get_secret_value()}",
                    "Content-Type": "application/json",
                },
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise GenerationError(f"Request failed. {exc}") from exc

        if response.is_error:
            raise GenerationError(f"Request failed ({response.status_code}). {response.text}".strip())

        if stream:
            text = merge_stream_body(response.text)
        else:
            try:
                payload = response.json()
            except ValueError as exc:
                raise GenerationError("The model response was not valid JSON.") from exc
            text = _first_choice_text(payload, delta=False)

        clean = text.strip()
        if not clean:
            raise GenerationError("No text returned by the model.")
        logger.info(
            "generation.complete model=%s stream=%s chars=%s", self._config.model, stream, len(clean)
        )
        return clean
