"""Model client abstractions."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Protocol

import requests

TRANSIENT_STATUSES = {408, 409, 429, 500, 502, 503, 504, 520, 522, 523, 524}


class ChatClient(Protocol):
    """Minimal protocol for chat-completions backends."""

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None,
        max_tokens: int | None,
    ) -> str:
        ...


def _coerce_text(value: Any) -> str:
    """Normalize provider-specific message content shapes into text."""

    if value is None:
        return ""

    if isinstance(value, str):
        return value

    if isinstance(value, list):
        chunks: list[str] = []
        for item in value:
            if isinstance(item, str):
                chunks.append(item)
                continue
            if isinstance(item, dict):
                text = item.get("text") or item.get("content")
                if isinstance(text, str):
                    chunks.append(text)
        return "\n".join(chunks)

    return str(value)


def _error_message(response: Any) -> str:
    """Best-effort error text; `error` may be an object, a bare string or absent."""

    try:
        body = response.json()
    except ValueError:
        body = None

    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        err = err.get("message")
    if err:
        return str(err)
    return response.text[:300]


@dataclass
class OpenAICompatChatClient:
    """Client for OpenAI-compatible chat completion APIs.

    Generation failures are not retried unless `max_retries` is raised; a
    failed request is a hard error for the caller.
    """

    base_url: str
    model: str
    api_key: str | None = None
    timeout_sec: int | None = 600
    extra_body: dict[str, Any] = field(default_factory=dict)
    max_retries: int = 0

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        if not self.api_key:
            raise RuntimeError("Missing OPENAI_API_KEY")

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        payload.update(self.extra_body)

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                response = requests.post(
                    f"{self.base_url.rstrip('/')}/chat/completions",
                    json=payload,
                    headers=headers,
                    timeout=self.timeout_sec,
                )
            except requests.RequestException as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(0.5 * (attempt + 1))
                    continue
                raise RuntimeError(f"Model request failed: {exc}") from exc

            if response.status_code in TRANSIENT_STATUSES and attempt < self.max_retries:
                last_error = RuntimeError(
                    f"Transient model backend status {response.status_code}: {response.text[:200]}"
                )
                time.sleep(0.7 * (attempt + 1))
                continue

            if response.status_code >= 400:
                raise RuntimeError(
                    f"Model request failed ({response.status_code}): {_error_message(response)}"
                )

            try:
                data = response.json()
            except ValueError as exc:
                raise RuntimeError(f"Model response is not JSON: {response.text[:200]}") from exc

            choices = data.get("choices") if isinstance(data, dict) else None
            if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
                last_error = RuntimeError("Model response missing choices")
                break

            message = choices[0].get("message")
            if not isinstance(message, dict):
                message = {}
            content = _coerce_text(message.get("content")).strip()
            if content:
                return content

            last_error = RuntimeError("Model response had empty content")
            break

        raise RuntimeError(str(last_error or "Model generation failed"))
