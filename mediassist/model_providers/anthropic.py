"""Anthropic Messages API provider.

Talks to ``POST {base_url}/messages`` with httpx. Only text content blocks
from the response are used.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .base import ModelError, ModelProvider

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(ModelProvider):
    """ModelProvider backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.anthropic.com/v1",
        temperature: float = 0.4,
        max_tokens: int = 1024,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout_seconds
        self._transport = transport

    @staticmethod
    def _extract_text(payload: dict[str, Any]) -> str:
        content = payload.get("content")
        if not isinstance(content, list):
            return ""
        parts: list[str] = []
        for item in content:
            if not isinstance(item, dict) or item.get("type") != "text":
                continue
            text = item.get("text")
            if isinstance(text, str):
                parts.append(text)
        return "".join(parts)

    async def complete(self, system: str, messages: list[dict[str, str]]) -> str:
        body = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "system": system,
            "messages": messages,
        }
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport,
            ) as client:
                resp = await client.post(
                    f"{self._base_url}/messages", headers=headers, json=body,
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise ModelError(
                f"Anthropic API returned status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ModelError(f"Anthropic API request failed: {exc}") from exc
        except ValueError as exc:
            raise ModelError("Anthropic API returned invalid JSON") from exc

        text = self._extract_text(data)
        logger.debug(
            "Anthropic reply: %d chars, stop_reason=%s",
            len(text),
            data.get("stop_reason"),
        )
        return text
