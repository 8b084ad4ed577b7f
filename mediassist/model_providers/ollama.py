"""Local Ollama provider using the non-streaming ``/api/chat`` endpoint."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .base import ModelError, ModelProvider

logger = logging.getLogger(__name__)


class OllamaProvider(ModelProvider):
    """ModelProvider backed by a local Ollama server."""

    def __init__(
        self,
        model: str,
        base_url: str = "http://localhost:11434",
        temperature: float = 0.4,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._temperature = temperature
        self._timeout = timeout_seconds
        self._transport = transport

    async def complete(self, system: str, messages: list[dict[str, str]]) -> str:
        body = {
            "model": self._model,
            "messages": [{"role": "system", "content": system}, *messages],
            "stream": False,
            "options": {"temperature": self._temperature},
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport,
            ) as client:
                resp = await client.post(f"{self._base_url}/api/chat", json=body)
                resp.raise_for_status()
                data = resp.json()
        except httpx.ConnectError as exc:
            raise ModelError(f"Ollama is not reachable at {self._base_url}") from exc
        except httpx.HTTPStatusError as exc:
            raise ModelError(
                f"Ollama returned status {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ModelError(f"Ollama request failed: {exc}") from exc
        except ValueError as exc:
            raise ModelError("Ollama returned invalid JSON") from exc

        message = data.get("message") or {}
        content = message.get("content")
        if not isinstance(content, str):
            raise ModelError("Ollama response has no message content")
        return content
