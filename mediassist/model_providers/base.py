"""Abstract base class for chat model providers.

A provider turns a system instruction plus a message history into one
reply. ``ChatSession`` layers the conversation history on top so callers
only deal with text in, text out.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

log = logging.getLogger("mediassist.model_providers")

MAX_HISTORY = 30
TRIMMED_HISTORY = 20


class ModelError(Exception):
    """The model could not produce a reply (network, HTTP or payload error)."""


class ModelProvider(ABC):
    """Abstract chat model backend."""

    @abstractmethod
    async def complete(self, system: str, messages: list[dict[str, str]]) -> str:
        """Return the assistant's reply.

        Args:
            system: System instruction for the whole conversation.
            messages: Alternating ``{"role": "user"|"assistant", "content": ...}``
                entries, ending with the latest user message.

        Raises:
            ModelError: when no reply could be obtained.
        """

    def start_chat(self, system: str) -> "ChatSession":
        return ChatSession(self, system)


class ChatSession:
    """One live conversation with a provider."""

    def __init__(self, provider: ModelProvider, system: str) -> None:
        self._provider = provider
        self._system = system
        self._messages: list[dict[str, str]] = []

    @property
    def system(self) -> str:
        return self._system

    @property
    def messages(self) -> list[dict[str, str]]:
        return list(self._messages)

    async def send_message(self, text: str) -> str:
        """Send one user message and return the reply text.

        History only grows when the call succeeds, so a failed turn can be
        retried without leaving a dangling user message behind.
        """
        pending = self._messages + [{"role": "user", "content": text}]
        reply = await self._provider.complete(self._system, pending)

        self._messages = pending + [{"role": "assistant", "content": reply}]

        # Trim history to avoid context overflow
        if len(self._messages) > MAX_HISTORY:
            self._messages = self._messages[-TRIMMED_HISTORY:]
            log.debug("Chat history trimmed to %d messages", len(self._messages))

        return reply
