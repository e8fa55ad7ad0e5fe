from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional


class ChatProviderError(RuntimeError):
    """Base error for completion provider failures."""


class ChatTransportError(ChatProviderError):
    """The request failed, returned a non-success status or the stream broke."""


class StreamingChatProvider(ABC):
    """Provider interface used by :class:`~pagechat.core.chat.session.ChatSession`."""

    @abstractmethod
    def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Yield response text fragments in arrival order."""
        raise NotImplementedError

    @abstractmethod
    def get_default_model(self) -> str:
        raise NotImplementedError

    async def close(self) -> None:
        """Optional cleanup hook for long-lived async clients."""
        return None


class UnavailableProvider(StreamingChatProvider):
    """Stand-in used when no provider could be configured.

    Every turn fails with ``reason`` so the problem shows up in the
    conversation instead of at startup.
    """

    def __init__(self, reason: str) -> None:
        self.reason = str(reason)

    def get_default_model(self) -> str:
        return ""

    async def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        del messages, model, max_tokens
        raise ChatProviderError(self.reason)
        yield ""  # pragma: no cover - makes this an async generator
