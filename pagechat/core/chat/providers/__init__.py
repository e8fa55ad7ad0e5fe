"""Completion provider abstraction layer."""

from .base import (
    ChatProviderError,
    ChatTransportError,
    StreamingChatProvider,
    UnavailableProvider,
)
from .openai_compat import (
    OpenAICompatResolved,
    OpenAICompatStreamingProvider,
    parse_event_line,
    resolve_openai_compat,
)

__all__ = [
    "ChatProviderError",
    "ChatTransportError",
    "OpenAICompatResolved",
    "OpenAICompatStreamingProvider",
    "StreamingChatProvider",
    "UnavailableProvider",
    "parse_event_line",
    "resolve_openai_compat",
]
