from .history import CHAT_HISTORY_KEY, ChatHistoryStore
from .messages import ChatMessage, Role, dump_history, load_history, window
from .session import DEFAULT_IMAGE_PROMPT, ChatSession, TurnState

__all__ = [
    "CHAT_HISTORY_KEY",
    "DEFAULT_IMAGE_PROMPT",
    "ChatHistoryStore",
    "ChatMessage",
    "ChatSession",
    "Role",
    "TurnState",
    "dump_history",
    "load_history",
    "window",
]
