from __future__ import annotations

from typing import Iterable, List

from pagechat.core.storage import BlobStore

from .messages import ChatMessage, dump_history, load_history

CHAT_HISTORY_KEY = "chat_history"


class ChatHistoryStore:
    """Durable copy of the committed conversation for one viewer."""

    def __init__(self, blob_store: BlobStore, key: str = CHAT_HISTORY_KEY) -> None:
        self.blob_store = blob_store
        self.key = key

    def load(self) -> List[ChatMessage]:
        return load_history(self.blob_store.read(self.key))

    def save(self, messages: Iterable[ChatMessage]) -> bool:
        return self.blob_store.write(self.key, dump_history(messages))

    def erase(self) -> None:
        self.blob_store.delete(self.key)
