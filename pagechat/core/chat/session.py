"""Multi-turn chat session that streams assistant replies.

A turn moves through ``IDLE -> AWAITING_FIRST_TOKEN -> STREAMING`` and ends
in ``COMPLETED`` or ``FAILED``. While a turn is in flight the last message is
an assistant placeholder with ``is_streaming=True`` that grows chunk by
chunk; observers are notified after every chunk.

Callers serialise :meth:`ChatSession.send` (the UI disables input while
``is_loading``); the session does not lock internally.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, List, Optional

from pagechat.utils.llm_settings import DEFAULT_HISTORY_WINDOW
from pagechat.utils.logger import logger

from .history import ChatHistoryStore
from .messages import ChatMessage, Role, committed, window
from .providers.base import StreamingChatProvider

DEFAULT_IMAGE_PROMPT = "Analyze this image and describe what you see."
ERROR_PREFIX = "Error: "

ChatObserver = Callable[["ChatSession"], None]


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_FIRST_TOKEN = "awaiting_first_token"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


def format_error(exc: BaseException) -> str:
    detail = str(exc).strip() or exc.__class__.__name__
    return f"{ERROR_PREFIX}{detail}"


class ChatSession:
    def __init__(
        self,
        provider: StreamingChatProvider,
        history_store: Optional[ChatHistoryStore] = None,
        *,
        history_window: int = DEFAULT_HISTORY_WINDOW,
        model: Optional[str] = None,
        vision_model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        session_id: str = "viewer",
        on_update: Optional[ChatObserver] = None,
    ) -> None:
        self.provider = provider
        self.history_store = history_store
        self.history_window = int(history_window)
        self.model = model
        self.vision_model = vision_model
        self.max_tokens = max_tokens
        self.session_id = str(session_id)
        self._messages: List[ChatMessage] = []
        self._state = TurnState.IDLE
        self._observers: List[ChatObserver] = []
        if on_update is not None:
            self._observers.append(on_update)
        # Bumped by clear(); turns started under an older generation are orphaned.
        self._generation = 0

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state in (TurnState.AWAITING_FIRST_TOKEN, TurnState.STREAMING)

    def add_observer(self, observer: ChatObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def _remove() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _remove

    def _notify(self) -> None:
        for observer in list(self._observers):
            observer(self)

    def restore(self) -> List[ChatMessage]:
        if self.history_store is None:
            return []
        self._messages = self.history_store.load()
        logger.info(
            "Restored %d chat message(s) for session=%s",
            len(self._messages),
            self.session_id,
        )
        self._notify()
        return self.messages

    def _persist(self) -> None:
        if self.history_store is None:
            return
        self.history_store.save(committed(self._messages))

    def clear(self) -> None:
        """Forget the conversation in memory and on disk.

        An in-flight stream is not cancelled; its remaining chunks are
        dropped and its turn is never persisted.
        """
        self._generation += 1
        self._messages = []
        self._state = TurnState.IDLE
        if self.history_store is not None:
            self.history_store.erase()
        self._notify()

    def _model_for(self, has_image: bool) -> Optional[str]:
        if has_image and self.vision_model:
            return self.vision_model
        return self.model

    async def send(
        self, prompt_text: Optional[str], image_bytes: Optional[bytes] = None
    ) -> Optional[ChatMessage]:
        """Run one chat turn and return its assistant message.

        Returns ``None`` when there is neither text nor an image to send.
        Transport and decode failures end up in the returned message's
        content; they are never raised.
        """
        text = (prompt_text or "").strip()
        if not text and not image_bytes:
            return None

        history = window(self._messages, self.history_window)
        user_message = ChatMessage(
            role=Role.USER,
            content=text or DEFAULT_IMAGE_PROMPT,
            image_bytes=image_bytes or None,
        )
        placeholder = ChatMessage(role=Role.ASSISTANT, content="", is_streaming=True)
        generation = self._generation
        self._messages.append(user_message)
        self._messages.append(placeholder)
        self._state = TurnState.AWAITING_FIRST_TOKEN
        self._notify()

        wire_messages = [m.to_wire() for m in history] + [user_message.to_wire()]
        model = self._model_for(user_message.image_bytes is not None)
        logger.info(
            "chat turn start session=%s model=%s history=%d prompt_chars=%d image=%s",
            self.session_id,
            model or self.provider.get_default_model(),
            len(history),
            len(user_message.content),
            user_message.image_bytes is not None,
        )

        failure: Optional[BaseException] = None
        stream = None
        try:
            stream = self.provider.stream_chat(
                wire_messages, model=model, max_tokens=self.max_tokens
            )
            async for chunk in stream:
                if generation != self._generation:
                    logger.info(
                        "chat session=%s cleared mid-stream; dropping remaining chunks",
                        self.session_id,
                    )
                    break
                placeholder.content += chunk
                self._state = TurnState.STREAMING
                self._notify()
        except Exception as exc:
            failure = exc
        finally:
            placeholder.is_streaming = False
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception as exc:
                    logger.warning(
                        "chat session=%s failed to close stream: %s", self.session_id, exc
                    )

        if generation != self._generation:
            return placeholder

        if failure is not None:
            logger.warning(
                "chat turn failed session=%s error=%s", self.session_id, failure
            )
            placeholder.content = format_error(failure)
            self._state = TurnState.FAILED
        else:
            logger.info(
                "chat turn stop session=%s status=ok content_chars=%d",
                self.session_id,
                len(placeholder.content),
            )
            self._state = TurnState.COMPLETED
        self._persist()
        self._notify()
        return placeholder
