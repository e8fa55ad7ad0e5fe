"""Per-viewer state: current selection, annotations and the chat session.

One :class:`ViewerSession` is created when a document viewer opens and
closed when it goes away; everything that needs the selection, the
annotation store or the chat session gets this object passed in.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple, Union

from pagechat.core.annotations import Annotation, AnnotationStatus, AnnotationStore
from pagechat.core.chat import ChatHistoryStore, ChatMessage, ChatSession
from pagechat.core.chat.providers import (
    OpenAICompatStreamingProvider,
    StreamingChatProvider,
    UnavailableProvider,
    resolve_openai_compat,
)
from pagechat.core.selection import (
    CoordinateMapper,
    PageSurface,
    Selection,
    build_action_prompt,
)
from pagechat.core.selection.types import Point
from pagechat.core.storage import BlobStore
from pagechat.utils.llm_settings import LLMConfig, resolve_llm_config
from pagechat.utils.logger import logger

SelectionListener = Callable[[Optional[Selection]], None]


def provider_from_config(config: Optional[LLMConfig] = None) -> StreamingChatProvider:
    """Build the streaming provider, or a stand-in that reports why it can't."""
    try:
        config = config or resolve_llm_config()
        return OpenAICompatStreamingProvider(resolved=resolve_openai_compat(config))
    except ValueError as exc:
        logger.warning("Chat provider unavailable: %s", exc)
        return UnavailableProvider(str(exc))


def chat_session_from_config(
    blob_store: BlobStore,
    config: Optional[LLMConfig] = None,
    provider: Optional[StreamingChatProvider] = None,
) -> ChatSession:
    """The conversation over the shared `chat_history` blob.

    Only one of these should exist per blob at a time; viewers that come
    and go share it instead of building their own.
    """
    chat_kwargs = {}
    if config is not None:
        chat_kwargs = {
            "history_window": config.history_window,
            "model": config.model,
            "vision_model": config.vision_model,
            "max_tokens": config.max_tokens,
        }
    return ChatSession(
        provider or provider_from_config(config),
        ChatHistoryStore(blob_store),
        **chat_kwargs,
    )


class ViewerSession:
    def __init__(
        self,
        document_id: Union[str, int],
        *,
        blob_store: Optional[BlobStore] = None,
        provider: Optional[StreamingChatProvider] = None,
        config: Optional[LLMConfig] = None,
        chat: Optional[ChatSession] = None,
        on_annotation_created: Optional[Callable[[Annotation], None]] = None,
        on_selection_changed: Optional[SelectionListener] = None,
    ) -> None:
        self.document_id = str(document_id)
        self.blob_store = blob_store or BlobStore()
        self.mapper = CoordinateMapper(on_selection=self._set_selection)
        self.annotations = AnnotationStore(
            self.document_id,
            self.blob_store,
            on_created=on_annotation_created,
        )
        # A shared conversation is restored by whoever created it.
        self._owns_chat = chat is None
        self.chat = chat or chat_session_from_config(self.blob_store, config, provider)
        self._selection: Optional[Selection] = None
        self._selection_listeners: List[SelectionListener] = []
        if on_selection_changed is not None:
            self._selection_listeners.append(on_selection_changed)
        self._open = False

    # ---------------------------------------------------------------- lifecycle
    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> "ViewerSession":
        if not self._open:
            self.annotations.restore()
            if self._owns_chat:
                self.chat.restore()
            self._open = True
        return self

    def close(self) -> None:
        self._selection_listeners.clear()
        self._selection = None
        self._open = False

    def __enter__(self) -> "ViewerSession":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ---------------------------------------------------------------- selection
    @property
    def selection(self) -> Optional[Selection]:
        return self._selection

    def add_selection_listener(self, listener: SelectionListener) -> None:
        self._selection_listeners.append(listener)

    def _set_selection(self, selection: Optional[Selection]) -> None:
        self._selection = selection
        for listener in list(self._selection_listeners):
            listener(selection)

    def clear_selection(self) -> None:
        self._set_selection(None)

    def capture_region(
        self, surface: Optional[PageSurface], start: Point, end: Point
    ) -> Optional[Selection]:
        return self.mapper.capture_region(surface, start, end)

    def capture_page(self, surface: Optional[PageSurface]) -> Optional[Selection]:
        return self.mapper.capture_page(surface)

    def capture_text(
        self, text: Optional[str], page_number: Optional[int] = None
    ) -> Optional[Selection]:
        return self.mapper.capture_text(text, page_number)

    # -------------------------------------------------------------- annotations
    def annotate(
        self,
        status: Union[AnnotationStatus, str],
        note: Optional[str] = None,
    ) -> Optional[Annotation]:
        """Turn the current selection into an annotation (spatial selections only)."""
        selection = self._selection
        if selection is None:
            return None
        annotation = self.annotations.create(selection, status, note)
        if annotation is not None:
            self.clear_selection()
        return annotation

    # --------------------------------------------------------------------- chat
    def take_turn(
        self, prompt: str = "", action: Optional[str] = None
    ) -> Tuple[str, Optional[bytes]]:
        """Consume the current selection into ``(prompt, image_bytes)``.

        With ``action`` the prompt is built from the selection; the image of a
        spatial selection is attached either way. Refused while a reply is
        still streaming so the selection is not lost.
        """
        if self.chat.is_loading:
            raise RuntimeError("A chat reply is still streaming")
        selection = self._selection
        if action is not None:
            if selection is None:
                raise ValueError(f"No selection to {action}")
            prompt = build_action_prompt(action, selection)
        image = selection.image_bytes if selection is not None else None
        if selection is not None:
            self.clear_selection()
        return prompt, image

    async def send_selection(self, prompt: str) -> Optional[ChatMessage]:
        if self.chat.is_loading:
            return None
        prompt, image = self.take_turn(prompt)
        return await self.chat.send(prompt, image)

    async def ask(self, action: str) -> Optional[ChatMessage]:
        if self._selection is None or self.chat.is_loading:
            return None
        prompt, image = self.take_turn(action=action)
        return await self.chat.send(prompt, image)
