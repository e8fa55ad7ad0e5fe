from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from PIL import Image

from pagechat.core.annotations import AnnotationStatus
from pagechat.core.chat.providers import StreamingChatProvider, UnavailableProvider
from pagechat.core.selection import PageSurface, SelectionKind
from pagechat.core.storage import BlobStore
from pagechat.core.chat import ChatHistoryStore, TurnState
from pagechat.core.viewer_session import (
    ViewerSession,
    chat_session_from_config,
    provider_from_config,
)
from pagechat.utils.llm_settings import LLMConfig


class _EchoProvider(StreamingChatProvider):
    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []

    def get_default_model(self) -> str:
        return "echo"

    async def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ):
        self.calls.append({"messages": messages, "model": model})
        yield "noted"


def _surface() -> PageSurface:
    return PageSurface(
        image=Image.new("RGB", (400, 600), (240, 240, 240)),
        page_number=2,
        display_width=200,
        display_height=300,
        render_scale=2.0,
    )


def _viewer(tmp_path: Path, **kwargs) -> ViewerSession:
    kwargs.setdefault("provider", _EchoProvider())
    return ViewerSession(9, blob_store=BlobStore(tmp_path), **kwargs).open()


def test_selection_is_tracked_and_cleared(tmp_path: Path) -> None:
    changes = []
    viewer = _viewer(tmp_path, on_selection_changed=changes.append)

    selection = viewer.capture_region(_surface(), (10, 10), (60, 80))
    assert viewer.selection is selection
    viewer.clear_selection()
    assert viewer.selection is None
    assert changes == [selection, None]


def test_annotate_consumes_spatial_selection(tmp_path: Path) -> None:
    created = []
    viewer = _viewer(tmp_path, on_annotation_created=created.append)

    viewer.capture_text("plain words", page_number=2)
    assert viewer.annotate(AnnotationStatus.NOTE) is None
    assert viewer.selection is not None

    viewer.capture_region(_surface(), (10, 10), (60, 80))
    annotation = viewer.annotate("incomplete", note="redo")
    assert annotation.page_number == 2
    assert annotation.capture_scale == 2.0
    assert created == [annotation]
    assert viewer.selection is None

    reopened = _viewer(tmp_path)
    assert [a.id for a in reopened.annotations.list(2)] == [annotation.id]


def test_ask_sends_action_prompt_with_region_image(tmp_path: Path) -> None:
    provider = _EchoProvider()
    viewer = _viewer(tmp_path, provider=provider)
    viewer.capture_region(_surface(), (10, 10), (60, 80))

    reply = asyncio.run(viewer.ask("explain"))

    assert reply.content == "noted"
    user = provider.calls[0]["messages"][-1]
    assert user["content"][0]["text"] == "Explain what you see in this image. Be detailed."
    assert user["content"][1]["type"] == "image_url"
    assert viewer.selection is None


def test_ask_without_selection_does_nothing(tmp_path: Path) -> None:
    provider = _EchoProvider()
    viewer = _viewer(tmp_path, provider=provider)
    assert asyncio.run(viewer.ask("summarize")) is None
    assert provider.calls == []


def test_take_turn_with_text_selection(tmp_path: Path) -> None:
    viewer = _viewer(tmp_path)
    selection = viewer.capture_text("E = mc²")
    assert selection.kind is SelectionKind.EQUATION

    prompt, image = viewer.take_turn(action="calculate")
    assert prompt == 'Solve this step by step: "E = mc²"'
    assert image is None
    with pytest.raises(ValueError):
        viewer.take_turn(action="calculate")


def test_chat_history_survives_reopen(tmp_path: Path) -> None:
    viewer = _viewer(tmp_path)
    asyncio.run(viewer.send_selection("What is on this page?"))
    viewer.close()

    reopened = _viewer(tmp_path)
    assert [m.content for m in reopened.chat.messages] == ["What is on this page?", "noted"]


def test_config_models_flow_into_chat(tmp_path: Path) -> None:
    provider = _EchoProvider()
    config = LLMConfig(provider="openrouter", model="text-m", vision_model="vision-m")
    viewer = _viewer(tmp_path, provider=provider, config=config)
    viewer.capture_page(_surface())
    asyncio.run(viewer.send_selection("describe"))
    assert provider.calls[0]["model"] == "vision-m"


def test_provider_from_config_without_key_is_unavailable() -> None:
    provider = provider_from_config(LLMConfig(provider="openrouter", model="openai/gpt-4o-mini"))
    assert isinstance(provider, UnavailableProvider)
    assert "API key" in provider.reason


def test_selection_is_kept_while_a_reply_streams(tmp_path: Path) -> None:
    provider = _EchoProvider()
    viewer = _viewer(tmp_path, provider=provider)
    selection = viewer.capture_region(_surface(), (10, 10), (60, 80))
    viewer.chat._state = TurnState.STREAMING

    with pytest.raises(RuntimeError):
        viewer.take_turn(action="explain")
    assert asyncio.run(viewer.ask("explain")) is None
    assert asyncio.run(viewer.send_selection("what is this?")) is None

    assert viewer.selection is selection
    assert provider.calls == []


class _GatedProvider(_EchoProvider):
    """Holds its first reply until ``gate`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate: Optional[asyncio.Event] = None

    async def stream_chat(self, messages, *, model=None, max_tokens=None):
        self.calls.append({"messages": messages, "model": model})
        await self.gate.wait()
        yield f"reply {len(self.calls)}"


def test_viewers_share_one_conversation(tmp_path: Path) -> None:
    provider = _GatedProvider()
    blob_store = BlobStore(tmp_path)
    chat = chat_session_from_config(blob_store, provider=provider)
    chat.restore()

    async def _run() -> None:
        provider.gate = asyncio.Event()
        first = ViewerSession(1, blob_store=blob_store, chat=chat).open()
        pending = asyncio.create_task(first.send_selection("first question"))
        await asyncio.sleep(0)
        assert chat.is_loading

        # Opening another document neither reloads nor forks the conversation.
        second = ViewerSession(2, blob_store=blob_store, chat=chat).open()
        assert second.chat is chat
        assert [m.content for m in chat.messages] == ["first question", ""]

        provider.gate.set()
        await pending
        await second.send_selection("second question")

    asyncio.run(_run())

    stored = ChatHistoryStore(BlobStore(tmp_path)).load()
    assert [m.content for m in stored] == [
        "first question",
        "reply 1",
        "second question",
        "reply 2",
    ]
