from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

from pagechat.core.chat import (
    DEFAULT_IMAGE_PROMPT,
    ChatHistoryStore,
    ChatSession,
    Role,
    TurnState,
)
from pagechat.core.chat.providers import (
    ChatTransportError,
    StreamingChatProvider,
    UnavailableProvider,
)
from pagechat.core.storage import BlobStore


class _ScriptedProvider(StreamingChatProvider):
    """Yields the queued chunk lists in order, raising where an exception is queued."""

    def __init__(self, *scripts: List[Any]) -> None:
        self.scripts = list(scripts)
        self.calls: List[Dict[str, Any]] = []

    def get_default_model(self) -> str:
        return "fake-model"

    async def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ):
        self.calls.append({"messages": messages, "model": model, "max_tokens": max_tokens})
        script = self.scripts.pop(0) if self.scripts else ["ok"]
        for item in script:
            if isinstance(item, BaseException):
                raise item
            yield item


def _session(tmp_path: Path, provider: StreamingChatProvider, **kwargs) -> ChatSession:
    return ChatSession(provider, ChatHistoryStore(BlobStore(tmp_path)), **kwargs)


def test_streamed_reply_accumulates_and_persists(tmp_path: Path) -> None:
    provider = _ScriptedProvider(["Hel", "lo ", "world"])
    session = _session(tmp_path, provider)
    snapshots = []
    session.add_observer(
        lambda s: snapshots.append((s.state, s.messages[-1].content if s.messages else None))
    )

    reply = asyncio.run(session.send("Say hello"))

    assert reply.content == "Hello world"
    assert reply.is_streaming is False
    assert session.state is TurnState.COMPLETED
    assert session.is_loading is False
    assert snapshots[0] == (TurnState.AWAITING_FIRST_TOKEN, "")
    assert (TurnState.STREAMING, "Hel") in snapshots
    assert (TurnState.STREAMING, "Hello ") in snapshots
    assert [m.role for m in session.messages] == [Role.USER, Role.ASSISTANT]

    reloaded = _session(tmp_path, _ScriptedProvider())
    reloaded.restore()
    assert [m.content for m in reloaded.messages] == ["Say hello", "Hello world"]


def test_empty_prompt_without_image_is_ignored(tmp_path: Path) -> None:
    provider = _ScriptedProvider()
    session = _session(tmp_path, provider)
    assert asyncio.run(session.send("   ")) is None
    assert session.messages == []
    assert provider.calls == []


def test_image_only_prompt_uses_default_text_and_vision_model(tmp_path: Path) -> None:
    provider = _ScriptedProvider(["a cat"])
    session = _session(tmp_path, provider, model="text-model", vision_model="vision-model")

    asyncio.run(session.send("", b"\x89PNG"))

    call = provider.calls[0]
    assert call["model"] == "vision-model"
    user_wire = call["messages"][-1]
    assert user_wire["content"][0] == {"type": "text", "text": DEFAULT_IMAGE_PROMPT}
    assert user_wire["content"][1]["image_url"]["url"].startswith("data:image/png;base64,")


def test_history_window_limits_context(tmp_path: Path) -> None:
    provider = _ScriptedProvider(*[[f"answer {i}"] for i in range(13)])
    session = _session(tmp_path, provider, history_window=10)

    async def _run() -> None:
        for i in range(13):
            await session.send(f"question {i}")

    asyncio.run(_run())

    assert len(provider.calls[0]["messages"]) == 1
    last_call = provider.calls[-1]["messages"]
    assert len(last_call) == 11
    assert last_call[0] == {"role": "user", "content": "question 7"}
    assert last_call[-1] == {"role": "user", "content": "question 12"}
    assert len(session.messages) == 26


def test_failed_stream_keeps_partial_turn_as_error(tmp_path: Path) -> None:
    provider = _ScriptedProvider(
        ["partial", ChatTransportError("500 - upstream exploded")],
        ["recovered"],
    )
    session = _session(tmp_path, provider)

    failed = asyncio.run(session.send("first"))
    assert failed.content == "Error: 500 - upstream exploded"
    assert session.state is TurnState.FAILED
    assert session.is_loading is False

    ok = asyncio.run(session.send("second"))
    assert ok.content == "recovered"
    # The failed turn stays in context for the next request.
    assert provider.calls[1]["messages"][1] == {
        "role": "assistant",
        "content": "Error: 500 - upstream exploded",
    }


def test_clear_erases_memory_and_disk(tmp_path: Path) -> None:
    session = _session(tmp_path, _ScriptedProvider(["one"]))
    asyncio.run(session.send("hello"))
    session.clear()
    assert session.messages == []
    assert session.state is TurnState.IDLE

    reloaded = _session(tmp_path, _ScriptedProvider())
    assert reloaded.restore() == []


def test_clear_mid_stream_drops_late_chunks(tmp_path: Path) -> None:
    class _ClearingProvider(_ScriptedProvider):
        session: Optional[ChatSession] = None

        async def stream_chat(self, messages, *, model=None, max_tokens=None):
            yield "first"
            self.session.clear()
            yield "late"
            yield "later"

    provider = _ClearingProvider()
    session = _session(tmp_path, provider)
    provider.session = session

    reply = asyncio.run(session.send("question"))

    assert reply.content == "first"
    assert session.messages == []
    assert session.state is TurnState.IDLE
    assert _session(tmp_path, _ScriptedProvider()).restore() == []


def test_unavailable_provider_surfaces_as_error_turn(tmp_path: Path) -> None:
    session = _session(tmp_path, UnavailableProvider("openrouter requires an API key."))
    reply = asyncio.run(session.send("hello"))
    assert reply.content == "Error: openrouter requires an API key."
    assert session.state is TurnState.FAILED


def _image_parts(wire_messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        part
        for message in wire_messages
        if isinstance(message["content"], list)
        for part in message["content"]
        if part["type"] == "image_url"
    ]


def test_images_are_reattached_while_inside_the_window(tmp_path: Path) -> None:
    provider = _ScriptedProvider(*[[f"answer {i}"] for i in range(13)])
    session = _session(tmp_path, provider, history_window=10)
    images = {0: b"\x89PNG-first", 9: b"\x89PNG-ninth"}

    async def _run() -> None:
        for i in range(13):
            await session.send(f"question {i}", images.get(i))

    asyncio.run(_run())

    # Turn 0 is still the oldest message in the window of the sixth call.
    sixth = provider.calls[5]["messages"]
    assert isinstance(sixth[0]["content"], list)
    assert sixth[0]["content"][0] == {"type": "text", "text": "question 0"}
    assert sixth[0]["content"][1]["type"] == "image_url"

    # Turn 0 has left the window of the seventh call along with its image.
    assert _image_parts(provider.calls[6]["messages"]) == []

    last = provider.calls[-1]["messages"]
    ninth = [m for m in last if m["role"] == "user" and isinstance(m["content"], list)]
    assert len(ninth) == 1
    assert ninth[0]["content"][0]["text"] == "question 9"
    assert len(_image_parts(last)) == 1


def test_only_the_placeholder_streams_while_a_turn_is_in_flight(tmp_path: Path) -> None:
    provider = _ScriptedProvider(["one"], ["two ", "three"])
    session = _session(tmp_path, provider)
    asyncio.run(session.send("first"))
    flags = []
    session.add_observer(lambda s: flags.append([m.is_streaming for m in s.messages]))

    asyncio.run(session.send("second"))

    in_flight = flags[:-1]
    assert in_flight
    for snapshot in in_flight:
        assert snapshot == [False, False, False, True]
    assert flags[-1] == [False, False, False, False]


def test_failed_turn_leaves_a_single_settled_assistant_message(tmp_path: Path) -> None:
    provider = _ScriptedProvider(["par", "tial", ChatTransportError("connection reset")])
    session = _session(tmp_path, provider)

    asyncio.run(session.send("hello"))

    assistants = [m for m in session.messages if m.role is Role.ASSISTANT]
    assert len(assistants) == 1
    assert assistants[0].is_streaming is False
    assert assistants[0].content == "Error: connection reset"
    assert [m.content for m in ChatHistoryStore(BlobStore(tmp_path)).load()] == [
        "hello",
        "Error: connection reset",
    ]


def test_stream_close_failure_does_not_undo_a_finished_reply(tmp_path: Path) -> None:
    class _BrokenCloseStream:
        def __init__(self) -> None:
            self.chunks = ["all ", "done"]

        def __aiter__(self):
            return self

        async def __anext__(self) -> str:
            if not self.chunks:
                raise StopAsyncIteration
            return self.chunks.pop(0)

        async def aclose(self) -> None:
            raise RuntimeError("socket already gone")

    class _BrokenCloseProvider(StreamingChatProvider):
        def get_default_model(self) -> str:
            return "fake-model"

        def stream_chat(self, messages, *, model=None, max_tokens=None):
            return _BrokenCloseStream()

    session = _session(tmp_path, _BrokenCloseProvider())

    reply = asyncio.run(session.send("finish up"))

    assert reply.content == "all done"
    assert session.state is TurnState.COMPLETED
    assert session.is_loading is False
    assert [m.content for m in ChatHistoryStore(BlobStore(tmp_path)).load()] == [
        "finish up",
        "all done",
    ]
