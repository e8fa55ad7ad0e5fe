from __future__ import annotations

import os
from pathlib import Path

os.environ.setdefault("QT_QPA_PLATFORM", "minimal")

from pagechat.core.chat import ChatHistoryStore, ChatSession, TurnState  # noqa: E402
from pagechat.core.chat.providers import StreamingChatProvider  # noqa: E402
from pagechat.core.storage import BlobStore  # noqa: E402
from pagechat.gui.widgets.chat_task import StreamingChatTask  # noqa: E402


class _TwoChunkProvider(StreamingChatProvider):
    def get_default_model(self) -> str:
        return "fake"

    async def stream_chat(self, messages, *, model=None, max_tokens=None):
        yield "Hi "
        yield "there"


def test_task_runs_turn_and_detaches_observer(tmp_path: Path) -> None:
    session = ChatSession(_TwoChunkProvider(), ChatHistoryStore(BlobStore(tmp_path)))
    task = StreamingChatTask(session, "hello", widget=None)

    task.run()

    assert session.state is TurnState.COMPLETED
    assert session.messages[-1].content == "Hi there"
    assert session._observers == []
