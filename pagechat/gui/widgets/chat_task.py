from __future__ import annotations

import asyncio
from typing import Optional

from qtpy import QtCore
from qtpy.QtCore import QMetaObject, QRunnable

from pagechat.core.chat import ChatSession
from pagechat.utils.logger import logger


class StreamingChatTask(QRunnable):
    """Run one :meth:`ChatSession.send` on a pool thread.

    Every session update is forwarded to the widget's ``refresh_chat`` slot
    and the end of the turn to ``chat_turn_finished``, both queued onto the
    GUI thread.
    """

    def __init__(
        self,
        session: ChatSession,
        prompt: str,
        image_bytes: Optional[bytes] = None,
        widget=None,
    ) -> None:
        super().__init__()
        self.session = session
        self.prompt = prompt
        self.image_bytes = image_bytes
        self.widget = widget

    def run(self) -> None:
        remove = self.session.add_observer(lambda _session: self._emit_refresh())
        ok = True
        try:
            reply = asyncio.run(self.session.send(self.prompt, self.image_bytes))
            ok = reply is not None
        except Exception as exc:
            ok = False
            logger.error("chat task crashed session=%s: %s", self.session.session_id, exc)
        finally:
            remove()
        self._emit_finished(ok)

    def _emit_refresh(self) -> None:
        if self.widget is None:
            return
        QMetaObject.invokeMethod(
            self.widget,
            "refresh_chat",
            QtCore.Qt.QueuedConnection,
        )

    def _emit_finished(self, ok: bool) -> None:
        if self.widget is None:
            return
        QMetaObject.invokeMethod(
            self.widget,
            "chat_turn_finished",
            QtCore.Qt.QueuedConnection,
            QtCore.Q_ARG(bool, ok),
        )
