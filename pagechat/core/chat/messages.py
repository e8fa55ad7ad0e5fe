from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from pagechat.utils.logger import logger

SCHEMA_VERSION = 1
ENVELOPE_KIND = "chat_history"
IMAGE_MIME = "image/png"

ContentPart = Dict[str, Any]
WireMessage = Dict[str, Union[str, List[ContentPart]]]


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ChatMessage:
    role: Role
    content: str
    image_bytes: Optional[bytes] = field(default=None, repr=False)
    is_streaming: bool = False

    @property
    def image_base64(self) -> Optional[str]:
        if not self.image_bytes:
            return None
        return base64.b64encode(self.image_bytes).decode("ascii")

    def to_wire(self) -> WireMessage:
        """Encode for the completion endpoint (two-part block when an image is attached)."""
        encoded = self.image_base64
        if encoded is None:
            return {"role": self.role.value, "content": self.content}
        return {
            "role": self.role.value,
            "content": [
                {"type": "text", "text": self.content},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{IMAGE_MIME};base64,{encoded}"},
                },
            ],
        }

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        encoded = self.image_base64
        if encoded is not None:
            payload["imageData"] = encoded
        return payload

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ChatMessage"]:
        if not isinstance(data, dict):
            return None
        try:
            role = Role(str(data.get("role") or "").strip().lower())
        except ValueError:
            return None
        content = data.get("content")
        if not isinstance(content, str):
            return None
        image_bytes = None
        image_data = data.get("imageData")
        if image_data:
            try:
                image_bytes = base64.b64decode(str(image_data), validate=True)
            except (binascii.Error, ValueError):
                logger.warning("Dropping undecodable image attached to a stored message")
        # Anything that was mid-stream when it was written is final now.
        return cls(role=role, content=content, image_bytes=image_bytes, is_streaming=False)


def committed(messages: Iterable[ChatMessage]) -> List[ChatMessage]:
    return [m for m in messages if not m.is_streaming]


def window(messages: Sequence[ChatMessage], size: int) -> List[ChatMessage]:
    """Most recent ``size`` committed messages; older context is dropped."""
    settled = committed(messages)
    if size <= 0:
        return []
    return settled[-size:]


def dump_history(messages: Iterable[ChatMessage]) -> Dict[str, Any]:
    return {
        "version": SCHEMA_VERSION,
        "kind": ENVELOPE_KIND,
        "items": [m.to_dict() for m in committed(messages)],
    }


def load_history(payload: Any) -> List[ChatMessage]:
    if payload is None:
        return []
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        version = payload.get("version")
        if version != SCHEMA_VERSION:
            logger.warning("Unsupported chat history schema version %r", version)
            return []
        items = payload.get("items") or []
    else:
        logger.warning("Ignoring chat history payload of type %s", type(payload).__name__)
        return []

    messages: List[ChatMessage] = []
    for raw in items:
        message = ChatMessage.from_dict(raw)
        if message is None:
            logger.debug("Skipping malformed stored chat message: %r", raw)
            continue
        messages.append(message)
    return messages
