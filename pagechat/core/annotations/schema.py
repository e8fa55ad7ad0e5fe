"""Persisted annotation records and their versioned on-disk envelope."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pagechat.core.selection.types import Rect
from pagechat.utils.logger import logger

SCHEMA_VERSION = 1
ENVELOPE_KIND = "annotations"


class AnnotationStatus(str, Enum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"
    PENDING = "pending"
    NOTE = "note"


class StatusFilter(str, Enum):
    ALL = "all"
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"
    PENDING = "pending"
    NOTE = "note"

    def matches(self, status: AnnotationStatus) -> bool:
        return self is StatusFilter.ALL or self.value == status.value


# Statuses written by the first release of the selection toolbar.
_LEGACY_STATUSES = {
    "correct": AnnotationStatus.COMPLETE,
    "wrong": AnnotationStatus.INCOMPLETE,
    "review": AnnotationStatus.NOTE,
}


def parse_status(value: Any) -> AnnotationStatus:
    if isinstance(value, AnnotationStatus):
        return value
    text = str(value or "").strip().lower()
    if text in _LEGACY_STATUSES:
        return _LEGACY_STATUSES[text]
    return AnnotationStatus(text)


def new_annotation_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Annotation:
    page_number: int
    rect: Rect
    status: AnnotationStatus
    source_text: str = ""
    note: Optional[str] = None
    id: str = field(default_factory=new_annotation_id)
    created_at: float = field(default_factory=time.time)
    capture_scale: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pageNumber": self.page_number,
            "rect": self.rect.to_dict(),
            "status": self.status.value,
            "note": self.note,
            "sourceText": self.source_text,
            "createdAt": self.created_at,
            "captureScale": self.capture_scale,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Annotation"]:
        """Build an annotation from a stored record, or ``None`` if unusable.

        Records written before rects were tracked (no ``rect`` key) and
        records with unknown statuses are rejected rather than guessed at.
        """
        if not isinstance(data, dict):
            return None
        rect = Rect.from_dict(data.get("rect") or data.get("bounds"))
        if rect is None:
            return None
        try:
            status = parse_status(data.get("status"))
            page = int(data.get("pageNumber", data.get("page_number")))
        except (TypeError, ValueError):
            return None
        note = data.get("note")
        created = data.get("createdAt", data.get("created_at"))
        try:
            created_at = float(created) if created is not None else time.time()
        except (TypeError, ValueError):
            created_at = time.time()
        # The first release stored epoch milliseconds.
        if created_at > 1e11:
            created_at = created_at / 1000.0
        try:
            capture_scale = float(data.get("captureScale") or 1.0)
        except (TypeError, ValueError):
            capture_scale = 1.0
        return cls(
            id=str(data.get("id") or new_annotation_id()),
            page_number=page,
            rect=rect,
            status=status,
            note=str(note) if note is not None else None,
            source_text=str(data.get("sourceText", data.get("content")) or ""),
            created_at=created_at,
            capture_scale=capture_scale,
        )


def dump_annotations(annotations: List[Annotation]) -> Dict[str, Any]:
    return {
        "version": SCHEMA_VERSION,
        "kind": ENVELOPE_KIND,
        "items": [item.to_dict() for item in annotations],
    }


def load_annotations(payload: Any) -> List[Annotation]:
    """Decode a stored payload, migrating the unversioned list shape."""
    if payload is None:
        return []
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        version = payload.get("version")
        if version != SCHEMA_VERSION:
            logger.warning("Unsupported annotation schema version %r", version)
            return []
        items = payload.get("items") or []
    else:
        logger.warning("Ignoring annotation payload of type %s", type(payload).__name__)
        return []

    annotations: List[Annotation] = []
    dropped = 0
    for raw in items:
        annotation = Annotation.from_dict(raw)
        if annotation is None:
            dropped += 1
            continue
        annotations.append(annotation)
    if dropped:
        logger.info("Discarded %d stored annotation(s) without a usable rect", dropped)
    return annotations
