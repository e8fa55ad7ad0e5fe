from __future__ import annotations

from typing import Callable, List, Optional, Union

from pagechat.core.selection.types import Selection
from pagechat.core.storage import BlobStore
from pagechat.utils.logger import logger

from .schema import (
    Annotation,
    AnnotationStatus,
    StatusFilter,
    dump_annotations,
    load_annotations,
    parse_status,
)

AnnotationCallback = Callable[[Annotation], None]

# Kept short so the card still fits the annotation list.
SOURCE_TEXT_LIMIT = 100


def annotations_key(document_id: Union[str, int]) -> str:
    return f"annotations:{document_id}"


class AnnotationStore:
    """Ordered, page-scoped annotation records for one document.

    Every mutation rewrites the whole collection through the blob store.
    Failed writes are logged by the blob store and the in-memory state is
    kept, so the viewer stays usable when the disk is not.
    """

    def __init__(
        self,
        document_id: Union[str, int],
        blob_store: BlobStore,
        *,
        on_created: Optional[AnnotationCallback] = None,
    ) -> None:
        self.document_id = str(document_id)
        self.blob_store = blob_store
        self.key = annotations_key(self.document_id)
        self._records: List[Annotation] = []
        self._on_created = on_created

    def __len__(self) -> int:
        return len(self._records)

    def restore(self) -> List[Annotation]:
        self._records = load_annotations(self.blob_store.read(self.key))
        logger.info(
            "Restored %d annotation(s) for document %s",
            len(self._records),
            self.document_id,
        )
        return list(self._records)

    def _persist(self) -> bool:
        return self.blob_store.write(self.key, dump_annotations(self._records))

    def create(
        self,
        selection: Selection,
        status: Union[AnnotationStatus, str],
        note: Optional[str] = None,
    ) -> Optional[Annotation]:
        if selection is None or selection.rect is None:
            return None
        annotation = Annotation(
            page_number=int(selection.page_number),
            rect=selection.rect,
            status=parse_status(status),
            note=note,
            source_text=(selection.text or "")[:SOURCE_TEXT_LIMIT],
            capture_scale=selection.capture_scale,
        )
        self._records.append(annotation)
        self._persist()
        if self._on_created is not None:
            self._on_created(annotation)
        return annotation

    def get(self, annotation_id: str) -> Optional[Annotation]:
        for annotation in self._records:
            if annotation.id == annotation_id:
                return annotation
        return None

    def all(self) -> List[Annotation]:
        return list(self._records)

    def list(
        self,
        page_number: int,
        status_filter: Union[StatusFilter, str] = StatusFilter.ALL,
    ) -> List[Annotation]:
        flt = StatusFilter(status_filter)
        return [
            annotation
            for annotation in self._records
            if annotation.page_number == page_number and flt.matches(annotation.status)
        ]

    def count(self, page_number: Optional[int] = None) -> int:
        if page_number is None:
            return len(self._records)
        return sum(1 for a in self._records if a.page_number == page_number)

    def update_status(
        self, annotation_id: str, status: Union[AnnotationStatus, str]
    ) -> Optional[Annotation]:
        annotation = self.get(annotation_id)
        if annotation is None:
            return None
        annotation.status = parse_status(status)
        self._persist()
        return annotation

    def update_note(self, annotation_id: str, note: Optional[str]) -> Optional[Annotation]:
        annotation = self.get(annotation_id)
        if annotation is None:
            return None
        annotation.note = note
        self._persist()
        return annotation

    def delete(self, annotation_id: str) -> bool:
        remaining = [a for a in self._records if a.id != annotation_id]
        if len(remaining) == len(self._records):
            return False
        self._records = remaining
        self._persist()
        return True

    def purge(self) -> None:
        """Drop every record and the durable copy (document deletion)."""
        self._records = []
        self.blob_store.delete(self.key)
