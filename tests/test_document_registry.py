from __future__ import annotations

from pathlib import Path

import pytest

from pagechat.core.annotations import AnnotationStatus, AnnotationStore, annotations_key
from pagechat.core.documents import DocumentNotFoundError, DocumentRegistry
from pagechat.core.selection import Rect, Selection, SelectionKind
from pagechat.core.storage import BlobStore


def test_create_list_and_read(tmp_path: Path) -> None:
    registry = DocumentRegistry(tmp_path / "docs")
    first = registry.create("paper.pdf", b"%PDF-1.4 one")
    second = registry.create("notes.pdf", b"%PDF-1.4 two")

    assert (first, second) == (1, 2)
    assert [d.name for d in registry.list()] == ["paper.pdf", "notes.pdf"]
    assert registry.get(first).status == "none"
    assert registry.read_bytes(second) == b"%PDF-1.4 two"


def test_update_status_validates(tmp_path: Path) -> None:
    registry = DocumentRegistry(tmp_path)
    doc_id = registry.create("a.pdf", b"x")
    assert registry.update_status(doc_id, "Ongoing").status == "ongoing"
    with pytest.raises(ValueError):
        registry.update_status(doc_id, "archived")
    with pytest.raises(DocumentNotFoundError):
        registry.update_status(99, "complete")


def test_ids_are_not_reused_after_delete(tmp_path: Path) -> None:
    registry = DocumentRegistry(tmp_path)
    doc_id = registry.create("a.pdf", b"x")
    assert registry.delete(doc_id) is True
    assert registry.delete(doc_id) is False
    assert registry.create("b.pdf", b"y") == doc_id + 1
    with pytest.raises(DocumentNotFoundError):
        registry.read_bytes(doc_id)


def test_delete_cascades_to_annotations(tmp_path: Path) -> None:
    blobs = BlobStore(tmp_path / "blobs")
    registry = DocumentRegistry(tmp_path / "docs", blob_store=blobs)
    doc_id = registry.create("a.pdf", b"x")

    store = AnnotationStore(doc_id, blobs)
    store.create(
        Selection(
            kind=SelectionKind.REGION,
            text="Region selected from Page 1",
            page_number=1,
            rect=Rect(0, 0, 20, 20),
        ),
        AnnotationStatus.NOTE,
    )
    assert blobs.exists(annotations_key(doc_id))

    registry.delete(doc_id)
    assert not blobs.exists(annotations_key(doc_id))
    assert not (tmp_path / "docs" / "files" / f"{doc_id}.pdf").exists()
