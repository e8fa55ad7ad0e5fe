"""JSON-file document registry.

Metadata for every document lives in one ``documents.json`` index next to a
``files/`` directory holding the raw bytes. Deleting a document also erases
its annotation collection.
"""

from __future__ import annotations

import json
import os
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from pagechat.core.annotations.store import AnnotationStore
from pagechat.core.storage import BlobStore
from pagechat.utils.logger import logger
from pagechat.utils.state_paths import state_dir

DOCUMENT_STATUSES = ("none", "complete", "incomplete", "ongoing")


class DocumentNotFoundError(KeyError):
    """Raised when a document id is not present in the registry."""


@dataclass
class DocumentRecord:
    id: int
    name: str
    status: str = "none"
    uploaded_at: float = 0.0
    updated_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DocumentRegistry:
    INDEX_NAME = "documents.json"

    def __init__(
        self,
        root: Optional[Path] = None,
        *,
        blob_store: Optional[BlobStore] = None,
    ) -> None:
        self.root = Path(root) if root is not None else state_dir("documents")
        self.files_dir = self.root / "files"
        self.index_path = self.root / self.INDEX_NAME
        self.blob_store = blob_store

    # ------------------------------------------------------------------ index io
    def _load(self) -> Dict[str, Any]:
        empty: Dict[str, Any] = {"documents": [], "next_id": 1}
        if not self.index_path.exists():
            return empty
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("Failed to load document index %s: %s", self.index_path, exc)
            return empty
        if not isinstance(data, dict):
            return empty
        data.setdefault("documents", [])
        data.setdefault("next_id", 1)
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        tmp = self.index_path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(str(tmp), str(self.index_path))

    def _file_path(self, document_id: int) -> Path:
        return self.files_dir / f"{int(document_id)}.pdf"

    @staticmethod
    def _record(raw: Dict[str, Any]) -> DocumentRecord:
        return DocumentRecord(
            id=int(raw["id"]),
            name=str(raw.get("name") or ""),
            status=str(raw.get("status") or "none"),
            uploaded_at=float(raw.get("uploaded_at") or 0.0),
            updated_at=float(raw.get("updated_at") or 0.0),
        )

    # --------------------------------------------------------------- operations
    def list(self) -> List[DocumentRecord]:
        return [self._record(raw) for raw in self._load()["documents"]]

    def create(self, name: str, raw_bytes: bytes) -> int:
        data = self._load()
        document_id = int(data["next_id"])
        data["next_id"] = document_id + 1
        now = time.time()
        record = DocumentRecord(
            id=document_id,
            name=str(name),
            uploaded_at=now,
            updated_at=now,
        )
        self.files_dir.mkdir(parents=True, exist_ok=True)
        self._file_path(document_id).write_bytes(bytes(raw_bytes))
        data["documents"].append(record.to_dict())
        self._save(data)
        logger.info("Registered document %s (%s, %d bytes)", document_id, name, len(raw_bytes))
        return document_id

    def get(self, document_id: int) -> DocumentRecord:
        for raw in self._load()["documents"]:
            if int(raw.get("id", -1)) == int(document_id):
                return self._record(raw)
        raise DocumentNotFoundError(document_id)

    def read_bytes(self, document_id: int) -> bytes:
        self.get(document_id)
        return self._file_path(document_id).read_bytes()

    def _update(self, document_id: int, **changes: Any) -> DocumentRecord:
        data = self._load()
        for raw in data["documents"]:
            if int(raw.get("id", -1)) == int(document_id):
                raw.update(changes)
                raw["updated_at"] = time.time()
                self._save(data)
                return self._record(raw)
        raise DocumentNotFoundError(document_id)

    def update_status(self, document_id: int, status: str) -> DocumentRecord:
        value = str(status or "").strip().lower()
        if value not in DOCUMENT_STATUSES:
            raise ValueError(
                f"Invalid document status {status!r}; expected one of {DOCUMENT_STATUSES}"
            )
        return self._update(document_id, status=value)

    def touch(self, document_id: int) -> DocumentRecord:
        return self._update(document_id)

    def delete(self, document_id: int) -> bool:
        data = self._load()
        remaining = [
            raw for raw in data["documents"] if int(raw.get("id", -1)) != int(document_id)
        ]
        if len(remaining) == len(data["documents"]):
            return False
        data["documents"] = remaining
        self._save(data)
        try:
            self._file_path(document_id).unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove file for document %s: %s", document_id, exc)
        if self.blob_store is not None:
            AnnotationStore(document_id, self.blob_store).purge()
        logger.info("Deleted document %s", document_id)
        return True
