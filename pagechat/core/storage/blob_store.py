"""Durable key-scoped JSON blobs.

Each key maps to one JSON file under the store directory. Writes go to a
temporary sibling first and are moved into place with ``os.replace`` so a
crash never leaves a half-written blob behind.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pagechat.utils.logger import logger
from pagechat.utils.state_paths import scoped_key, state_dir


class BlobStoreError(Exception):
    """Raised by strict blob reads when a stored payload cannot be decoded."""


class BlobStore:
    """Read and rewrite whole JSON documents addressed by a string key."""

    SUFFIX = ".json"

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = Path(root) if root is not None else state_dir("blobs")

    def path_for(self, key: str) -> Path:
        return self.root / f"{scoped_key(key)}{self.SUFFIX}"

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def read_strict(self, key: str) -> Optional[Any]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise BlobStoreError(f"Failed to read blob {key!r} from {path}: {exc}") from exc

    def read(self, key: str) -> Optional[Any]:
        """Return the decoded blob, or ``None`` when missing or unreadable."""
        try:
            return self.read_strict(key)
        except BlobStoreError as exc:
            logger.warning("%s", exc)
            return None

    def write(self, key: str, payload: Any) -> bool:
        """Rewrite the blob for ``key``; returns ``False`` when the write failed."""
        path = self.path_for(key)
        tmp = path.with_name(f"{path.name}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8"
            )
            os.replace(str(tmp), str(path))
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Failed to write blob %r to %s: %s", key, path, exc)
            try:
                if tmp.exists():
                    tmp.unlink()
            except OSError:
                pass
            return False
        return True

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            if path.exists():
                path.unlink()
                return True
        except OSError as exc:
            logger.warning("Failed to delete blob %r at %s: %s", key, path, exc)
        return False
