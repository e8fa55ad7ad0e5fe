from __future__ import annotations

import hashlib
import os
from pathlib import Path

from pagechat.utils.logger import logger


def state_root() -> Path:
    """Return the per-user state directory (``$PAGECHAT_HOME`` or ``~/.pagechat``)."""
    root = str(os.environ.get("PAGECHAT_HOME") or "").strip()
    if root:
        return Path(root).expanduser()
    return Path.home() / ".pagechat"


def state_dir(name: str) -> Path:
    base = state_root() / name
    try:
        base.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.debug("Failed to create state dir %s: %s", base, exc)
    return base


def scoped_key(value: str) -> str:
    digest = hashlib.sha256(str(value).encode("utf-8")).hexdigest()
    return digest[:32]
