from .registry import (
    DOCUMENT_STATUSES,
    DocumentNotFoundError,
    DocumentRecord,
    DocumentRegistry,
)

__all__ = [
    "DOCUMENT_STATUSES",
    "DocumentNotFoundError",
    "DocumentRecord",
    "DocumentRegistry",
]
