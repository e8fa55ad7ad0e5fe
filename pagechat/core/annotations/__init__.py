from .schema import (
    SCHEMA_VERSION,
    Annotation,
    AnnotationStatus,
    StatusFilter,
    dump_annotations,
    load_annotations,
)
from .store import AnnotationStore, annotations_key

__all__ = [
    "SCHEMA_VERSION",
    "Annotation",
    "AnnotationStatus",
    "AnnotationStore",
    "StatusFilter",
    "annotations_key",
    "dump_annotations",
    "load_annotations",
]
