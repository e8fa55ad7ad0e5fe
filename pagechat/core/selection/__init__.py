"""Pointer/text selection capture and classification."""

from .classifier import classify, looks_like_math
from .mapper import MIN_REGION_SIZE, CoordinateMapper, encode_png, extract_region
from .prompts import ACTIONS, CALCULATE, EXPLAIN, SUMMARIZE, build_action_prompt
from .types import PageSurface, Rect, Selection, SelectionKind

__all__ = [
    "ACTIONS",
    "CALCULATE",
    "EXPLAIN",
    "MIN_REGION_SIZE",
    "SUMMARIZE",
    "CoordinateMapper",
    "PageSurface",
    "Rect",
    "Selection",
    "SelectionKind",
    "build_action_prompt",
    "classify",
    "encode_png",
    "extract_region",
    "looks_like_math",
]
