"""Heuristic text/equation classifier for selected text.

Not a parser: a selection counts as an equation when it contains a math
operator or Greek letter, a number followed by an exponent marker, or a
single-letter variable bound by an operator (``x = 5``).
"""

from __future__ import annotations

import re

from .types import SelectionKind

MATH_SYMBOLS = "∫∑∏√±×÷=<>≤≥≠∞∂∆∇αβγδεζηθλμπσφψω²³⁴ⁿ₀₁₂₃₄"

_EQUATION_RE = re.compile(
    r"[" + re.escape(MATH_SYMBOLS) + r"]"
    r"|[0-9]+[x²³]"
    r"|[a-z]\s*[=+\-*/^]\s*[a-z0-9]",
    re.IGNORECASE,
)


def looks_like_math(text: str) -> bool:
    return bool(_EQUATION_RE.search(text or ""))


def classify(text: str) -> SelectionKind:
    if looks_like_math(text):
        return SelectionKind.EQUATION
    return SelectionKind.TEXT
