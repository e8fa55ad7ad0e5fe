from __future__ import annotations

from typing import Dict, Tuple

from .types import Selection, SelectionKind

EXPLAIN = "explain"
SUMMARIZE = "summarize"
CALCULATE = "calculate"

# (equation, image/region, text) templates per action.
_TEMPLATES: Dict[str, Tuple[str, str, str]] = {
    EXPLAIN: (
        'Explain this equation step by step: "{content}"',
        "Explain what you see in this image. Be detailed.",
        'Explain this concept clearly: "{content}"',
    ),
    SUMMARIZE: (
        'Summarize in 2-3 sentences: "{content}"',
        "Summarize the key points in this image.",
        'Summarize in 2-3 sentences: "{content}"',
    ),
    CALCULATE: (
        'Solve this step by step: "{content}"',
        "Solve any math problems in this image. Show all steps.",
        'If this is a math problem, solve it: "{content}"',
    ),
}

ACTIONS = tuple(_TEMPLATES)


def build_action_prompt(action: str, selection: Selection) -> str:
    """Return the chat prompt the selection toolbar sends for ``action``."""
    key = str(action or "").strip().lower()
    if key not in _TEMPLATES:
        raise ValueError(f"Unknown selection action: {action!r}")
    equation, image, text = _TEMPLATES[key]
    if selection.kind is SelectionKind.EQUATION:
        template = equation
    elif selection.kind.is_spatial:
        template = image
    else:
        template = text
    return template.format(content=selection.text)
