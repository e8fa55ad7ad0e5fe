from __future__ import annotations

import pytest

from pagechat.core.selection import (
    CALCULATE,
    EXPLAIN,
    SUMMARIZE,
    Selection,
    SelectionKind,
    build_action_prompt,
)


def _selection(kind: SelectionKind, text: str = "x = 5") -> Selection:
    return Selection(kind=kind, text=text, page_number=1)


def test_equation_prompts_quote_the_selection() -> None:
    selection = _selection(SelectionKind.EQUATION)
    assert build_action_prompt(EXPLAIN, selection) == (
        'Explain this equation step by step: "x = 5"'
    )
    assert build_action_prompt(CALCULATE, selection) == 'Solve this step by step: "x = 5"'


def test_image_prompts_do_not_embed_text() -> None:
    region = _selection(SelectionKind.REGION, "Region selected from Page 2")
    prompt = build_action_prompt(SUMMARIZE, region)
    assert prompt == "Summarize the key points in this image."
    page = _selection(SelectionKind.IMAGE, "Full page 2 image")
    assert "image" in build_action_prompt(EXPLAIN, page)


def test_text_prompts() -> None:
    selection = _selection(SelectionKind.TEXT, "Osmosis")
    assert build_action_prompt("Explain", selection) == 'Explain this concept clearly: "Osmosis"'
    assert build_action_prompt(CALCULATE, selection).startswith("If this is a math problem")


def test_unknown_action_raises() -> None:
    with pytest.raises(ValueError):
        build_action_prompt("translate", _selection(SelectionKind.TEXT))
