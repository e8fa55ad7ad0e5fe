from __future__ import annotations

import logging

from pagechat.utils.logger import ColoredFormatter


def _record(level: int = logging.WARNING) -> logging.LogRecord:
    return logging.LogRecord(
        name="pagechat",
        level=level,
        pathname=__file__,
        lineno=12,
        msg="saved %d annotation(s)",
        args=(3,),
        exc_info=None,
        func="create",
    )


def test_plain_console_format_has_no_escape_codes() -> None:
    formatter = ColoredFormatter(
        "[%(levelname2)s] %(funcName2)s:%(lineno2)s - %(message2)s", use_color=False
    )
    assert formatter.format(_record()) == "[WARNING] create:12 - saved 3 annotation(s)"


def test_colored_console_format_wraps_fields(monkeypatch) -> None:
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("ANSI_COLORS_DISABLED", raising=False)
    monkeypatch.setenv("FORCE_COLOR", "1")
    formatter = ColoredFormatter("%(levelname2)s %(message2)s", use_color=True)
    text = formatter.format(_record(logging.ERROR))
    assert "\x1b[" in text
    assert "saved 3 annotation(s)" in text
