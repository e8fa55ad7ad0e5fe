import datetime
import logging
import os
import sys
from pathlib import Path

import termcolor

__appname__ = "pagechat"


def resolve_path(path: Path | str) -> Path:
    return Path(path).expanduser().resolve()


# Logs live next to the user's home unless redirected for tests/CI.
logs_dir_path = Path(
    os.environ.get("PAGECHAT_LOG_DIR") or Path.home() / f"{__appname__}_logs"
)
resolved_logs_dir_path = resolve_path(logs_dir_path)
resolved_logs_dir_path.mkdir(parents=True, exist_ok=True)

current_date = datetime.datetime.now().strftime("%Y-%m-%d")
resolved_log_file_path = resolve_path(
    resolved_logs_dir_path / f"{__appname__}_{current_date}.log"
)

if os.name == "nt":  # Windows
    import colorama
    colorama.init()


COLORS = {
    "WARNING": "yellow",
    "INFO": "white",
    "DEBUG": "blue",
    "CRITICAL": "red",
    "ERROR": "red",
}


class ColoredFormatter(logging.Formatter):
    """Fills the `<field>2` record attributes used by the console format."""

    def __init__(self, fmt, use_color=True):
        super().__init__(fmt)
        self.use_color = use_color

    def _paint(self, text, color, bold=False):
        if not self.use_color:
            return text
        return termcolor.colored(text, color=color, attrs=["bold"] if bold else None)

    def format(self, record):
        level_color = COLORS.get(record.levelname, "white")
        record.levelname2 = self._paint(f"{record.levelname:<7}", level_color, bold=True)
        record.message2 = self._paint(record.getMessage(), level_color, bold=True)
        for name in ("module", "funcName", "lineno"):
            setattr(record, f"{name}2", self._paint(str(getattr(record, name)), "cyan"))
        return super().format(record)


logger = logging.getLogger(__appname__)
logger.setLevel(logging.INFO)

stream_handler = logging.StreamHandler(sys.stderr)
stream_handler.setFormatter(
    ColoredFormatter(
        "%(asctime)s [%(levelname2)s] %(module2)s:%(funcName2)s:%(lineno2)s"
        " - %(message2)s",
        use_color=sys.stderr.isatty(),
    )
)
logger.addHandler(stream_handler)

file_handler = logging.FileHandler(resolved_log_file_path, encoding="utf-8")
file_handler.setFormatter(
    logging.Formatter(
        "%(asctime)s [%(levelname)s] %(module)s:%(funcName)s:%(lineno)d - %(message)s"
    )
)
logger.addHandler(file_handler)
