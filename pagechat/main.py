import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from pagechat.version import get_version


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Read PDFs, select regions or text and chat about them."
    )
    parser.add_argument(
        "--version",
        "-V",
        action="store_true",
        help="show version and exit",
    )
    parser.add_argument(
        "pdf",
        nargs="?",
        default=None,
        help="PDF file to import and open on start",
    )
    parser.add_argument(
        "--provider",
        default=None,
        help="chat provider to use (openrouter|openai|ollama)",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="override the configured chat model",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.version:
        print(get_version())
        return 0

    # Qt is only needed once we actually open a window.
    from pagechat.gui.app import ViewerWindow, create_qapp, resolve_window_config
    from pagechat.utils.logger import logger

    app = create_qapp(sys.argv if argv is None else [sys.argv[0], *argv])
    app.setApplicationName("pagechat")
    win = ViewerWindow(
        config=resolve_window_config(provider=args.provider, model=args.model)
    )
    if args.pdf:
        path = Path(args.pdf).expanduser()
        if path.is_file():
            document_id = win.registry.create(path.name, path.read_bytes())
            win.refresh_documents()
            win.open_document(document_id)
        else:
            logger.warning("PDF not found: %s", path)
    win.show()
    win.raise_()
    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
