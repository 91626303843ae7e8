"""
pagemark - interactive page annotation.

This is the main entry point for the application.
Run with: python -m pagemark.app [document-id] [--pages N]
"""

import argparse
import sys
from typing import List, Optional

from PySide6.QtWidgets import QApplication

from pagemark import __version__
from pagemark.editor.engine import AnnotationEngine
from pagemark.editor.store import JsonAnnotationStore
from pagemark.services.config_service import ConfigService
from pagemark.services.logging_service import get_logger, setup_logging
from pagemark.ui.main_window import MainWindow


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pagemark", description="Annotate document pages.")
    parser.add_argument("document_id", nargs="?", default="untitled", help="Document to annotate")
    parser.add_argument("--pages", type=int, default=1, help="Number of pages in the document")
    parser.add_argument("--page", type=int, default=1, help="Page to open")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for pagemark.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    args = parse_args(sys.argv[1:] if argv is None else argv)

    config = ConfigService()
    setup_logging(args.log_level or config.log_level)
    logger = get_logger(__name__)

    try:
        logger.info(f"Starting pagemark {__version__} for document {args.document_id}")

        app = QApplication(sys.argv[:1])
        app.setApplicationName("pagemark")
        app.setApplicationVersion(__version__)

        store = JsonAnnotationStore(config.store_dir)
        engine = AnnotationEngine(
            store,
            args.document_id,
            page_number=max(1, min(args.page, args.pages)),
            config=config,
        )

        window = MainWindow(engine, config, page_count=args.pages)
        window.show()

        exit_code = app.exec()
        logger.info(f"pagemark exiting with code {exit_code}")
        return exit_code

    except Exception as e:
        logger.critical(f"Fatal error during startup: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
