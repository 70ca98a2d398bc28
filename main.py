#!/usr/bin/env python3
"""BoxForms - PDF Form Field Placement Tool

Draw boxes on PDF pages, name them, and export a PDF where each box is a
fillable text field.
"""

import argparse
import logging
import os
import sys

# Handle PyInstaller bundled paths
if getattr(sys, 'frozen', False):
    BASE_DIR = sys._MEIPASS
else:
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))

sys.path.insert(0, BASE_DIR)

from PySide6.QtWidgets import QApplication
from PySide6.QtCore import Qt

from boxforms import __version__
from boxforms.main_window import MainWindow


def setup_logging(level: str):
    """Console logging for the whole application."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)]
    )


def parse_args(argv):
    parser = argparse.ArgumentParser(description='Place text form fields on a PDF')
    parser.add_argument('pdf', nargs='?', help='PDF file to open')
    parser.add_argument(
        '--log-level',
        default=os.environ.get('BOXFORMS_LOG_LEVEL', 'INFO'),
        help='Logging level (default: INFO, or $BOXFORMS_LOG_LEVEL)'
    )
    return parser.parse_known_args(argv)


def main():
    args, qt_args = parse_args(sys.argv[1:])
    setup_logging(args.log_level)

    # High DPI support
    QApplication.setHighDpiScaleFactorRoundingPolicy(
        Qt.HighDpiScaleFactorRoundingPolicy.PassThrough
    )

    app = QApplication([sys.argv[0]] + qt_args)
    app.setApplicationName("BoxForms")
    app.setApplicationVersion(__version__)
    app.setOrganizationName("BoxForms")
    app.setStyle("Fusion")

    window = MainWindow()
    window.show()

    # Open file from command line if provided
    if args.pdf and os.path.exists(args.pdf):
        window._do_open_file(args.pdf)

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
