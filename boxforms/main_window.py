"""Main application window."""

import logging
import os
from typing import Optional

from PySide6.QtWidgets import (
    QMainWindow, QToolBar, QLabel, QSpinBox, QFileDialog, QMessageBox,
    QStatusBar, QSplitter
)
from PySide6.QtCore import Qt, QSettings
from PySide6.QtGui import QAction, QKeySequence

from .annotation_list import AnnotationListPanel
from .errors import ExportError, InputError, LoadError
from .export import EXPORT_FILENAME, ExportMapper, duplicate_field_names, write_export
from .models import Annotation
from .pdf_backend import read_pdf_file
from .pdf_viewer import PDFViewer

logger = logging.getLogger(__name__)

APP_TITLE = "BoxForms"


class MainWindow(QMainWindow):
    """Main application window."""

    def __init__(self):
        super().__init__()
        self.setWindowTitle(APP_TITLE)
        self.setMinimumSize(1000, 700)

        # State
        self._current_file: Optional[str] = None
        self._last_dir = ""
        self._exporter = ExportMapper()

        # Settings
        self._settings = QSettings("BoxForms", "BoxForms")

        # Create UI
        self._create_actions()
        self._create_menus()
        self._create_toolbar()
        self._create_central_widget()
        self._create_statusbar()

        self._connect_signals()
        self._load_settings()
        self._enable_document_actions(False)

    def _create_actions(self):
        """Create all actions."""
        self.action_open = QAction("&Open PDF...", self)
        self.action_open.setShortcut(QKeySequence.StandardKey.Open)
        self.action_open.triggered.connect(self._open_file)

        self.action_export = QAction("&Export Form PDF...", self)
        self.action_export.setShortcut(QKeySequence("Ctrl+E"))
        self.action_export.triggered.connect(self._export_pdf)

        self.action_close = QAction("&Close", self)
        self.action_close.setShortcut(QKeySequence.StandardKey.Close)
        self.action_close.triggered.connect(self._close_file)

        self.action_exit = QAction("E&xit", self)
        self.action_exit.setShortcut(QKeySequence.StandardKey.Quit)
        self.action_exit.triggered.connect(self.close)

        self.action_delete = QAction("&Delete Selected", self)
        self.action_delete.setShortcut(QKeySequence.StandardKey.Delete)
        self.action_delete.triggered.connect(self._delete_selected)
        self.action_delete.setEnabled(False)

        self.action_clear_all = QAction("Clear &All Boxes", self)
        self.action_clear_all.triggered.connect(self._clear_all)

        self.action_zoom_in = QAction("Zoom &In", self)
        self.action_zoom_in.setShortcut(QKeySequence.StandardKey.ZoomIn)
        self.action_zoom_in.triggered.connect(lambda: self._viewer.zoom_in())

        self.action_zoom_out = QAction("Zoom &Out", self)
        self.action_zoom_out.setShortcut(QKeySequence.StandardKey.ZoomOut)
        self.action_zoom_out.triggered.connect(lambda: self._viewer.zoom_out())

        self.action_zoom_fit = QAction("&Fit to Window", self)
        self.action_zoom_fit.setShortcut(QKeySequence("Ctrl+0"))
        self.action_zoom_fit.triggered.connect(lambda: self._viewer.zoom_fit())

        self.action_zoom_100 = QAction("&Actual Size", self)
        self.action_zoom_100.setShortcut(QKeySequence("Ctrl+1"))
        self.action_zoom_100.triggered.connect(lambda: self._viewer.zoom_100())

        # Arrow keys move the selected box, so pages use PgUp/PgDown
        self.action_next_page = QAction("&Next Page", self)
        self.action_next_page.setShortcut(QKeySequence.StandardKey.MoveToNextPage)
        self.action_next_page.triggered.connect(lambda: self._viewer.next_page())

        self.action_prev_page = QAction("&Previous Page", self)
        self.action_prev_page.setShortcut(QKeySequence.StandardKey.MoveToPreviousPage)
        self.action_prev_page.triggered.connect(lambda: self._viewer.prev_page())

    def _create_menus(self):
        """Create menu bar."""
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")
        file_menu.addAction(self.action_open)
        file_menu.addAction(self.action_export)
        file_menu.addSeparator()
        file_menu.addAction(self.action_close)
        file_menu.addAction(self.action_exit)

        edit_menu = menubar.addMenu("&Edit")
        edit_menu.addAction(self.action_delete)
        edit_menu.addAction(self.action_clear_all)

        view_menu = menubar.addMenu("&View")
        view_menu.addAction(self.action_zoom_in)
        view_menu.addAction(self.action_zoom_out)
        view_menu.addAction(self.action_zoom_fit)
        view_menu.addAction(self.action_zoom_100)
        view_menu.addSeparator()
        view_menu.addAction(self.action_prev_page)
        view_menu.addAction(self.action_next_page)

    def _create_toolbar(self):
        """Create main toolbar."""
        toolbar = QToolBar("Main Toolbar")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        toolbar.addAction(self.action_open)
        toolbar.addAction(self.action_export)
        toolbar.addSeparator()

        toolbar.addWidget(QLabel(" Page: "))
        self._page_spin = QSpinBox()
        self._page_spin.setRange(1, 1)
        self._page_spin.setValue(1)
        self._page_spin.setFixedWidth(60)
        self._page_spin.valueChanged.connect(self._on_page_spin_changed)
        toolbar.addWidget(self._page_spin)

        self._page_total_label = QLabel(" / 0 ")
        toolbar.addWidget(self._page_total_label)

        toolbar.addSeparator()
        self._zoom_label = QLabel(" Zoom: 150% ")
        toolbar.addWidget(self._zoom_label)

    def _create_central_widget(self):
        """Create the central widget with splitter."""
        splitter = QSplitter(Qt.Orientation.Horizontal)

        self._viewer = PDFViewer()
        splitter.addWidget(self._viewer)

        self._annotation_panel = AnnotationListPanel()
        self._annotation_panel.set_annotations(self._viewer.get_annotations())
        splitter.addWidget(self._annotation_panel)

        splitter.setSizes([800, 220])
        self.setCentralWidget(splitter)

    def _create_statusbar(self):
        """Create status bar with the pointer readout."""
        self._statusbar = QStatusBar()
        self.setStatusBar(self._statusbar)
        self._coords_label = QLabel("x: 0.0  y: 0.0")
        self._statusbar.addPermanentWidget(self._coords_label)
        self._statusbar.showMessage("Ready")

    def _connect_signals(self):
        """Connect signals between components."""
        self._viewer.page_changed.connect(self._on_page_changed)
        self._viewer.zoom_changed.connect(self._on_zoom_changed)
        self._viewer.pointer_moved.connect(self._on_pointer_moved)
        self._viewer.render_failed.connect(self._on_render_failed)
        self._viewer.get_annotations().subscribe(self._on_store_event)

        self._annotation_panel.jump_to_annotation.connect(self._jump_to_annotation)

    def _load_settings(self):
        """Load application settings."""
        geometry = self._settings.value("geometry")
        if geometry:
            self.restoreGeometry(geometry)

        self._last_dir = self._settings.value("last_dir", "") or ""

        zoom = self._settings.value("zoom")
        if zoom:
            try:
                self._viewer.set_zoom(float(zoom))
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid zoom setting %r", zoom)

    def _save_settings(self):
        """Save application settings."""
        self._settings.setValue("geometry", self.saveGeometry())
        self._settings.setValue("last_dir", self._last_dir)
        self._settings.setValue("zoom", self._viewer.get_zoom())

    # --- file handling ---

    def _open_file(self):
        path, _ = QFileDialog.getOpenFileName(
            self, "Open PDF", self._last_dir,
            "PDF Files (*.pdf)"
        )
        if path:
            self._do_open_file(path)

    def _do_open_file(self, path: str):
        """Open a PDF file. Invalid files leave the current document untouched."""
        if self._check_unsaved():
            return

        try:
            data = read_pdf_file(path)
            self._viewer.open_document(data)
        except InputError as e:
            logger.warning("Rejected %s: %s", path, e)
            QMessageBox.warning(self, "Not a PDF", f"Please choose a PDF file.\n\n{e}")
            return
        except (LoadError, OSError) as e:
            logger.error("Could not open %s: %s", path, e)
            QMessageBox.warning(self, "Error", f"Could not open file:\n{path}\n\n{e}")
            return

        self._current_file = path
        self._last_dir = os.path.dirname(path)
        self._update_title()
        self._enable_document_actions(True)
        self._on_page_changed(self._viewer.current_page())
        self._statusbar.showMessage(f"Opened: {os.path.basename(path)}")
        logger.info("Opened %s", path)

    def _close_file(self):
        if self._check_unsaved():
            return
        self._viewer.close_document()
        self._current_file = None
        self._enable_document_actions(False)
        self._on_page_changed(0)
        self._update_title()
        self._statusbar.showMessage("Ready")

    def _check_unsaved(self) -> bool:
        """Ask before dropping boxes. Returns True if the caller should cancel."""
        annotations = self._viewer.get_annotations()
        if annotations.modified and annotations.count() > 0:
            result = QMessageBox.question(
                self, "Unexported Boxes",
                "The current boxes have not been exported. Discard them?",
                QMessageBox.StandardButton.Discard |
                QMessageBox.StandardButton.Cancel
            )
            return result != QMessageBox.StandardButton.Discard
        return False

    def _export_pdf(self):
        """Export the boxes as form fields into a new PDF."""
        source = self._viewer.source_bytes()
        if source is None:
            return

        default_path = os.path.join(self._last_dir, EXPORT_FILENAME)
        path, _ = QFileDialog.getSaveFileName(
            self, "Export Form PDF", default_path,
            "PDF Files (*.pdf)"
        )
        if not path:
            return

        annotations = self._viewer.get_annotations()
        try:
            data = self._exporter.export(annotations.all(), source)
            write_export(path, data)
        except (ExportError, OSError) as e:
            logger.exception("Export to %s failed", path)
            QMessageBox.critical(self, "Export Error", str(e))
            return

        annotations.modified = False
        self._update_title()

        message = f"Exported {annotations.count()} field(s): {os.path.basename(path)}"
        duplicates = duplicate_field_names(annotations.all())
        if duplicates:
            message += f" (duplicate names: {', '.join(duplicates)})"
        self._statusbar.showMessage(message)

    # --- view updates ---

    def _enable_document_actions(self, enabled: bool):
        self.action_export.setEnabled(enabled)
        self.action_close.setEnabled(enabled)
        self.action_clear_all.setEnabled(enabled)
        self._page_spin.setEnabled(enabled)

    def _update_title(self):
        title = APP_TITLE
        if self._current_file:
            title += f" - {os.path.basename(self._current_file)}"
        if self._viewer.get_annotations().modified:
            title += " *"
        self.setWindowTitle(title)

    def _on_page_changed(self, page: int):
        total = self._viewer.page_count()
        self._page_spin.blockSignals(True)
        self._page_spin.setRange(1, max(1, total))
        self._page_spin.setValue(max(1, page))
        self._page_spin.blockSignals(False)
        self._page_total_label.setText(f" / {total} ")

    def _on_page_spin_changed(self, value: int):
        self._viewer.go_to_page(value)

    def _on_zoom_changed(self, zoom: float):
        self._zoom_label.setText(f" Zoom: {int(zoom * 100)}% ")

    def _on_pointer_moved(self, x: float, y: float):
        self._coords_label.setText(f"x: {x:.1f}  y: {y:.1f}")

    def _on_render_failed(self, message: str):
        self._statusbar.showMessage(f"Render failed: {message}")

    def _on_store_event(self, event, annotation: Optional[Annotation]):
        selected = self._viewer.get_annotations().selected()
        self.action_delete.setEnabled(selected is not None)
        self._update_title()

    def _jump_to_annotation(self, annotation: Annotation):
        self._viewer.go_to_page(annotation.page)
        self._viewer.get_annotations().select(annotation.id)

    def _delete_selected(self):
        annotations = self._viewer.get_annotations()
        selected = annotations.selected()
        if selected:
            annotations.remove(selected.id)
            self._statusbar.showMessage(f"Deleted: {selected.display_name()}")

    def _clear_all(self):
        result = QMessageBox.question(
            self, "Clear All",
            "Delete all boxes on every page?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No
        )
        if result == QMessageBox.StandardButton.Yes:
            self._viewer.get_annotations().clear()
            self._statusbar.showMessage("Cleared all boxes")

    def closeEvent(self, event):
        """Handle window close."""
        if self._check_unsaved():
            event.ignore()
            return

        self._save_settings()
        self._viewer.close_document()
        event.accept()
