"""PDF page viewer with box drawing, selection and zoom.

The scene holds three layers: the rendered page, the committed boxes, and the
box being dragged. Store changes only rebuild the box layer and pointer moves
only touch the drag layer; the page is re-rendered on navigation or zoom.
"""

import logging
from typing import Optional

import fitz
from PySide6.QtWidgets import (
    QGraphicsView, QGraphicsScene, QGraphicsPixmapItem,
    QGraphicsRectItem, QGraphicsSimpleTextItem
)
from PySide6.QtCore import Qt, Signal, QPointF, QRectF, QTimer
from PySide6.QtGui import (
    QPixmap, QImage, QPainter, QColor, QBrush, QPen,
    QWheelEvent, QMouseEvent, QKeyEvent
)

from .drawing import DrawingStateMachine, DrawState
from .errors import PageRangeError, RenderError
from .geometry import Point, Rect, Size, normalize_box, to_pdf_space
from .models import Annotation, AnnotationStore, StoreEvent
from .nudge import NudgeController, NudgeKeyFilter
from .pdf_backend import PdfRenderer, RenderGuard

logger = logging.getLogger(__name__)

PAGE_Z = 0
BOXES_Z = 1
PREVIEW_Z = 2


class AnnotationItem(QGraphicsRectItem):
    """Committed box drawn on the overlay layer."""

    def __init__(self, annotation: Annotation, factor: float):
        super().__init__()
        self.annotation_id = annotation.id
        self.setRect(
            annotation.x * factor,
            annotation.y * factor,
            annotation.width * factor,
            annotation.height * factor,
        )
        self.setZValue(BOXES_Z)

        self._label = QGraphicsSimpleTextItem(annotation.display_name(), self)
        self._label.setBrush(QBrush(QColor("#0078D7")))
        self._label.setPos(self.rect().x() + 2, self.rect().y() + 1)
        self.set_selected(False)

    def set_selected(self, selected: bool):
        if selected:
            self.setPen(QPen(QColor("#FF0000"), 2))
            self.setBrush(QBrush(QColor(255, 0, 0, 30)))
        else:
            self.setPen(QPen(QColor("#0078D7"), 1))
            self.setBrush(QBrush(QColor(0, 120, 215, 30)))


class PDFViewer(QGraphicsView):
    """Shows one page of a PDF and turns pointer drags into boxes."""

    # Signals
    page_changed = Signal(int)  # 1-based page number
    zoom_changed = Signal(float)
    pointer_moved = Signal(float, float)  # PDF units
    render_failed = Signal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self._scene = QGraphicsScene(self)
        self.setScene(self._scene)

        # PDF state
        self._renderer = PdfRenderer()
        self._doc: Optional[fitz.Document] = None
        self._source: Optional[bytes] = None
        self._current_page = 0
        self._page_size = Size()
        self._canvas_size = Size()
        self._rendered_scale = 1.0
        self._render_guard = RenderGuard()
        self._render_ready = False

        # View state
        self._zoom = 1.5
        self._min_zoom = 0.1
        self._max_zoom = 5.0
        self._fit_mode = False

        # Interaction state
        self._panning = False
        self._pan_start = QPointF()

        # Annotations
        self._annotations = AnnotationStore()
        self._annotations.subscribe(self._on_store_event)
        self._drawing = DrawingStateMachine(self._annotations, on_preview=self._show_preview)
        self._nudge_filter = NudgeKeyFilter(NudgeController(self._annotations), self, self)

        # Layers
        self._page_item = QGraphicsPixmapItem()
        self._page_item.setZValue(PAGE_Z)
        self._scene.addItem(self._page_item)
        self._box_items: dict[int, AnnotationItem] = {}
        self._preview_item = QGraphicsRectItem()
        self._preview_item.setPen(QPen(QColor("#0078D7"), 1, Qt.PenStyle.DashLine))
        self._preview_item.setZValue(PREVIEW_Z)
        self._preview_item.setVisible(False)
        self._scene.addItem(self._preview_item)

        # Setup
        self.setRenderHint(QPainter.RenderHint.Antialiasing)
        self.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        self.setDragMode(QGraphicsView.DragMode.NoDrag)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAsNeeded)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAsNeeded)
        self.setBackgroundBrush(QBrush(QColor("#404040")))
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

    # --- document ---

    def open_document(self, data: bytes) -> None:
        """Open PDF bytes. Raises LoadError and leaves the current document as is."""
        doc = self._renderer.load_document(data)

        self.close_document()
        self._doc = doc
        self._source = data
        self._current_page = 1
        self._nudge_filter.install()
        self._request_render()
        self.page_changed.emit(self._current_page)

    def close_document(self):
        """Close the current document and drop its boxes."""
        self._drawing.cancel()
        self._nudge_filter.remove()
        self._render_guard.invalidate()
        self._render_ready = False
        if self._doc:
            self._doc.close()
            self._doc = None
        self._source = None
        self._current_page = 0
        self._page_size = Size()
        self._canvas_size = Size()
        self._page_item.setPixmap(QPixmap())
        self._scene.setSceneRect(0, 0, 0, 0)
        self._annotations.clear()
        self._annotations.modified = False

    def has_document(self) -> bool:
        return self._doc is not None

    def source_bytes(self) -> Optional[bytes]:
        return self._source

    def get_annotations(self) -> AnnotationStore:
        return self._annotations

    def page_count(self) -> int:
        return self._renderer.page_count(self._doc) if self._doc else 0

    def current_page(self) -> int:
        return self._current_page

    def is_render_ready(self) -> bool:
        """True once the current page has been drawn at the current zoom."""
        return self._render_ready

    def canvas_size(self) -> Size:
        return self._canvas_size

    def drawing_state(self) -> DrawState:
        return self._drawing.state

    def go_to_page(self, page: int):
        """Navigate to a 1-based page. Boxes on other pages are kept."""
        if not self._doc:
            return
        if 1 <= page <= self.page_count() and page != self._current_page:
            self._drawing.cancel()
            self._current_page = page
            self._request_render()
            self.page_changed.emit(page)

    def next_page(self):
        self.go_to_page(self._current_page + 1)

    def prev_page(self):
        self.go_to_page(self._current_page - 1)

    # --- rendering ---

    def _request_render(self):
        """Schedule a render of the current page; older requests are dropped."""
        token = self._render_guard.begin()
        self._render_ready = False
        page = self._current_page
        QTimer.singleShot(0, lambda: self._render_page(token, page))

    def _render_page(self, token: int, page_number: int):
        if not self._render_guard.is_current(token) or not self._doc:
            logger.debug("Skipping stale render of page %d", page_number)
            return

        try:
            page = self._renderer.get_page(self._doc, page_number)
            page_size = self._renderer.get_page_size(page)

            if self._fit_mode:
                view_rect = self.viewport().rect()
                zoom_x = view_rect.width() / page_size.width
                zoom_y = view_rect.height() / page_size.height
                self._zoom = max(self._min_zoom, min(zoom_x, zoom_y) * 0.95)

            pix = self._renderer.render_page(page, self._zoom)
        except (PageRangeError, RenderError) as e:
            logger.exception("Rendering page %d failed", page_number)
            self.render_failed.emit(str(e))
            return

        img = QImage(pix.samples, pix.width, pix.height, pix.stride, QImage.Format.Format_RGB888)
        self._page_item.setPixmap(QPixmap.fromImage(img.copy()))
        self._scene.setSceneRect(0, 0, pix.width, pix.height)

        self._page_size = page_size
        # The pixmap is rounded up to whole pixels; boxes live on the exact page area
        self._canvas_size = page_size.scaled(self._zoom)
        self._rendered_scale = self._zoom
        self._render_ready = True
        self._rebuild_boxes()
        self.zoom_changed.emit(self._zoom)

    def _rebuild_boxes(self):
        """Redraw the committed-box layer for the current page."""
        for item in self._box_items.values():
            self._scene.removeItem(item)
        self._box_items.clear()

        selected = self._annotations.selected()
        for annotation in self._annotations.get_for_page(self._current_page):
            item = AnnotationItem(annotation, self._rendered_scale / annotation.scale)
            item.set_selected(selected is not None and selected.id == annotation.id)
            self._scene.addItem(item)
            self._box_items[annotation.id] = item

    def _update_selection(self):
        selected = self._annotations.selected()
        for annotation_id, item in self._box_items.items():
            item.set_selected(selected is not None and selected.id == annotation_id)

    def _on_store_event(self, event: StoreEvent, annotation: Optional[Annotation]):
        if event == StoreEvent.SELECTED:
            self._update_selection()
        elif annotation is None or annotation.page == self._current_page:
            self._rebuild_boxes()

    def _show_preview(self, rect: Optional[Rect]):
        if rect is None:
            self._preview_item.setVisible(False)
            return
        r = normalize_box(rect.x, rect.y, rect.width, rect.height)
        self._preview_item.setRect(QRectF(r.x, r.y, r.width, r.height))
        self._preview_item.setVisible(True)

    # --- zoom ---

    def zoom_in(self):
        self.set_zoom(self._zoom * 1.25)

    def zoom_out(self):
        self.set_zoom(self._zoom / 1.25)

    def zoom_fit(self):
        self._fit_mode = True
        if self._doc:
            self._request_render()

    def zoom_100(self):
        self.set_zoom(1.0)

    def set_zoom(self, zoom: float):
        self._zoom = max(self._min_zoom, min(self._max_zoom, zoom))
        self._fit_mode = False
        if self._doc:
            self._drawing.cancel()
            self._request_render()

    def get_zoom(self) -> float:
        return self._zoom

    # --- pointer input ---

    def _page_bounds(self) -> QRectF:
        return QRectF(0, 0, self._canvas_size.width, self._canvas_size.height)

    def _clamp_to_page(self, scene_pos: QPointF) -> Point:
        x = min(max(scene_pos.x(), 0.0), self._canvas_size.width)
        y = min(max(scene_pos.y(), 0.0), self._canvas_size.height)
        return Point(x, y)

    def _find_annotation_at(self, scene_pos: QPointF) -> Optional[Annotation]:
        """Topmost box on the current page under the pointer."""
        point = Point(scene_pos.x(), scene_pos.y())
        for annotation in reversed(self._annotations.get_for_page(self._current_page)):
            factor = self._rendered_scale / annotation.scale
            rect = Rect(annotation.x * factor, annotation.y * factor,
                        annotation.width * factor, annotation.height * factor)
            if rect.contains(point):
                return annotation
        return None

    def wheelEvent(self, event: QWheelEvent):
        if event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            if event.angleDelta().y() > 0:
                self.zoom_in()
            else:
                self.zoom_out()
            event.accept()
        else:
            super().wheelEvent(event)

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.MiddleButton:
            self._panning = True
            self._pan_start = event.position()
            self.setCursor(Qt.CursorShape.ClosedHandCursor)
            event.accept()
            return

        if event.button() == Qt.MouseButton.LeftButton and self._render_ready:
            scene_pos = self.mapToScene(event.position().toPoint())
            if self._page_bounds().contains(scene_pos):
                annotation = self._find_annotation_at(scene_pos)
                if annotation:
                    self._annotations.select(annotation.id)
                else:
                    self._annotations.select(None)
                    self._drawing.pointer_down(
                        Point(scene_pos.x(), scene_pos.y()),
                        self._current_page,
                        self._rendered_scale,
                    )
                self.setFocus()
                event.accept()
                return

        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QMouseEvent):
        if self._panning:
            delta = event.position() - self._pan_start
            self._pan_start = event.position()
            self.horizontalScrollBar().setValue(
                self.horizontalScrollBar().value() - int(delta.x())
            )
            self.verticalScrollBar().setValue(
                self.verticalScrollBar().value() - int(delta.y())
            )
            event.accept()
            return

        scene_pos = self.mapToScene(event.position().toPoint())
        inside = self._page_bounds().contains(scene_pos)

        if inside:
            pdf = to_pdf_space(Point(scene_pos.x(), scene_pos.y()), self._canvas_size, self._page_size)
            self.pointer_moved.emit(pdf.x, pdf.y)
            self.setCursor(Qt.CursorShape.CrossCursor)
        else:
            self.pointer_moved.emit(0.0, 0.0)
            self.setCursor(Qt.CursorShape.ArrowCursor)

        if self._drawing.state == DrawState.DRAGGING:
            if inside:
                self._drawing.pointer_move(Point(scene_pos.x(), scene_pos.y()))
            else:
                self._commit_drag(self._drawing.pointer_leave(self._clamp_to_page(scene_pos)))
            event.accept()
            return

        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.MiddleButton and self._panning:
            self._panning = False
            self.setCursor(Qt.CursorShape.ArrowCursor)
            event.accept()
            return

        if event.button() == Qt.MouseButton.LeftButton and self._drawing.state == DrawState.DRAGGING:
            scene_pos = self.mapToScene(event.position().toPoint())
            self._commit_drag(self._drawing.pointer_up(self._clamp_to_page(scene_pos)))
            event.accept()
            return

        super().mouseReleaseEvent(event)

    def leaveEvent(self, event):
        self._commit_drag(self._drawing.pointer_leave())
        self.pointer_moved.emit(0.0, 0.0)
        super().leaveEvent(event)

    def _commit_drag(self, annotation: Optional[Annotation]):
        if annotation:
            self._annotations.select(annotation.id)

    def keyPressEvent(self, event: QKeyEvent):
        if event.key() == Qt.Key.Key_Delete:
            selected = self._annotations.selected()
            if selected:
                self._annotations.remove(selected.id)
                event.accept()
                return

        if event.key() == Qt.Key.Key_Escape:
            if self._drawing.state == DrawState.DRAGGING:
                self._drawing.cancel()
            else:
                self._annotations.select(None)
            event.accept()
            return

        super().keyPressEvent(event)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        if self._fit_mode and self._doc:
            self._request_render()
