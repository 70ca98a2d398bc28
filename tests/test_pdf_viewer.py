"""Tests for the page viewer on an offscreen QApplication."""

import fitz
import pytest
from PySide6.QtCore import Qt, QEvent, QPointF
from PySide6.QtGui import QMouseEvent
from PySide6.QtWidgets import QApplication

from boxforms.drawing import DrawState
from boxforms.export import ExportMapper
from boxforms.geometry import Rect
from boxforms.pdf_viewer import AnnotationItem, PDFViewer


def make_pdf(pages=1, width=600, height=800) -> bytes:
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page(width=width, height=height)
    data = doc.tobytes()
    doc.close()
    return data


def wait_for_render(viewer):
    for _ in range(50):
        QApplication.processEvents()
        if viewer.is_render_ready():
            return
    raise AssertionError("page was not rendered")


def mouse(viewer, event_type, scene_x, scene_y, button=Qt.MouseButton.LeftButton):
    pos = QPointF(viewer.mapFromScene(QPointF(scene_x, scene_y)))
    global_pos = QPointF(viewer.viewport().mapToGlobal(pos.toPoint()))
    buttons = button if event_type != QEvent.Type.MouseButtonRelease else Qt.MouseButton.NoButton
    event = QMouseEvent(event_type, pos, global_pos, button, buttons,
                        Qt.KeyboardModifier.NoModifier)
    QApplication.sendEvent(viewer.viewport(), event)


def box_items(viewer):
    return [item for item in viewer.scene().items() if isinstance(item, AnnotationItem)]


@pytest.fixture
def viewer(qapp):
    view = PDFViewer()
    view.resize(800, 600)
    yield view
    view.close_document()
    view.deleteLater()


class TestPageNavigation:
    def test_boxes_kept_across_pages(self, viewer):
        viewer.open_document(make_pdf(pages=3))
        wait_for_render(viewer)
        store = viewer.get_annotations()
        store.add(1, Rect(10, 10, 50, 20), scale=viewer.get_zoom())
        assert len(box_items(viewer)) == 1

        viewer.go_to_page(2)
        wait_for_render(viewer)
        assert viewer.current_page() == 2
        assert box_items(viewer) == []
        assert len(store.get_for_page(1)) == 1

        viewer.go_to_page(1)
        wait_for_render(viewer)
        assert len(box_items(viewer)) == 1

    def test_out_of_range_page_ignored(self, viewer):
        viewer.open_document(make_pdf(pages=2))
        wait_for_render(viewer)
        viewer.go_to_page(5)
        assert viewer.current_page() == 1


class TestPointerReadout:
    def test_reports_pdf_units(self, viewer):
        viewer.open_document(make_pdf(width=600, height=800))
        wait_for_render(viewer)
        readings = []
        viewer.pointer_moved.connect(lambda x, y: readings.append((x, y)))

        mouse(viewer, QEvent.Type.MouseMove, 90, 120)

        x, y = readings[-1]
        assert x == pytest.approx(60, abs=1)
        assert y == pytest.approx(720, abs=1)

    def test_reset_on_leave(self, viewer):
        viewer.open_document(make_pdf())
        wait_for_render(viewer)
        readings = []
        viewer.pointer_moved.connect(lambda x, y: readings.append((x, y)))

        mouse(viewer, QEvent.Type.MouseMove, 90, 120)
        QApplication.sendEvent(viewer, QEvent(QEvent.Type.Leave))

        assert readings[-1] == (0.0, 0.0)


class TestDrawing:
    def test_drag_creates_selected_box(self, viewer):
        viewer.open_document(make_pdf())
        wait_for_render(viewer)

        mouse(viewer, QEvent.Type.MouseButtonPress, 30, 40)
        assert viewer.drawing_state() == DrawState.DRAGGING
        mouse(viewer, QEvent.Type.MouseMove, 130, 90)
        mouse(viewer, QEvent.Type.MouseButtonRelease, 130, 90)

        store = viewer.get_annotations()
        assert store.count() == 1
        annotation = store.all()[0]
        assert store.selected() is annotation
        assert annotation.scale == viewer.get_zoom()
        assert (annotation.width, annotation.height) == pytest.approx((100, 50), abs=1)

    def test_press_ignored_until_page_rendered(self, viewer):
        viewer.open_document(make_pdf(pages=2))
        wait_for_render(viewer)

        viewer.go_to_page(2)
        assert not viewer.is_render_ready()
        mouse(viewer, QEvent.Type.MouseButtonPress, 30, 40)
        assert viewer.drawing_state() == DrawState.IDLE

        wait_for_render(viewer)
        mouse(viewer, QEvent.Type.MouseButtonPress, 30, 40)
        assert viewer.drawing_state() == DrawState.DRAGGING

    def test_drag_off_edge_stays_on_page(self, viewer):
        # A4 width does not scale to a whole number of pixels
        viewer.open_document(make_pdf(width=595.28, height=841.89))
        wait_for_render(viewer)
        canvas = viewer.canvas_size()
        assert canvas.width == pytest.approx(595.28 * viewer.get_zoom())

        mouse(viewer, QEvent.Type.MouseButtonPress, canvas.width - 100, 100)
        mouse(viewer, QEvent.Type.MouseMove, canvas.width + 50, 150)

        store = viewer.get_annotations()
        annotation = store.all()[0]
        assert annotation.x + annotation.width <= canvas.width + 1e-6

        data = ExportMapper().export(store.all(), viewer.source_bytes())
        doc = fitz.open(stream=data, filetype="pdf")
        widget = next(doc[0].widgets())
        assert widget.rect.x1 <= doc[0].rect.x1 + 0.01
        doc.close()


class TestDocumentLifetime:
    def test_filter_follows_document(self, viewer):
        viewer.open_document(make_pdf())
        assert viewer._nudge_filter.installed
        viewer.close_document()
        assert not viewer._nudge_filter.installed
        assert not viewer.is_render_ready()
