"""Tests for keyboard nudging of the selected box."""

import pytest
from PySide6.QtCore import Qt, QEvent
from PySide6.QtGui import QKeyEvent
from PySide6.QtWidgets import QApplication, QDialog, QPushButton, QWidget

from boxforms.geometry import Rect
from boxforms.models import AnnotationStore, StoreEvent
from boxforms.nudge import (
    Direction, NudgeController, NudgeKeyFilter, direction_for_key,
    NUDGE_STEP, PRECISION_STEP,
)


def make_selected():
    store = AnnotationStore(clock=lambda: 1000.0)
    a = store.add(1, Rect(100, 100, 50, 20))
    store.select(a.id)
    return store, a


class TestDirection:
    def test_key_mapping(self):
        assert direction_for_key(Qt.Key.Key_Left) == Direction.LEFT
        assert direction_for_key(Qt.Key.Key_Right) == Direction.RIGHT
        assert direction_for_key(Qt.Key.Key_Up) == Direction.UP
        assert direction_for_key(Qt.Key.Key_Down) == Direction.DOWN

    def test_other_keys_unmapped(self):
        assert direction_for_key(Qt.Key.Key_A) is None
        assert direction_for_key(Qt.Key.Key_Delete) is None

    def test_delta(self):
        assert Direction.UP.delta(10) == (0, -10)
        assert Direction.RIGHT.delta(1) == (1, 0)


class TestNudgeController:
    def test_no_selection_is_noop(self):
        store = AnnotationStore(clock=lambda: 1000.0)
        a = store.add(1, Rect(100, 100, 50, 20))
        events = []
        store.subscribe(lambda event, annotation: events.append(event))

        assert NudgeController(store).nudge(Direction.LEFT) is False
        assert (a.x, a.y) == (100, 100)
        assert events == []

    def test_left(self):
        store, a = make_selected()
        NudgeController(store).nudge(Direction.LEFT)
        assert (a.x, a.y) == (100 - NUDGE_STEP, 100)

    def test_right(self):
        store, a = make_selected()
        assert NudgeController(store).nudge(Direction.RIGHT) is True
        assert (a.x, a.y) == (101, 100)

    def test_up(self):
        store, a = make_selected()
        NudgeController(store).nudge(Direction.UP)
        assert (a.x, a.y) == (100, 99)

    def test_down_precise(self):
        store, a = make_selected()
        NudgeController(store).nudge(Direction.DOWN, precise=True)
        assert (a.x, a.y) == (100, 100 + PRECISION_STEP)

    def test_size_unchanged(self):
        store, a = make_selected()
        NudgeController(store).nudge(Direction.LEFT, precise=True)
        assert (a.width, a.height) == (50, 20)

    def test_notifies_update(self):
        store, a = make_selected()
        events = []
        store.subscribe(lambda event, annotation: events.append(event))
        NudgeController(store).nudge(Direction.UP)
        assert events == [StoreEvent.UPDATED]


# --- key filter on a running QApplication ---

class KeyRecorder(QWidget):
    """Widget that records the keys it receives."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.keys = []

    def keyPressEvent(self, event):
        self.keys.append(event.key())


def key_press(key, modifiers=Qt.KeyboardModifier.NoModifier):
    return QKeyEvent(QEvent.Type.KeyPress, key, modifiers)


@pytest.fixture
def editor(qapp):
    window = KeyRecorder()
    store, annotation = make_selected()
    key_filter = NudgeKeyFilter(NudgeController(store), window)
    key_filter.install()
    yield window, key_filter, annotation
    key_filter.remove()
    window.deleteLater()


class TestNudgeKeyFilter:
    def test_arrow_moves_and_is_consumed(self, editor):
        window, key_filter, a = editor
        QApplication.sendEvent(window, key_press(Qt.Key.Key_Right))
        assert (a.x, a.y) == (101, 100)
        assert window.keys == []

    def test_shift_uses_precision_step(self, editor):
        window, key_filter, a = editor
        QApplication.sendEvent(window, key_press(Qt.Key.Key_Down, Qt.KeyboardModifier.ShiftModifier))
        assert (a.x, a.y) == (100, 110)

    def test_child_widget_of_editor_window(self, editor):
        window, key_filter, a = editor
        button = QPushButton("ok", window)
        QApplication.sendEvent(button, key_press(Qt.Key.Key_Left))
        assert (a.x, a.y) == (99, 100)

    def test_other_keys_pass_through(self, editor):
        window, key_filter, a = editor
        QApplication.sendEvent(window, key_press(Qt.Key.Key_A))
        assert window.keys == [Qt.Key.Key_A]
        assert (a.x, a.y) == (100, 100)
        assert key_filter.eventFilter(window, key_press(Qt.Key.Key_A)) is False

    def test_other_window_is_ignored(self, editor):
        window, key_filter, a = editor
        dialog = KeyRecorder()
        QApplication.sendEvent(dialog, key_press(Qt.Key.Key_Right))
        assert (a.x, a.y) == (100, 100)
        assert dialog.keys == [Qt.Key.Key_Right]
        dialog.deleteLater()

    def test_modal_dialog_blocks_nudge(self, editor):
        window, key_filter, a = editor
        dialog = QDialog()
        dialog.setModal(True)
        dialog.show()
        try:
            QApplication.sendEvent(window, key_press(Qt.Key.Key_Right))
            assert (a.x, a.y) == (100, 100)
        finally:
            dialog.hide()
            dialog.deleteLater()

    def test_remove_stops_handling(self, editor):
        window, key_filter, a = editor
        assert key_filter.installed
        key_filter.remove()
        assert not key_filter.installed

        QApplication.sendEvent(window, key_press(Qt.Key.Key_Right))
        assert (a.x, a.y) == (100, 100)
        assert window.keys == [Qt.Key.Key_Right]

    def test_install_again_after_remove(self, editor):
        window, key_filter, a = editor
        key_filter.remove()
        key_filter.install()
        key_filter.install()
        QApplication.sendEvent(window, key_press(Qt.Key.Key_Right))
        # Installed once, so a single step
        assert (a.x, a.y) == (101, 100)
