"""Arrow-key repositioning of the selected box."""

from enum import Enum
from typing import Optional

from PySide6.QtCore import QObject, QEvent, Qt
from PySide6.QtWidgets import QApplication, QWidget, QLineEdit, QAbstractSpinBox, QTextEdit

from .models import AnnotationStore

NUDGE_STEP = 1
PRECISION_STEP = 10


class Direction(Enum):
    LEFT = (-1, 0)
    RIGHT = (1, 0)
    UP = (0, -1)
    DOWN = (0, 1)

    def delta(self, step: float) -> tuple[float, float]:
        dx, dy = self.value
        return dx * step, dy * step


KEY_DIRECTIONS = {
    Qt.Key.Key_Left: Direction.LEFT,
    Qt.Key.Key_Right: Direction.RIGHT,
    Qt.Key.Key_Up: Direction.UP,
    Qt.Key.Key_Down: Direction.DOWN,
}


def direction_for_key(key) -> Optional[Direction]:
    return KEY_DIRECTIONS.get(key)


class NudgeController:
    """Moves the selected annotation by a fixed step."""

    def __init__(self, store: AnnotationStore):
        self._store = store

    def nudge(self, direction: Direction, precise: bool = False) -> bool:
        """Move the selection. Returns False when nothing is selected."""
        selected = self._store.selected()
        if selected is None:
            return False
        step = PRECISION_STEP if precise else NUDGE_STEP
        dx, dy = direction.delta(step)
        self._store.update_geometry(selected.id, dx, dy)
        return True


class NudgeKeyFilter(QObject):
    """Application-wide arrow key handler, active while an editor is open.

    Only keys sent to the editor's own window are handled, and nothing is
    handled while a modal dialog is up. Call install() when a document is
    opened and remove() when it is closed.
    """

    def __init__(self, controller: NudgeController, editor: QWidget, parent=None):
        super().__init__(parent)
        self._controller = controller
        self._editor = editor
        self._installed = False

    def install(self):
        app = QApplication.instance()
        if app is not None and not self._installed:
            app.installEventFilter(self)
            self._installed = True

    def remove(self):
        app = QApplication.instance()
        if app is not None and self._installed:
            app.removeEventFilter(self)
        self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    def eventFilter(self, watched, event) -> bool:
        # Key presses also pass through the window handle; act on the widget only
        if event.type() != QEvent.Type.KeyPress or not watched.isWidgetType():
            return False

        direction = direction_for_key(event.key())
        if direction is None:
            return False

        if watched.window() is not self._editor.window():
            return False
        if QApplication.activeModalWidget() is not None:
            return False

        # Leave arrows alone while the user is typing
        focus = QApplication.focusWidget()
        if isinstance(focus, (QLineEdit, QAbstractSpinBox, QTextEdit)):
            return False

        precise = bool(event.modifiers() & Qt.KeyboardModifier.ShiftModifier)
        return self._controller.nudge(direction, precise)
