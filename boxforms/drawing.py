"""Box drawing state machine.

Pointer events go in, committed boxes come out through the AnnotationStore.
The in-progress rectangle is only reported through the preview callback so
the view can redraw its drag layer without touching committed boxes.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .geometry import Point, Rect, box_between
from .models import Annotation, AnnotationStore

logger = logging.getLogger(__name__)


class DrawState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass
class DrawOperation:
    """The drag between pointer-down and pointer-up."""
    origin: Point
    current: Point
    page: int
    scale: float = 1.0

    def box(self) -> Rect:
        return box_between(self.origin, self.current)


class DrawingStateMachine:
    """Turns a pointer drag into a new annotation."""

    def __init__(self, store: AnnotationStore,
                 on_preview: Optional[Callable[[Optional[Rect]], None]] = None):
        self._store = store
        self._on_preview = on_preview
        self._operation: Optional[DrawOperation] = None

    @property
    def state(self) -> DrawState:
        return DrawState.DRAGGING if self._operation else DrawState.IDLE

    @property
    def operation(self) -> Optional[DrawOperation]:
        return self._operation

    def _preview(self, rect: Optional[Rect]) -> None:
        if self._on_preview:
            self._on_preview(rect)

    def pointer_down(self, point: Point, page: int, scale: float = 1.0) -> None:
        self._operation = DrawOperation(origin=point, current=point, page=page, scale=scale)
        self._preview(None)

    def pointer_move(self, point: Point) -> Optional[Rect]:
        """Update the live preview. Width and height may be negative."""
        if self._operation is None:
            return None
        self._operation.current = point
        rect = self._operation.box()
        self._preview(rect)
        return rect

    def pointer_up(self, point: Optional[Point] = None) -> Optional[Annotation]:
        """Finish the drag: commit the box or discard a click."""
        operation = self._operation
        if operation is None:
            return None
        if point is not None:
            operation.current = point

        self._operation = None
        self._preview(None)

        annotation = self._store.add(operation.page, operation.box(), scale=operation.scale)
        if annotation is None:
            logger.debug("Drag on page %d had no area, discarded", operation.page)
        return annotation

    def pointer_leave(self, point: Optional[Point] = None) -> Optional[Annotation]:
        """Leaving the canvas ends the drag exactly like releasing the button."""
        return self.pointer_up(point)

    def cancel(self) -> None:
        if self._operation is not None:
            self._operation = None
            self._preview(None)
