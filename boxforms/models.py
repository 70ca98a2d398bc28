"""Data models for box annotations."""

import logging
import time
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Callable, Optional

from .geometry import Rect, normalize_box, is_degenerate

logger = logging.getLogger(__name__)


@dataclass
class Annotation:
    """A named box on a PDF page, stored in canvas pixels."""
    id: int
    page: int  # 1-based
    x: float = 0.0  # canvas coordinates at `scale`
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    name: str = ""
    scale: float = 1.0  # render scale active when drawn

    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def display_name(self) -> str:
        """Label shown in the overlay and list."""
        return self.name or f"Box {self.id}"

    def field_name(self) -> str:
        """Name of the exported form field."""
        return self.name or f"Field_{self.id}"

    def to_dict(self) -> dict:
        return asdict(self)


class StoreEvent(Enum):
    ADDED = "added"
    UPDATED = "updated"
    RENAMED = "renamed"
    REMOVED = "removed"
    SELECTED = "selected"
    CLEARED = "cleared"


Listener = Callable[[StoreEvent, Optional[Annotation]], None]


class AnnotationStore:
    """Ordered annotations for one document session.

    Every mutation notifies subscribers synchronously before returning, so a
    listener always sees the latest committed state.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._annotations: dict[int, Annotation] = {}
        self._selected_id: Optional[int] = None
        self._listeners: list[Listener] = []
        self._clock = clock
        self._last_id = 0
        self._modified = False

    # --- subscription ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: StoreEvent, annotation: Optional[Annotation]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, annotation)
            except Exception:
                logger.exception("Store listener failed on %s", event.value)

    def _next_id(self) -> int:
        # Milliseconds since the epoch, bumped so ids never repeat
        candidate = int(self._clock() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return candidate

    # --- mutations ---

    def add(self, page: int, box: Rect, name: str = "",
            scale: float = 1.0) -> Optional[Annotation]:
        """Append a box. Boxes with a zero extent are ignored."""
        if page < 1:
            raise ValueError(f"Page numbers start at 1, got {page}")

        rect = normalize_box(box.x, box.y, box.width, box.height)
        if is_degenerate(rect):
            logger.debug("Ignoring zero-size box on page %d", page)
            return None

        annotation = Annotation(
            id=self._next_id(),
            page=page,
            x=rect.x,
            y=rect.y,
            width=rect.width,
            height=rect.height,
            name=name,
            scale=scale,
        )
        self._annotations[annotation.id] = annotation
        self._modified = True
        logger.debug("Added %s on page %d at %s", annotation.display_name(), page, rect)
        self._notify(StoreEvent.ADDED, annotation)
        return annotation

    def update_geometry(self, annotation_id: int, dx: float, dy: float) -> Optional[Annotation]:
        """Move a box by (dx, dy) canvas pixels."""
        annotation = self._annotations.get(annotation_id)
        if annotation is None:
            return None
        annotation.x += dx
        annotation.y += dy
        self._modified = True
        self._notify(StoreEvent.UPDATED, annotation)
        return annotation

    def rename(self, annotation_id: int, name: str) -> Optional[Annotation]:
        annotation = self._annotations.get(annotation_id)
        if annotation is None:
            return None
        annotation.name = name
        self._modified = True
        self._notify(StoreEvent.RENAMED, annotation)
        return annotation

    def remove(self, annotation_id: int) -> Optional[Annotation]:
        annotation = self._annotations.pop(annotation_id, None)
        if annotation is None:
            return None
        self._modified = True
        if self._selected_id == annotation_id:
            self._selected_id = None
        self._notify(StoreEvent.REMOVED, annotation)
        return annotation

    def select(self, annotation_id: Optional[int]) -> Optional[Annotation]:
        """Select a box by id, or clear the selection with None."""
        if annotation_id not in self._annotations:
            annotation_id = None
        if annotation_id == self._selected_id:
            return self.selected()
        self._selected_id = annotation_id
        selected = self.selected()
        self._notify(StoreEvent.SELECTED, selected)
        return selected

    def clear(self) -> None:
        self._annotations.clear()
        self._selected_id = None
        self._modified = True
        self._notify(StoreEvent.CLEARED, None)

    # --- queries ---

    def get(self, annotation_id: int) -> Optional[Annotation]:
        return self._annotations.get(annotation_id)

    def selected(self) -> Optional[Annotation]:
        if self._selected_id is None:
            return None
        return self._annotations.get(self._selected_id)

    def all(self) -> list[Annotation]:
        """All annotations in insertion order."""
        return list(self._annotations.values())

    def get_for_page(self, page: int) -> list[Annotation]:
        return [a for a in self._annotations.values() if a.page == page]

    def pages(self) -> list[int]:
        """Pages that carry at least one box."""
        return sorted({a.page for a in self._annotations.values()})

    def count(self) -> int:
        return len(self._annotations)

    @property
    def modified(self) -> bool:
        return self._modified

    @modified.setter
    def modified(self, value: bool):
        self._modified = value
