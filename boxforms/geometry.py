"""Conversion between canvas pixels and PDF points.

Canvas space has its origin at the top-left with Y growing downward and is
scaled by the render scale. PDF space has its origin at the bottom-left with
Y growing upward and does not depend on the render scale.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Point:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Size:
    width: float = 0.0
    height: float = 0.0

    def scaled(self, scale: float) -> "Size":
        return Size(self.width * scale, self.height * scale)

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle given by an origin corner and extents."""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, point: Point) -> bool:
        r = normalize_box(self.x, self.y, self.width, self.height)
        return r.x <= point.x <= r.right and r.y <= point.y <= r.bottom


def to_pdf_space(canvas_point: Point, canvas_size: Size, pdf_size: Size) -> Point:
    """Map a canvas pixel to a PDF point.

    Uses the current canvas dimensions, so the result is correct whatever
    scale the canvas was rendered at. Returns the origin when there is no
    rendered page.
    """
    if canvas_size.is_empty():
        return Point(0.0, 0.0)

    px = canvas_point.x / canvas_size.width * pdf_size.width
    py = pdf_size.height - canvas_point.y / canvas_size.height * pdf_size.height
    return Point(px, py)


def to_canvas_space(pdf_point: Point, canvas_size: Size, pdf_size: Size) -> Point:
    """Inverse of to_pdf_space."""
    if pdf_size.is_empty():
        return Point(0.0, 0.0)

    cx = pdf_point.x / pdf_size.width * canvas_size.width
    cy = (pdf_size.height - pdf_point.y) / pdf_size.height * canvas_size.height
    return Point(cx, cy)


def box_to_pdf_rect(box: Rect, canvas_size: Size, pdf_size: Size) -> Rect:
    """Convert a top-left canvas box to a PDF rectangle anchored bottom-left."""
    if canvas_size.is_empty():
        return Rect()

    width = box.width / canvas_size.width * pdf_size.width
    height = box.height / canvas_size.height * pdf_size.height
    x = box.x / canvas_size.width * pdf_size.width
    y = pdf_size.height - (box.y / canvas_size.height) * pdf_size.height - height
    return Rect(x, y, width, height)


def normalize_box(x: float, y: float, width: float, height: float) -> Rect:
    """Flip negative extents so the origin is the true top-left corner."""
    if width < 0:
        x += width
        width = -width
    if height < 0:
        y += height
        height = -height
    return Rect(x, y, width, height)


def box_between(origin: Point, current: Point) -> Rect:
    """Signed box from a drag origin to the current pointer."""
    return Rect(origin.x, origin.y, current.x - origin.x, current.y - origin.y)


def is_degenerate(rect: Rect) -> bool:
    """True when either extent rounds to zero (a click rather than a drag)."""
    return round(abs(rect.width)) == 0 or round(abs(rect.height)) == 0
