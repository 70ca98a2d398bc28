"""PyMuPDF-backed PDF rendering and form authoring."""

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import fitz

from .errors import InputError, LoadError, PageRangeError, RenderError
from .geometry import Rect, Size

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
PDF_MAGIC = b"%PDF-"


def read_pdf_file(path: str) -> bytes:
    """Read a file picked by the user, refusing anything that is not a PDF."""
    mime, _ = mimetypes.guess_type(path)
    if mime != PDF_MIME_TYPE:
        raise InputError(f"{Path(path).name} is not a PDF file")

    data = Path(path).read_bytes()
    if not data.startswith(PDF_MAGIC):
        raise InputError(f"{Path(path).name} does not contain PDF data")
    return data


def open_pdf_bytes(data: bytes) -> fitz.Document:
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        raise LoadError(f"Could not parse PDF: {e}") from e
    if not doc.is_pdf:
        doc.close()
        raise LoadError("Document is not a PDF")
    return doc


class PdfRenderer:
    """Turns pages into pixmaps for the viewer."""

    def load_document(self, data: bytes) -> fitz.Document:
        doc = open_pdf_bytes(data)
        logger.info("Loaded PDF with %d page(s)", doc.page_count)
        return doc

    def page_count(self, doc: fitz.Document) -> int:
        return doc.page_count

    def get_page(self, doc: fitz.Document, number: int) -> fitz.Page:
        """Load a page by 1-based number."""
        if not 1 <= number <= doc.page_count:
            raise PageRangeError(f"Page {number} is outside 1..{doc.page_count}")
        return doc.load_page(number - 1)

    def get_page_size(self, page: fitz.Page, scale: float = 1.0) -> Size:
        rect = page.rect
        return Size(rect.width * scale, rect.height * scale)

    def render_page(self, page: fitz.Page, scale: float) -> fitz.Pixmap:
        try:
            mat = fitz.Matrix(scale, scale)
            return page.get_pixmap(matrix=mat, alpha=False)
        except Exception as e:
            raise RenderError(f"Could not render page {page.number + 1}: {e}") from e


class RenderGuard:
    """Generation counter that lets only the newest render request paint."""

    def __init__(self):
        self._generation = 0

    def begin(self) -> int:
        self._generation += 1
        return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    def invalidate(self) -> None:
        self._generation += 1


@dataclass
class FieldStyle:
    """Appearance of an exported text field. Borderless and unfilled by default."""
    font: str = "Helv"
    font_size: float = 0  # 0 = auto size
    text_color: tuple = (0, 0, 0)
    border_width: float = 0
    border_color: Optional[tuple] = None
    fill_color: Optional[tuple] = None


class FormAuthor:
    """Adds text form fields to a PDF and serializes the result."""

    def load(self, data: bytes) -> fitz.Document:
        return open_pdf_bytes(data)

    def get_page(self, doc: fitz.Document, index: int) -> fitz.Page:
        """Load a page by 0-based index."""
        if not 0 <= index < doc.page_count:
            raise PageRangeError(f"Page index {index} is outside 0..{doc.page_count - 1}")
        return doc.load_page(index)

    def get_page_size(self, page: fitz.Page) -> Size:
        return Size(page.rect.width, page.rect.height)

    def create_text_field(self, doc: fitz.Document, name: str) -> fitz.Widget:
        widget = fitz.Widget()
        widget.field_type = fitz.PDF_WIDGET_TYPE_TEXT
        widget.field_name = name
        return widget

    def place_field(self, field: fitz.Widget, page: fitz.Page, rect: Rect,
                    style: FieldStyle) -> None:
        """Place a field at a bottom-left anchored PDF rectangle."""
        # PyMuPDF page space has its origin at the top-left
        height = page.rect.height
        shown = fitz.Rect(
            rect.x,
            height - (rect.y + rect.height),
            rect.x + rect.width,
            height - rect.y,
        )
        # page.rect is the displayed (rotated) page; widgets live on the unrotated one
        field.rect = shown * page.derotation_matrix
        field.text_font = style.font
        field.text_fontsize = style.font_size
        field.text_color = style.text_color
        field.border_width = style.border_width
        field.border_color = style.border_color
        field.fill_color = style.fill_color
        page.add_widget(field)

    def serialize(self, doc: fitz.Document) -> bytes:
        return doc.tobytes(garbage=4, deflate=True)

    def close(self, doc: fitz.Document) -> None:
        doc.close()
