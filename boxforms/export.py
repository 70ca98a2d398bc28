"""Export of annotations as text form fields.

Annotations are grouped by page, converted from canvas pixels to PDF
rectangles, and placed on a copy of the original document through a form
authoring backend (FormAuthor by default).
"""

import logging
import os
import tempfile
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from .errors import ExportError
from .geometry import Rect, Size, box_to_pdf_rect
from .models import Annotation
from .pdf_backend import FieldStyle, FormAuthor

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "annotated.pdf"


@dataclass
class PageBatch:
    """All annotations placed on one page, in insertion order."""
    page: int
    annotations: list[Annotation] = field(default_factory=list)


@dataclass
class FieldPlacement:
    name: str
    page: int
    rect: Rect  # PDF space, bottom-left origin


def group_by_page(annotations: list[Annotation]) -> list[PageBatch]:
    """Partition annotations by page, keeping their order within each page."""
    batches: dict[int, PageBatch] = {}
    for annotation in annotations:
        if annotation.page not in batches:
            batches[annotation.page] = PageBatch(annotation.page)
        batches[annotation.page].annotations.append(annotation)
    return [batches[page] for page in sorted(batches)]


def plan_placements(batch: PageBatch, pdf_size: Size) -> list[FieldPlacement]:
    """Compute the PDF rectangle of every field in a batch.

    Each box is converted against the canvas it was drawn on, which is the
    page size at the box's render scale.
    """
    placements = []
    for annotation in batch.annotations:
        canvas_size = pdf_size.scaled(annotation.scale)
        rect = box_to_pdf_rect(annotation.rect(), canvas_size, pdf_size)
        placements.append(FieldPlacement(annotation.field_name(), batch.page, rect))
    return placements


def duplicate_field_names(annotations: list[Annotation]) -> list[str]:
    counts = Counter(a.field_name() for a in annotations)
    return sorted(name for name, count in counts.items() if count > 1)


class ExportMapper:
    """Builds the annotated PDF from the original bytes."""

    def __init__(self, author: Optional[FormAuthor] = None,
                 style: Optional[FieldStyle] = None):
        self._author = author or FormAuthor()
        self._style = style or FieldStyle()

    def export(self, annotations: list[Annotation], source: bytes) -> bytes:
        """Return the new PDF bytes, or raise ExportError.

        Field names are passed through as they are. Duplicates are allowed
        and only reported in the log.
        """
        duplicates = duplicate_field_names(annotations)
        if duplicates:
            logger.warning("Exporting duplicate field names: %s", ", ".join(duplicates))

        author = self._author
        try:
            doc = author.load(source)
        except Exception as e:
            raise ExportError(f"Could not load the original PDF: {e}") from e

        try:
            placed = 0
            for batch in group_by_page(annotations):
                page = author.get_page(doc, batch.page - 1)
                pdf_size = author.get_page_size(page)
                for placement in plan_placements(batch, pdf_size):
                    text_field = author.create_text_field(doc, placement.name)
                    author.place_field(text_field, page, placement.rect, self._style)
                    placed += 1
            data = author.serialize(doc)
        except Exception as e:
            raise ExportError(f"Could not build the annotated PDF: {e}") from e
        finally:
            author.close(doc)

        logger.info("Exported %d field(s), %d bytes", placed, len(data))
        return data


def write_export(path: str, data: bytes) -> None:
    """Write exported bytes so that path is either replaced whole or untouched."""
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(prefix=".boxforms-", suffix=".pdf", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
