"""Exceptions raised by BoxForms."""


class BoxFormsError(Exception):
    """Base class for all BoxForms errors."""


class InputError(BoxFormsError):
    """The chosen file is not a PDF."""


class LoadError(BoxFormsError):
    """PDF bytes could not be parsed."""


class PageRangeError(BoxFormsError, IndexError):
    """Requested page number is outside the document."""


class RenderError(BoxFormsError):
    """A page could not be rendered."""


class ExportError(BoxFormsError):
    """Building the annotated PDF failed. No output was produced."""
