"""BoxForms - draw boxes on PDF pages and export them as text form fields."""

__version__ = "1.0.0"
