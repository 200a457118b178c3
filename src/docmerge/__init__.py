"""docmerge: fill DOCX and ODT templates with plain and rich-text values."""

from docmerge.generator import DocumentGenerator, GeneratedDocument

__all__ = ["DocumentGenerator", "GeneratedDocument"]
