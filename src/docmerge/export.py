"""Output formats, file naming and the PDF hand-off."""

import logging
import re
import unicodedata
from pathlib import Path
from typing import NamedTuple, Protocol

from docmerge.errors import PdfSourceMissingError

logger = logging.getLogger(__name__)


class OutputFormat(NamedTuple):
    """A downloadable document format."""

    name: str
    extension: str
    mime_type: str


FORMATS: dict[str, OutputFormat] = {
    "docx": OutputFormat(
        "docx", ".docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    ),
    "odt": OutputFormat("odt", ".odt", "application/vnd.oasis.opendocument.text"),
    "pdf": OutputFormat("pdf", ".pdf", "application/pdf"),
}

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[-\s]+")


def output_format(name: str) -> OutputFormat:
    """Look up a format by name.

    Raises:
        ValueError: If the format is unknown.
    """
    try:
        return FORMATS[name.lower().lstrip(".")]
    except KeyError:
        raise ValueError(f"Unknown output format: '{name}'. Supported: {', '.join(FORMATS)}") from None


def slugify(title: str) -> str:
    """Filesystem-safe version of a document title; ``document`` if empty."""
    text = unicodedata.normalize("NFKC", title).strip().lower()
    text = _SLUG_STRIP_RE.sub("", text)
    text = _SLUG_SPACE_RE.sub("-", text).strip("-_")
    return text[:80] or "document"


def build_output_path(output_dir: str | Path, title: str, file_format: str) -> Path:
    """Return an unused path for a generated document.

    ``Budget 2024`` in ``out/`` becomes ``out/budget-2024.docx``, then
    ``out/budget-2024-2.docx`` and so on.
    """
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    extension = output_format(file_format).extension
    stem = slugify(title)
    candidate = directory / f"{stem}{extension}"
    counter = 2
    while candidate.exists():
        candidate = directory / f"{stem}-{counter}{extension}"
        counter += 1
    return candidate


class PdfConverter(Protocol):
    """External service turning a DOCX/ODT document into PDF bytes."""

    def convert(self, document: bytes, source_format: str) -> bytes: ...


def export_pdf(document: bytes | None, source_format: str, converter: PdfConverter) -> bytes:
    """Hand a generated document to the PDF converter.

    Raises:
        PdfSourceMissingError: If there is no native document to convert.
        ValueError: If ``source_format`` is not a native document format.
    """
    if not document:
        raise PdfSourceMissingError("PDF export needs a generated DOCX or ODT document")
    if source_format not in ("docx", "odt"):
        raise ValueError(f"Cannot convert '{source_format}' documents to PDF")
    logger.info("Converting %s document (%d bytes) to PDF", source_format, len(document))
    return converter.convert(document, source_format)
