"""Shared fixtures: small DOCX and ODT templates built in memory."""

import io
import zipfile
from collections.abc import Callable
from pathlib import Path

import docx
import pytest
from docx.oxml.ns import qn
from lxml import etree

from docmerge.namespaces import ODF_NS, odf

W_NS = {"w": "http://schemas.openxmlformats.org/wordprocessingml/2006/main"}

_NS_DECLS = " ".join(f'xmlns:{prefix}="{uri}"' for prefix, uri in ODF_NS.items() if prefix != "manifest")

ODT_CONTENT = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    f'<office:document-content {_NS_DECLS} office:version="1.2">'
    "<office:automatic-styles/>"
    "<office:body><office:text>{body}</office:text></office:body>"
    "</office:document-content>"
)
ODT_STYLES = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    f'<office:document-styles {_NS_DECLS} office:version="1.2">'
    "<office:styles/>"
    "<office:master-styles/>"
    "</office:document-styles>"
)
ODT_MANIFEST = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<manifest:manifest xmlns:manifest="urn:oasis:names:tc:opendocument:xmlns:manifest:1.0" manifest:version="1.2">'
    '<manifest:file-entry manifest:full-path="/" manifest:media-type="application/vnd.oasis.opendocument.text"/>'
    '<manifest:file-entry manifest:full-path="content.xml" manifest:media-type="text/xml"/>'
    '<manifest:file-entry manifest:full-path="styles.xml" manifest:media-type="text/xml"/>'
    "</manifest:manifest>"
)


def build_docx(paragraphs: list, table: list[list[str]] | None = None, header: str = "") -> bytes:
    """A DOCX whose paragraphs are strings or lists of run texts.

    Args:
        paragraphs: Each entry is one paragraph; a list gives its runs.
        table: Optional rows of cell texts appended after the paragraphs.
        header: Optional text of the default header.
    """
    document = docx.Document()
    for entry in paragraphs:
        paragraph = document.add_paragraph()
        runs = entry if isinstance(entry, list) else [entry]
        for index, text in enumerate(runs):
            run = paragraph.add_run(text)
            if isinstance(entry, list) and index == 0:
                run.bold = True
    if table:
        grid = document.add_table(rows=len(table), cols=len(table[0]))
        for row_index, row in enumerate(table):
            for col_index, text in enumerate(row):
                grid.cell(row_index, col_index).text = text
    if header:
        document.sections[0].header.paragraphs[0].text = header
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def build_odt(body: str) -> bytes:
    """An ODT whose ``office:text`` holds ``body`` (ODF markup)."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr(
            zipfile.ZipInfo("mimetype"), "application/vnd.oasis.opendocument.text", compress_type=zipfile.ZIP_STORED
        )
        archive.writestr("content.xml", ODT_CONTENT.format(body=body), compress_type=zipfile.ZIP_DEFLATED)
        archive.writestr("styles.xml", ODT_STYLES, compress_type=zipfile.ZIP_DEFLATED)
        archive.writestr("META-INF/manifest.xml", ODT_MANIFEST, compress_type=zipfile.ZIP_DEFLATED)
    return buffer.getvalue()


def docx_body(data: bytes):
    """Root element of ``word/document.xml`` of generated bytes."""
    return docx.Document(io.BytesIO(data)).element


def docx_paragraph_texts(data: bytes) -> list[str]:
    """Text of every body paragraph, tables included, in document order."""
    body = docx_body(data)
    return ["".join(t.text or "" for t in p.iter(qn("w:t"))) for p in body.iter(qn("w:p"))]


def odt_content(data: bytes):
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return etree.fromstring(archive.read("content.xml"))


def odt_paragraph_texts(data: bytes) -> list[str]:
    root = odt_content(data)
    return ["".join(p.itertext()) for p in root.iter(odf("text:p"), odf("text:h"))]


@pytest.fixture
def docx_template(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a DOCX template to ``tmp_path``."""

    def factory(paragraphs: list, name: str = "template.docx", **kwargs) -> Path:
        path = tmp_path / name
        path.write_bytes(build_docx(paragraphs, **kwargs))
        return path

    return factory


@pytest.fixture
def odt_template(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing an ODT template to ``tmp_path``."""

    def factory(body: str, name: str = "template.odt") -> Path:
        path = tmp_path / name
        path.write_bytes(build_odt(body))
        return path

    return factory
