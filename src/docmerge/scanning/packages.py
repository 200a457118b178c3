"""Reading and writing DOCX and ODT containers.

Both package types expose the same small surface: the XML parts that carry
document text, paragraph iteration, text slots and serialisation back to
bytes. Everything format specific above the container level lives in the
emitters and the assembly adapters.
"""

import io
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass

import docx
from docx.opc.constants import CONTENT_TYPE as CT
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn
from lxml import etree

from docmerge.errors import ParseError
from docmerge.namespaces import odf
from docmerge.scanning.slots import TextSlot, docx_slots, odf_slots

ODT_MIMETYPE = "application/vnd.oasis.opendocument.text"
ODT_TEXT_PARTS = ("content.xml", "styles.xml")

_DOCX_TEXT_CONTENT_TYPES = frozenset({CT.WML_DOCUMENT_MAIN, CT.WML_HEADER, CT.WML_FOOTER})

_XML_PARSER = etree.XMLParser(resolve_entities=False, huge_tree=True, remove_blank_text=False)


@dataclass
class XmlPartHandle:
    """One XML part of a package that may contain placeholders.

    Attributes:
        name: Part name inside the container.
        root: Root element of the parsed part.
        owner: The python-docx part for DOCX (needed for relationships).
        is_main: True for the document body part.
    """

    name: str
    root: object
    owner: object | None = None
    is_main: bool = False


class DocxPackage:
    """A ``.docx`` container opened with python-docx."""

    file_format = "docx"

    def __init__(self, data: bytes) -> None:
        try:
            self.document = docx.Document(io.BytesIO(data))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError, etree.XMLSyntaxError) as exc:
            raise ParseError(f"Unreadable DOCX container: {exc}") from exc

        main_part = self.document.part
        self.parts: list[XmlPartHandle] = [
            XmlPartHandle(name=str(main_part.partname), root=main_part.element, owner=main_part, is_main=True)
        ]
        for part in main_part.package.iter_parts():
            if part is main_part or part.content_type not in _DOCX_TEXT_CONTENT_TYPES:
                continue
            if not hasattr(part, "element"):
                continue
            self.parts.append(XmlPartHandle(name=str(part.partname), root=part.element, owner=part))

    @property
    def main(self) -> XmlPartHandle:
        return self.parts[0]

    @staticmethod
    def paragraphs(root) -> list:
        return list(root.iter(qn("w:p")))

    @staticmethod
    def slots(paragraph) -> list[TextSlot]:
        return docx_slots(paragraph)

    def to_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self.document.save(buffer)
        return buffer.getvalue()


class OdtPackage:
    """A ``.odt`` container handled as a zip of XML parts."""

    file_format = "odt"

    def __init__(self, data: bytes) -> None:
        try:
            archive = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as exc:
            raise ParseError(f"Unreadable ODT container: {exc}") from exc

        with archive:
            self._entries: list[tuple[zipfile.ZipInfo, bytes]] = [
                (info, archive.read(info.filename)) for info in archive.infolist()
            ]

        names = [info.filename for info, _ in self._entries]
        if "content.xml" not in names:
            raise ParseError("ODT container has no content.xml")

        self.parts: list[XmlPartHandle] = []
        for info, raw in self._entries:
            if info.filename not in ODT_TEXT_PARTS:
                continue
            try:
                root = etree.fromstring(raw, _XML_PARSER)
            except etree.XMLSyntaxError as exc:
                raise ParseError(f"Malformed {info.filename}: {exc}") from exc
            self.parts.append(
                XmlPartHandle(name=info.filename, root=root, is_main=info.filename == "content.xml")
            )
        self.parts.sort(key=lambda part: not part.is_main)

    @property
    def main(self) -> XmlPartHandle:
        return self.parts[0]

    @staticmethod
    def paragraphs(root) -> list:
        return list(root.iter(odf("text:p"), odf("text:h")))

    @staticmethod
    def slots(paragraph) -> list[TextSlot]:
        return odf_slots(paragraph)

    def to_bytes(self) -> bytes:
        """Serialise the package, keeping ``mimetype`` first and stored."""
        serialised = {
            part.name: etree.tostring(part.root, xml_declaration=True, encoding="UTF-8", standalone=True)
            for part in self.parts
        }
        mimetype = next((raw for info, raw in self._entries if info.filename == "mimetype"), None)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr(
                zipfile.ZipInfo("mimetype"), mimetype or ODT_MIMETYPE.encode("ascii"), compress_type=zipfile.ZIP_STORED
            )
            for info, raw in self._entries:
                if info.filename == "mimetype":
                    continue
                entry = zipfile.ZipInfo(info.filename, date_time=info.date_time)
                entry.external_attr = info.external_attr
                archive.writestr(
                    entry,
                    serialised.get(info.filename, raw),
                    compress_type=zipfile.ZIP_DEFLATED if info.filename.endswith(".xml") else info.compress_type,
                )
        return buffer.getvalue()


Package = DocxPackage | OdtPackage


def open_package(data: bytes, file_format: str) -> Package:
    """Open template bytes as the package type for ``file_format``.

    Raises:
        ParseError: If the container or a required XML part is unreadable.
        ValueError: If ``file_format`` is not ``docx`` or ``odt``.
    """
    if file_format == "docx":
        return DocxPackage(data)
    if file_format == "odt":
        return OdtPackage(data)
    raise ValueError(f"Unsupported package format: '{file_format}'")


def iter_paragraphs(package: Package) -> Iterator[tuple[XmlPartHandle, object]]:
    """Yield (part, paragraph) over every text part of the package."""
    for part in package.parts:
        for paragraph in package.paragraphs(part.root):
            yield part, paragraph
