"""Per-format editing of template XML parts.

An adapter wraps one text-bearing XML part and knows how to splice emitted
content into it: inline at a token's position, or as blocks after the
token's paragraph. The assembler only talks to this interface.
"""

import copy
import logging
from abc import ABC, abstractmethod

from docx.enum.style import WD_STYLE_TYPE
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt

from docmerge.config import ConversionConfig
from docmerge.emitters.odf import OdfEmitter, OdfStyleRegistry, append_nodes
from docmerge.emitters.ooxml import NumberingRegistry, OoxmlEmitter
from docmerge.models.instructions import DocumentInstruction
from docmerge.namespaces import odf
from docmerge.scanning.packages import DocxPackage, OdtPackage, XmlPartHandle
from docmerge.scanning.slots import TextSlot

logger = logging.getLogger(__name__)

HEADING_SIZES_PT = {1: 16, 2: 14, 3: 13, 4: 12, 5: 11, 6: 11}


class PartAdapter(ABC):
    """Editing operations on one XML part of a template."""

    paragraph_tags: frozenset[str]
    row_tag: str
    table_tag: str
    cell_tag: str

    def __init__(self, package, handle: XmlPartHandle) -> None:
        self.package = package
        self.handle = handle

    @property
    def root(self):
        return self.handle.root

    def paragraphs(self, element=None) -> list:
        """Paragraphs of the part, or of ``element`` (itself included)."""
        element = self.root if element is None else element
        if element.tag in self.paragraph_tags:
            return [element]
        return self.package.paragraphs(element)

    def slots(self, paragraph) -> list[TextSlot]:
        return self.package.slots(paragraph)

    def row_of(self, element):
        """Nearest table row containing ``element``, or None."""
        for ancestor in element.iterancestors():
            if ancestor.tag == self.row_tag:
                return ancestor
        return None

    def insert_blocks_after(self, anchor, instructions: list[DocumentInstruction]):
        """Insert converted blocks after ``anchor``.

        Returns:
            The last inserted element, or ``anchor`` when nothing was added.
        """
        last = anchor
        for block in self.emitter.emit(instructions):
            last.addnext(block)
            last = block
        self._fix_container(anchor.getparent())
        return last

    def remove(self, element) -> None:
        """Remove an element, keeping its container valid."""
        parent = element.getparent()
        if parent is None:
            return
        self._detach(element)
        if element.tag == self.row_tag:
            table = parent
            while table is not None and table.tag != self.table_tag:
                table = table.getparent()
            if table is not None and next(table.iter(self.row_tag), None) is None:
                self.remove(table)
                return
        self._fix_container(parent)

    @staticmethod
    def _detach(element) -> None:
        parent = element.getparent()
        if element.tail:
            previous = element.getprevious()
            if previous is not None:
                previous.tail = (previous.tail or "") + element.tail
            else:
                parent.text = (parent.text or "") + element.tail
        parent.remove(element)

    def is_blank(self, paragraph) -> bool:
        if any(not slot.boundary and slot.text.strip() for slot in self.slots(paragraph)):
            return False
        return not any(True for _ in paragraph.iter(*self.opaque_tags))

    @property
    @abstractmethod
    def emitter(self): ...

    @property
    @abstractmethod
    def opaque_tags(self) -> tuple[str, ...]: ...

    @abstractmethod
    def splice_inline(self, slot: TextSlot, start: int, end: int, instructions: list[DocumentInstruction]) -> None:
        """Replace ``slot.text[start:end]`` with inline content (or nothing)."""

    @abstractmethod
    def can_remove(self, paragraph) -> bool: ...

    @abstractmethod
    def prepare_clone(self, element) -> None:
        """Make a cloned region unique (bookmarks, table names)."""

    @abstractmethod
    def _fix_container(self, container) -> None: ...

    def finalize(self) -> None:
        """Hook run once after all edits of the part."""


class _DocumentNumbering:
    """Creates the numbering part only once a list is actually emitted."""

    def __init__(self, document_part, config: ConversionConfig) -> None:
        self._document_part = document_part
        self._config = config
        self._registry: NumberingRegistry | None = None

    def add_list(self, ordering, depth: int, start: int | None = None) -> int:
        if self._registry is None:
            self._registry = NumberingRegistry.for_document_part(self._document_part, self._config)
        return self._registry.add_list(ordering, depth, start)


class DocxPartAdapter(PartAdapter):
    """Adapter for ``word/document.xml`` and header/footer parts."""

    paragraph_tags = frozenset({qn("w:p")})
    row_tag = qn("w:tr")
    table_tag = qn("w:tbl")
    cell_tag = qn("w:tc")

    _OPAQUE = tuple(qn(tag) for tag in ("w:drawing", "w:pict", "w:object", "w:fldSimple", "w:fldChar", "w:sectPr"))
    _RUN_CONTENT_SKIP = frozenset({qn("w:rPr")})

    def __init__(
        self,
        package: DocxPackage,
        handle: XmlPartHandle,
        numbering: _DocumentNumbering,
        heading_styles: dict[int, str],
        config: ConversionConfig,
    ) -> None:
        super().__init__(package, handle)
        self._emitter = OoxmlEmitter(part=handle.owner, numbering=numbering, config=config)
        self._emitter.heading_style_ids = heading_styles

    @property
    def emitter(self) -> OoxmlEmitter:
        return self._emitter

    @property
    def opaque_tags(self) -> tuple[str, ...]:
        return self._OPAQUE

    def splice_inline(self, slot: TextSlot, start: int, end: int, instructions: list[DocumentInstruction]) -> None:
        text_el = slot.element
        run = text_el.getparent()
        text = text_el.text or ""
        base_rpr = run.find(qn("w:rPr"))
        nodes = self._emitter.emit_inline(instructions, base_rpr) if instructions else []
        if run.getparent() is not None and run.getparent().tag == qn("w:hyperlink"):
            nodes = self._flatten_links(nodes)

        # Everything after the token moves into a new run of the same format.
        children = list(run)
        index = children.index(text_el)
        after = OxmlElement("w:r")
        if base_rpr is not None:
            after.append(copy.deepcopy(base_rpr))
        if text[end:]:
            after_text = OxmlElement("w:t")
            after_text.set(qn("xml:space"), "preserve")
            after_text.text = text[end:]
            after.append(after_text)
        for child in children[index + 1 :]:
            after.append(child)

        if text[:start]:
            text_el.text = text[:start]
            text_el.set(qn("xml:space"), "preserve")
        else:
            run.remove(text_el)

        anchor = run
        for node in nodes:
            anchor.addnext(node)
            anchor = node
        if any(child.tag not in self._RUN_CONTENT_SKIP for child in after):
            anchor.addnext(after)
        if not any(child.tag not in self._RUN_CONTENT_SKIP for child in run):
            run.getparent().remove(run)

    @staticmethod
    def _flatten_links(nodes: list) -> list:
        flat: list = []
        for node in nodes:
            if node.tag == qn("w:hyperlink"):
                flat.extend(list(node))
            else:
                flat.append(node)
        return flat

    def can_remove(self, paragraph) -> bool:
        ppr = paragraph.find(qn("w:pPr"))
        return ppr is None or ppr.find(qn("w:sectPr")) is None

    def prepare_clone(self, element) -> None:
        marks = list(element.iter(qn("w:bookmarkStart"), qn("w:bookmarkEnd")))
        for mark in marks:
            mark.getparent().remove(mark)

    def _fix_container(self, container) -> None:
        if container is None or container.tag != self.cell_tag:
            return
        last = container[-1] if len(container) else None
        if last is None or last.tag != qn("w:p"):
            container.append(OxmlElement("w:p"))

    @staticmethod
    def heading_style_ids(package: DocxPackage) -> dict[int, str]:
        """Map heading levels to the template's style ids.

        Templates in other UI languages use localized ids, so styles are
        matched by their built-in name when the English id is absent.
        """
        styles_element = package.document.styles.element
        ids: dict[int, str] = {}
        for level in range(1, 7):
            default_id = f"Heading{level}"
            if styles_element.get_by_id(default_id) is not None:
                ids[level] = default_id
                continue
            by_name = styles_element.get_by_name(f"heading {level}")
            ids[level] = by_name.styleId if by_name is not None else default_id
        return ids

    def finalize(self) -> None:
        if not self.handle.is_main:
            return
        styles = self.package.document.styles
        for level in sorted(self._emitter.headings_used):
            style_id = self._emitter.heading_style_ids[level]
            if styles.element.get_by_id(style_id) is not None:
                continue
            style = styles.add_style(f"Heading {level}", WD_STYLE_TYPE.PARAGRAPH)
            style.font.bold = True
            style.font.size = Pt(HEADING_SIZES_PT[level])
            style.paragraph_format.keep_with_next = True
            logger.debug("Added missing paragraph style %s", style.style_id)


class OdtPartAdapter(PartAdapter):
    """Adapter for ``content.xml`` and ``styles.xml``."""

    paragraph_tags = frozenset({odf("text:p"), odf("text:h")})
    row_tag = odf("table:table-row")
    table_tag = odf("table:table")
    cell_tag = odf("table:table-cell")

    _OPAQUE = (odf("draw:frame"), odf("text:note"), odf("office:annotation"))
    _CONTENT_TAGS = frozenset(
        {odf("text:p"), odf("text:h"), odf("text:list"), odf("table:table"), odf("text:section")}
    )

    def __init__(self, package: OdtPackage, handle: XmlPartHandle, config: ConversionConfig) -> None:
        super().__init__(package, handle)
        self.registry = OdfStyleRegistry(handle.root, config)
        self._emitter = OdfEmitter(self.registry, config)

    @property
    def emitter(self) -> OdfEmitter:
        return self._emitter

    @property
    def opaque_tags(self) -> tuple[str, ...]:
        return self._OPAQUE

    def splice_inline(self, slot: TextSlot, start: int, end: int, instructions: list[DocumentInstruction]) -> None:
        nodes = self._emitter.emit_inline(instructions) if instructions else []
        host = slot.element if slot.attr == "text" else slot.element.getparent()
        if any(a.tag == odf("text:a") for a in host.iterancestors()) or host.tag == odf("text:a"):
            nodes = self._flatten_links(nodes)

        text = slot.text
        slot.text = text[:start]
        if slot.attr == "text":
            parent, position = slot.element, 0
        else:
            parent = slot.element.getparent()
            position = parent.index(slot.element) + 1

        owner, attr = slot.element, slot.attr
        for node in nodes:
            if isinstance(node, str):
                setattr(owner, attr, (getattr(owner, attr) or "") + node)
                continue
            node.tail = None
            parent.insert(position, node)
            position += 1
            owner, attr = node, "tail"
        remainder = (getattr(owner, attr) or "") + text[end:]
        setattr(owner, attr, remainder or None)

    @staticmethod
    def _flatten_links(nodes: list) -> list:
        for node in nodes:
            if not isinstance(node, str) and node.tag == odf("text:a"):
                node.tag = odf("text:span")
                for name in list(node.attrib):
                    del node.attrib[name]
        return nodes

    def can_remove(self, paragraph) -> bool:
        return True

    def prepare_clone(self, element) -> None:
        tables = [element] if element.tag == self.table_tag else []
        tables.extend(element.iter(self.table_tag))
        for table in tables:
            table.set(odf("table:name"), self.registry.next_table_name())
        marks = list(element.iter(odf("text:bookmark"), odf("text:bookmark-start"), odf("text:bookmark-end")))
        for mark in marks:
            self._detach(mark)

    def _fix_container(self, container) -> None:
        if container is None or container.tag != self.cell_tag:
            return
        if not any(child.tag in self._CONTENT_TAGS for child in container):
            append_nodes(container, [container.makeelement(odf("text:p"), {})])
