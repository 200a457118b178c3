"""WordprocessingML (DOCX) emitter."""

import copy
import logging

from docx.opc.constants import CONTENT_TYPE as CT
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.opc.packuri import PackURI
from docx.oxml import OxmlElement, parse_xml
from docx.oxml.ns import nsdecls, qn
from docx.parts.numbering import NumberingPart

from docmerge.config import ConversionConfig
from docmerge.emitters.base import DocumentSink, xml_safe_text
from docmerge.models.instructions import (
    Alignment,
    BeginList,
    BeginTable,
    EndList,
    EndTable,
    Hyperlink,
    LineBreak,
    ListItem,
    ListOrdering,
    Paragraph,
    ParagraphStyle,
    Run,
    RunStyle,
    TableCell,
    TableRow,
)

logger = logging.getLogger(__name__)

# Usable width of an A4 page with 2 cm margins.
TEXT_WIDTH_TWIPS = 9638
MAX_ILVL = 8

JUSTIFICATION: dict[Alignment, str] = {
    Alignment.LEFT: "left",
    Alignment.CENTER: "center",
    Alignment.RIGHT: "right",
    Alignment.JUSTIFY: "both",
}

NUM_FORMATS: dict[ListOrdering, str] = {
    ListOrdering.BULLET: "bullet",
    ListOrdering.DECIMAL: "decimal",
    ListOrdering.LOWER_ALPHA: "lowerLetter",
    ListOrdering.UPPER_ALPHA: "upperLetter",
    ListOrdering.LOWER_ROMAN: "lowerRoman",
    ListOrdering.UPPER_ROMAN: "upperRoman",
}
BULLET_CHARS = ("•", "◦", "▪")

# Child order of w:rPr mandated by the WordprocessingML schema.
RPR_ORDER = [
    qn(tag)
    for tag in (
        "w:rStyle",
        "w:rFonts",
        "w:b",
        "w:bCs",
        "w:i",
        "w:iCs",
        "w:caps",
        "w:smallCaps",
        "w:strike",
        "w:dstrike",
        "w:outline",
        "w:shadow",
        "w:emboss",
        "w:imprint",
        "w:noProof",
        "w:snapToGrid",
        "w:vanish",
        "w:webHidden",
        "w:color",
        "w:spacing",
        "w:w",
        "w:kern",
        "w:position",
        "w:sz",
        "w:szCs",
        "w:highlight",
        "w:u",
        "w:effect",
        "w:bdr",
        "w:shd",
        "w:fitText",
        "w:vertAlign",
        "w:rtl",
        "w:cs",
        "w:em",
        "w:lang",
        "w:eastAsianLayout",
        "w:specVanish",
        "w:oMath",
    )
]
_RPR_RANK = {tag: rank for rank, tag in enumerate(RPR_ORDER)}

EMPTY_NUMBERING_XML = f"<w:numbering {nsdecls('w')}/>"


def _element(tag: str, **attrs: str):
    el = OxmlElement(tag)
    for name, value in attrs.items():
        el.set(qn(f"w:{name}"), str(value))
    return el


def set_rpr_child(rpr, child) -> None:
    """Insert or replace a run property, keeping schema order."""
    existing = rpr.find(child.tag)
    if existing is not None:
        rpr.replace(existing, child)
        return
    rank = _RPR_RANK.get(child.tag, len(RPR_ORDER))
    for index, sibling in enumerate(rpr):
        if _RPR_RANK.get(sibling.tag, len(RPR_ORDER)) > rank:
            rpr.insert(index, child)
            return
    rpr.append(child)


class NumberingRegistry:
    """Owns the list definitions added to a document's numbering part.

    One ``w:abstractNum`` exists per distinct (ordering, depth) pair; every
    list occurrence gets its own ``w:num`` so numbering restarts per list.
    Ids continue after those already in the template.
    """

    def __init__(self, root=None, config: ConversionConfig | None = None) -> None:
        self.root = root if root is not None else parse_xml(EMPTY_NUMBERING_XML)
        self.config = config or ConversionConfig()
        self._abstract_ids: dict[tuple[ListOrdering, int], int] = {}
        self._next_abstract_id = 1 + max(
            (int(el.get(qn("w:abstractNumId"))) for el in self.root.iterchildren(qn("w:abstractNum"))),
            default=-1,
        )
        self._next_num_id = 1 + max(
            (int(el.get(qn("w:numId"))) for el in self.root.iterchildren(qn("w:num"))),
            default=0,
        )

    @classmethod
    def for_document_part(cls, document_part, config: ConversionConfig | None = None) -> "NumberingRegistry":
        """Attach to the numbering part of a document, creating it if absent."""
        try:
            numbering_part = document_part.part_related_by(RT.NUMBERING)
        except KeyError:
            package = document_part.package
            partname = PackURI("/word/numbering.xml")
            if any(part.partname == partname for part in package.iter_parts()):
                partname = package.next_partname("/word/numbering%d.xml")
            numbering_part = NumberingPart(partname, CT.WML_NUMBERING, parse_xml(EMPTY_NUMBERING_XML), package)
            document_part.relate_to(numbering_part, RT.NUMBERING)
        return cls(numbering_part.element, config)

    def add_list(self, ordering: ListOrdering, depth: int, start: int | None = None) -> int:
        """Register one list occurrence.

        Returns:
            The ``w:numId`` its items must reference.
        """
        key = (ordering, depth)
        abstract_id = self._abstract_ids.get(key)
        if abstract_id is None:
            abstract_id = self._add_abstract(ordering)
            self._abstract_ids[key] = abstract_id

        num_id = self._next_num_id
        self._next_num_id += 1
        ilvl = min(depth, MAX_ILVL)
        num = parse_xml(
            f'<w:num {nsdecls("w")} w:numId="{num_id}">'
            f'<w:abstractNumId w:val="{abstract_id}"/>'
            f'<w:lvlOverride w:ilvl="{ilvl}"><w:startOverride w:val="{start if start is not None else 1}"/></w:lvlOverride>'
            f"</w:num>"
        )
        cleanup = self.root.find(qn("w:numIdMacAtCleanup"))
        if cleanup is not None:
            cleanup.addprevious(num)
        else:
            self.root.append(num)
        return num_id

    def _add_abstract(self, ordering: ListOrdering) -> int:
        abstract_id = self._next_abstract_id
        self._next_abstract_id += 1
        step = self.config.indent_step_twips
        hanging = self.config.list_hanging_twips

        levels = []
        for ilvl in range(MAX_ILVL + 1):
            if ordering == ListOrdering.BULLET:
                text = BULLET_CHARS[ilvl % len(BULLET_CHARS)]
            else:
                text = f"%{ilvl + 1}."
            levels.append(
                f'<w:lvl w:ilvl="{ilvl}">'
                f'<w:start w:val="1"/>'
                f'<w:numFmt w:val="{NUM_FORMATS[ordering]}"/>'
                f'<w:lvlText w:val="{text}"/>'
                f'<w:lvlJc w:val="left"/>'
                f'<w:pPr><w:ind w:left="{(ilvl + 1) * step}" w:hanging="{hanging}"/></w:pPr>'
                f"</w:lvl>"
            )
        abstract = parse_xml(
            f'<w:abstractNum {nsdecls("w")} w:abstractNumId="{abstract_id}">'
            f'<w:multiLevelType w:val="multilevel"/>'
            f'{"".join(levels)}'
            f"</w:abstractNum>"
        )

        anchors = [el for el in self.root if el.tag in (qn("w:abstractNum"), qn("w:numPicBullet"))]
        if anchors:
            anchors[-1].addnext(abstract)
        else:
            self.root.insert(0, abstract)
        return abstract_id


class _TableState:
    def __init__(self, element, grid_cols: int, col_width: int) -> None:
        self.element = element
        self.grid_cols = grid_cols
        self.col_width = col_width
        self.row = None
        self.filled = 0


class OoxmlEmitter(DocumentSink):
    """Emits ``w:p``/``w:tbl`` elements for a document part.

    Args:
        part: The python-docx part the content will live in; hyperlink
            relationships are added to it. Without a part, links degrade
            to styled runs.
        numbering: Registry receiving list definitions.
        config: Conversion settings.
    """

    def __init__(
        self,
        part=None,
        numbering: NumberingRegistry | None = None,
        config: ConversionConfig | None = None,
    ) -> None:
        super().__init__(config)
        self.part = part
        self.numbering = numbering or NumberingRegistry(config=self.config)
        self.headings_used: set[int] = set()
        self.heading_style_ids: dict[int, str] = {level: f"Heading{level}" for level in range(1, 7)}
        self._base_rpr = None

    def emit_inline(self, instructions, base_rpr=None) -> list:
        """Emit runs that inherit ``base_rpr`` (the host run's properties)."""
        self._base_rpr = base_rpr
        try:
            return super().emit_inline(instructions)
        finally:
            self._base_rpr = None

    # -- paragraphs -------------------------------------------------------

    def _paragraph_element(self, style: ParagraphStyle, numbering: tuple[int, int] | None = None):
        p = OxmlElement("w:p")
        ppr = OxmlElement("w:pPr")
        step = self.config.indent_step_twips

        if style.heading_level:
            self.headings_used.add(style.heading_level)
            ppr.append(_element("w:pStyle", val=self.heading_style_ids[style.heading_level]))
        if numbering is not None:
            num_id, ilvl = numbering
            num_pr = OxmlElement("w:numPr")
            num_pr.append(_element("w:ilvl", val=ilvl))
            num_pr.append(_element("w:numId", val=num_id))
            ppr.append(num_pr)
        if style.preformatted:
            ppr.append(_element("w:spacing", before=0, after=0))

        left = style.indent_level * step
        if style.list_depth is not None:
            left += (style.list_depth + 1) * step
        if numbering is not None:
            ppr.append(_element("w:ind", left=left, hanging=self.config.list_hanging_twips))
        elif left:
            ppr.append(_element("w:ind", left=left))

        if style.alignment is not None:
            ppr.append(_element("w:jc", val=JUSTIFICATION[style.alignment]))
        if style.heading_level:
            ppr.append(_element("w:outlineLvl", val=style.heading_level - 1))

        if len(ppr):
            p.append(ppr)
        return p

    def _open_paragraph(self, element) -> None:
        self.frame.blocks.append(element)
        self.frame.paragraph = element

    def _ensure_paragraph(self):
        if self.frame.paragraph is None:
            self._open_paragraph(self._paragraph_element(ParagraphStyle()))
        return self.frame.paragraph

    def _close_paragraph(self) -> None:
        self.frame.paragraph = None

    def _on_paragraph(self, instruction: Paragraph) -> None:
        self._open_paragraph(self._paragraph_element(instruction.style))

    def _on_run(self, instruction: Run) -> None:
        self._ensure_paragraph().extend(self._inline_run(instruction))

    def _on_line_break(self, instruction: LineBreak) -> None:
        self._ensure_paragraph().append(self._inline_break())

    def _on_hyperlink(self, instruction: Hyperlink) -> None:
        self._ensure_paragraph().extend(self._inline_hyperlink(instruction))

    # -- runs ---------------------------------------------------------------

    def _run_properties(self, style: RunStyle, link: bool = False):
        rpr = copy.deepcopy(self._base_rpr) if self._base_rpr is not None else OxmlElement("w:rPr")
        font = self.config.monospace_font
        if style.monospace:
            set_rpr_child(rpr, _element("w:rFonts", ascii=font, hAnsi=font, cs=font))
        if style.bold:
            set_rpr_child(rpr, OxmlElement("w:b"))
        if style.italic:
            set_rpr_child(rpr, OxmlElement("w:i"))
        if style.strike:
            set_rpr_child(rpr, OxmlElement("w:strike"))
        if link:
            set_rpr_child(rpr, _element("w:color", val=self.config.hyperlink_color))
        if style.underline or link:
            set_rpr_child(rpr, _element("w:u", val="single"))
        if style.superscript:
            set_rpr_child(rpr, _element("w:vertAlign", val="superscript"))
        elif style.subscript:
            set_rpr_child(rpr, _element("w:vertAlign", val="subscript"))
        return rpr if len(rpr) else None

    def _make_run(self, run: Run, link: bool = False):
        r = OxmlElement("w:r")
        rpr = self._run_properties(run.style, link)
        if rpr is not None:
            r.append(rpr)
        for index, piece in enumerate(xml_safe_text(run.text).split("\t")):
            if index:
                r.append(OxmlElement("w:tab"))
            if piece:
                t = OxmlElement("w:t")
                t.set(qn("xml:space"), "preserve")
                t.text = piece
                r.append(t)
        return r

    def _inline_run(self, run: Run) -> list:
        return [self._make_run(run)]

    def _inline_break(self):
        r = OxmlElement("w:r")
        rpr = copy.deepcopy(self._base_rpr) if self._base_rpr is not None else None
        if rpr is not None and len(rpr):
            r.append(rpr)
        r.append(OxmlElement("w:br"))
        return r

    def _inline_hyperlink(self, link: Hyperlink) -> list:
        url = link.url.strip()
        if url.startswith("#"):
            if len(url) == 1:
                return [self._make_run(run) for run in link.runs]
            element = OxmlElement("w:hyperlink")
            element.set(qn("w:anchor"), url[1:])
        elif self.part is None:
            logger.warning("No document part to hold link %s; emitting text only", url)
            return [self._make_run(run, link=True) for run in link.runs]
        else:
            element = OxmlElement("w:hyperlink")
            element.set(qn("r:id"), self.part.relate_to(url, RT.HYPERLINK, is_external=True))
        element.set(qn("w:history"), "1")
        for run in link.runs:
            element.append(self._make_run(run, link=True))
        return [element]

    # -- lists --------------------------------------------------------------

    def _on_begin_list(self, instruction: BeginList) -> None:
        self._close_paragraph()
        context = instruction.context
        self.frame.lists.append(self.numbering.add_list(context.ordering, context.depth, context.start))

    def _on_list_item(self, instruction: ListItem) -> None:
        if not self.frame.lists:
            self.frame.lists.append(self.numbering.add_list(instruction.ordering, instruction.depth))
        style = instruction.style.model_copy(update={"list_depth": instruction.depth, "heading_level": None})
        numbering = (self.frame.lists[-1], min(instruction.depth, MAX_ILVL))
        self._open_paragraph(self._paragraph_element(style, numbering))

    def _on_end_list(self, instruction: EndList) -> None:
        self._close_paragraph()
        if self.frame.lists:
            self.frame.lists.pop()

    # -- tables -------------------------------------------------------------

    def _on_begin_table(self, instruction: BeginTable) -> None:
        self._close_paragraph()
        grid_cols = max(1, instruction.grid_cols, instruction.cols)
        col_width = TEXT_WIDTH_TWIPS // grid_cols
        border = self.config.table_border_size

        tbl = OxmlElement("w:tbl")
        tbl_pr = OxmlElement("w:tblPr")
        tbl_pr.append(_element("w:tblW", w=self.config.table_width_pct, type="pct"))
        borders = OxmlElement("w:tblBorders")
        for side in ("top", "left", "bottom", "right", "insideH", "insideV"):
            borders.append(_element(f"w:{side}", val="single", sz=border, space=0, color="auto"))
        tbl_pr.append(borders)
        tbl_pr.append(_element("w:tblLayout", type="fixed"))
        tbl.append(tbl_pr)

        grid = OxmlElement("w:tblGrid")
        for _ in range(grid_cols):
            grid.append(_element("w:gridCol", w=col_width))
        tbl.append(grid)

        self.frame.blocks.append(tbl)
        self.frame.table = _TableState(tbl, grid_cols, col_width)

    def _pad_row(self, table: _TableState) -> None:
        while table.row is not None and table.filled < table.grid_cols:
            table.row.append(self._cell_element(table, 1, []))
            table.filled += 1

    def _on_table_row(self, instruction: TableRow) -> None:
        table = self.frame.table
        self._pad_row(table)
        tr = OxmlElement("w:tr")
        if instruction.header:
            tr_pr = OxmlElement("w:trPr")
            tr_pr.append(OxmlElement("w:tblHeader"))
            tr.append(tr_pr)
        table.element.append(tr)
        table.row = tr
        table.filled = 0

    def _cell_element(self, table: _TableState, colspan: int, blocks: list):
        tc = OxmlElement("w:tc")
        tc_pr = OxmlElement("w:tcPr")
        tc_pr.append(_element("w:tcW", w=table.col_width * colspan, type="dxa"))
        if colspan > 1:
            tc_pr.append(_element("w:gridSpan", val=colspan))
        tc.append(tc_pr)
        tc.extend(blocks)
        if not blocks or blocks[-1].tag != qn("w:p"):
            tc.append(OxmlElement("w:p"))
        return tc

    def _on_table_cell(self, instruction: TableCell) -> None:
        table = self.frame.table
        colspan = max(1, min(instruction.colspan, table.grid_cols - table.filled))
        blocks = self.emit(instruction.content)
        table.row.append(self._cell_element(table, colspan, blocks))
        table.filled += colspan

    def _on_end_table(self, instruction: EndTable) -> None:
        self._pad_row(self.frame.table)
        self.frame.table = None
        self._close_paragraph()
