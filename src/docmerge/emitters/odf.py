"""OpenDocument Text (ODT) emitter."""

import logging
import re

from lxml import etree

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
from docmerge.namespaces import ODF_NS, odf

logger = logging.getLogger(__name__)

STYLE_PREFIX = "Dm"
LIST_LEVELS = 10
HEADING_FONT_SIZES = {1: "18pt", 2: "16pt", 3: "14pt", 4: "13pt", 5: "12pt", 6: "11pt"}

TEXT_ALIGN: dict[Alignment, str] = {
    Alignment.LEFT: "start",
    Alignment.CENTER: "center",
    Alignment.RIGHT: "end",
    Alignment.JUSTIFY: "justify",
}
NUM_FORMATS: dict[ListOrdering, str] = {
    ListOrdering.DECIMAL: "1",
    ListOrdering.LOWER_ALPHA: "a",
    ListOrdering.UPPER_ALPHA: "A",
    ListOrdering.LOWER_ROMAN: "i",
    ListOrdering.UPPER_ROMAN: "I",
}
BULLET_CHARS = ("•", "◦", "▪")

_SPACES_RE = re.compile(r"( {2,}|\t|^ )")


def _set(element, **attrs: str) -> None:
    """Set prefixed attributes given as ``prefix__local=value``."""
    for name, value in attrs.items():
        prefix, local = name.split("__", 1)
        element.set(odf(f"{prefix}:{local.replace('_', '-')}"), str(value))


def make_element(name: str, **attrs: str):
    element = etree.Element(odf(name), nsmap=ODF_NS)
    _set(element, **attrs)
    return element


def sub_element(parent, name: str, **attrs: str):
    element = etree.SubElement(parent, odf(name))
    _set(element, **attrs)
    return element


def text_nodes(text: str) -> list:
    """Split text into strings and ``text:s``/``text:tab`` elements.

    ODF collapses runs of spaces, so every space after the first (and a
    leading one) becomes an explicit ``text:s``.
    """
    nodes: list = []
    position = 0
    text = xml_safe_text(text)
    for match in _SPACES_RE.finditer(text):
        if match.start() > position:
            nodes.append(text[position : match.start()])
        chunk = match.group(0)
        if chunk == "\t":
            nodes.append(make_element("text:tab"))
        elif match.start() == 0:
            nodes.append(make_element("text:s", text__c=len(chunk)) if len(chunk) > 1 else make_element("text:s"))
        else:
            nodes.append(" ")
            nodes.append(make_element("text:s", text__c=len(chunk) - 1) if len(chunk) > 2 else make_element("text:s"))
        position = match.end()
    if position < len(text):
        nodes.append(text[position:])
    return nodes


def append_nodes(parent, nodes: list) -> None:
    """Append strings and elements to ``parent`` in order."""
    for node in nodes:
        if isinstance(node, str):
            if len(parent):
                last = parent[-1]
                last.tail = (last.tail or "") + node
            else:
                parent.text = (parent.text or "") + node
        else:
            parent.append(node)


class OdfStyleRegistry:
    """Automatic styles added to one ODF XML part.

    Styles are created on first use and shared by identical requests.
    Names are prefixed and never collide with names already in the part.

    Args:
        root: Root element of ``content.xml`` or ``styles.xml``.
        config: Conversion settings.
    """

    def __init__(self, root=None, config: ConversionConfig | None = None) -> None:
        self.root = root if root is not None else make_element("office:document-content")
        self.config = config or ConversionConfig()
        self._text: dict[tuple[RunStyle, bool], str] = {}
        self._paragraph: dict[ParagraphStyle, str] = {}
        self._lists: dict[tuple[ListOrdering, ...], str] = {}
        self._cell: str | None = None
        self._table: str | None = None
        self._taken = {
            el.get(odf("style:name"))
            for el in self.root.iter(odf("style:style"), odf("text:list-style"))
            if el.get(odf("style:name"))
        }
        self.table_names = {el.get(odf("table:name")) for el in self.root.iter(odf("table:table"))}
        self._counter = 0
        self._table_counter = 0

    @property
    def automatic_styles(self):
        container = self.root.find(odf("office:automatic-styles"))
        if container is None:
            container = etree.Element(odf("office:automatic-styles"))
            anchor = self.root.find(odf("office:body"))
            if anchor is None:
                anchor = self.root.find(odf("office:master-styles"))
            if anchor is not None:
                anchor.addprevious(container)
            else:
                self.root.append(container)
        return container

    def _new_name(self, kind: str) -> str:
        while True:
            self._counter += 1
            name = f"{STYLE_PREFIX}{kind}{self._counter}"
            if name not in self._taken:
                self._taken.add(name)
                return name

    def next_table_name(self) -> str:
        while True:
            self._table_counter += 1
            name = f"{STYLE_PREFIX}Table{self._table_counter}"
            if name not in self.table_names:
                self.table_names.add(name)
                return name

    def text_style(self, style: RunStyle, link: bool = False) -> str | None:
        """Name of a text style for ``style``; None for plain text."""
        if style.is_plain and not link:
            return None
        key = (style, link)
        if key in self._text:
            return self._text[key]
        name = self._new_name("T")
        element = sub_element(self.automatic_styles, "style:style", style__name=name, style__family="text")
        props = sub_element(element, "style:text-properties")
        if style.bold:
            _set(props, fo__font_weight="bold", style__font_weight_asian="bold", style__font_weight_complex="bold")
        if style.italic:
            _set(props, fo__font_style="italic", style__font_style_asian="italic", style__font_style_complex="italic")
        if style.underline or link:
            _set(props, style__text_underline_style="solid", style__text_underline_width="auto")
            _set(props, style__text_underline_color="font-color")
        if style.strike:
            _set(props, style__text_line_through_style="solid")
        if style.monospace:
            _set(props, fo__font_family=f"'{self.config.monospace_font}'", style__font_pitch="fixed")
        if style.superscript:
            _set(props, style__text_position="super 58%")
        elif style.subscript:
            _set(props, style__text_position="sub 58%")
        if link:
            _set(props, fo__color=f"#{self.config.hyperlink_color}")
        self._text[key] = name
        return name

    def paragraph_style(self, style: ParagraphStyle) -> str | None:
        """Name of a paragraph style for ``style``; None for the default."""
        style = style.model_copy(update={"list_depth": None})
        if style.is_default:
            return None
        if style in self._paragraph:
            return self._paragraph[style]
        name = self._new_name("P")
        parent = f"Heading_20_{style.heading_level}" if style.heading_level else "Standard"
        element = sub_element(
            self.automatic_styles,
            "style:style",
            style__name=name,
            style__family="paragraph",
            style__parent_style_name=parent,
        )
        if style.heading_level:
            _set(element, style__default_outline_level=style.heading_level)
        props = sub_element(element, "style:paragraph-properties")
        if style.alignment is not None:
            _set(props, fo__text_align=TEXT_ALIGN[style.alignment])
        if style.indent_level:
            _set(props, fo__margin_left=f"{style.indent_level * self.config.odf_indent_step_cm:.2f}cm")
        if style.preformatted:
            _set(props, fo__margin_top="0cm", fo__margin_bottom="0cm")
        if style.heading_level or style.preformatted:
            text_props = sub_element(element, "style:text-properties")
            if style.heading_level:
                _set(
                    text_props,
                    fo__font_size=HEADING_FONT_SIZES[style.heading_level],
                    fo__font_weight="bold",
                    style__font_weight_asian="bold",
                    style__font_weight_complex="bold",
                )
            if style.preformatted:
                _set(text_props, fo__font_family=f"'{self.config.monospace_font}'", style__font_pitch="fixed")
        self._paragraph[style] = name
        return name

    def list_style(self, path: tuple[ListOrdering, ...]) -> str:
        """Name of a list style whose levels follow ``path``.

        Levels deeper than the path repeat its last ordering.
        """
        if path in self._lists:
            return self._lists[path]
        name = self._new_name("L")
        element = sub_element(self.automatic_styles, "text:list-style", style__name=name)
        for level in range(1, LIST_LEVELS + 1):
            ordering = path[min(level, len(path)) - 1]
            if ordering == ListOrdering.BULLET:
                level_el = sub_element(
                    element,
                    "text:list-level-style-bullet",
                    text__level=level,
                    text__bullet_char=BULLET_CHARS[(level - 1) % len(BULLET_CHARS)],
                )
            else:
                level_el = sub_element(
                    element,
                    "text:list-level-style-number",
                    text__level=level,
                    style__num_format=NUM_FORMATS[ordering],
                    style__num_suffix=".",
                )
            props = sub_element(
                level_el, "style:list-level-properties", text__list_level_position_and_space_mode="label-alignment"
            )
            margin = level * self.config.odf_indent_step_cm
            sub_element(
                props,
                "style:list-level-label-alignment",
                text__label_followed_by="listtab",
                text__list_tab_stop_position=f"{margin:.2f}cm",
                fo__text_indent="-0.64cm",
                fo__margin_left=f"{margin:.2f}cm",
            )
        self._lists[path] = name
        return name

    def table_style(self) -> str:
        if self._table is None:
            self._table = self._new_name("Tbl")
            element = sub_element(self.automatic_styles, "style:style", style__name=self._table, style__family="table")
            sub_element(element, "style:table-properties", style__rel_width="100%", table__align="margins")
        return self._table

    def cell_style(self) -> str:
        if self._cell is None:
            self._cell = self._new_name("Cell")
            element = sub_element(
                self.automatic_styles, "style:style", style__name=self._cell, style__family="table-cell"
            )
            sub_element(
                element,
                "style:table-cell-properties",
                fo__border=self.config.odf_table_border,
                fo__padding="0.1cm",
            )
        return self._cell


class _OdfList:
    def __init__(self, element, ordering: ListOrdering, start: int | None) -> None:
        self.element = element
        self.ordering = ordering
        self.start = start
        self.item = None
        self.items = 0


class _TableState:
    def __init__(self, element, grid_cols: int) -> None:
        self.element = element
        self.grid_cols = grid_cols
        self.header_rows = None
        self.body_started = False
        self.row = None
        self.filled = 0


class OdfEmitter(DocumentSink):
    """Emits ``text:``/``table:`` elements for one ODF XML part.

    Args:
        registry: Automatic style registry of the part the content goes to.
        config: Conversion settings.
    """

    def __init__(self, registry: OdfStyleRegistry | None = None, config: ConversionConfig | None = None) -> None:
        super().__init__(config)
        self.registry = registry or OdfStyleRegistry(config=self.config)

    # -- containers ---------------------------------------------------------

    def _item_at(self, depth: int):
        """The list item at ``depth`` receiving content, created if missing."""
        lists = self.frame.lists
        entry = lists[min(depth, len(lists) - 1)]
        if entry.item is None:
            entry.item = sub_element(entry.element, "text:list-header")
        return entry.item

    def _place_block(self, element, list_depth: int | None = None) -> None:
        if self.frame.lists and list_depth is not None:
            self._item_at(list_depth).append(element)
        elif self.frame.lists:
            self._item_at(len(self.frame.lists) - 1).append(element)
        else:
            self.frame.blocks.append(element)

    def _reopen_lists(self) -> None:
        """Continue the open lists in fresh elements after a top-level block.

        ODF list items cannot hold tables, so a table inside a list closes
        the list chain and the remaining items continue in new lists.
        """
        parent_item = None
        for index, entry in enumerate(self.frame.lists):
            style_name = entry.element.get(odf("text:style-name"))
            if index == 0:
                element = make_element("text:list", text__continue_numbering="true")
                self.frame.blocks.append(element)
            else:
                element = sub_element(parent_item, "text:list", text__continue_numbering="true")
            if style_name:
                element.set(odf("text:style-name"), style_name)
            entry.element = element
            entry.item = None
            if index < len(self.frame.lists) - 1:
                parent_item = sub_element(element, "text:list-header")
                entry.item = parent_item

    # -- paragraphs ---------------------------------------------------------

    def _paragraph_element(self, style: ParagraphStyle, parent=None):
        name = self.registry.paragraph_style(style)
        if style.heading_level:
            attrs = {"text__outline_level": style.heading_level}
            tag = "text:h"
        else:
            attrs = {}
            tag = "text:p"
        if parent is None:
            element = make_element(tag, **attrs)
        else:
            element = sub_element(parent, tag, **attrs)
        if name:
            element.set(odf("text:style-name"), name)
        return element

    def _ensure_paragraph(self):
        if self.frame.paragraph is None:
            element = self._paragraph_element(ParagraphStyle())
            self._place_block(element)
            self.frame.paragraph = element
        return self.frame.paragraph

    def _on_paragraph(self, instruction: Paragraph) -> None:
        element = self._paragraph_element(instruction.style)
        self._place_block(element, instruction.style.list_depth)
        self.frame.paragraph = element

    def _on_run(self, instruction: Run) -> None:
        append_nodes(self._ensure_paragraph(), self._inline_run(instruction))

    def _on_line_break(self, instruction: LineBreak) -> None:
        self._ensure_paragraph().append(self._inline_break())

    def _on_hyperlink(self, instruction: Hyperlink) -> None:
        append_nodes(self._ensure_paragraph(), self._inline_hyperlink(instruction))

    # -- runs ---------------------------------------------------------------

    def _inline_run(self, run: Run, link: bool = False) -> list:
        nodes = text_nodes(run.text)
        name = self.registry.text_style(run.style, link)
        if name is None:
            return nodes
        span = make_element("text:span", text__style_name=name)
        append_nodes(span, nodes)
        return [span]

    def _inline_break(self):
        return make_element("text:line-break")

    def _inline_hyperlink(self, link: Hyperlink) -> list:
        anchor = make_element("text:a", xlink__type="simple", xlink__href=link.url.strip())
        for run in link.runs:
            append_nodes(anchor, self._inline_run(run, link=True))
        return [anchor]

    # -- lists --------------------------------------------------------------

    def _on_begin_list(self, instruction: BeginList) -> None:
        self.frame.paragraph = None
        context = instruction.context
        path = tuple(entry.ordering for entry in self.frame.lists) + (context.ordering,)
        style_name = self.registry.list_style(path)
        if self.frame.lists:
            element = sub_element(self._item_at(len(self.frame.lists) - 1), "text:list", text__style_name=style_name)
        else:
            element = make_element("text:list", text__style_name=style_name)
            self.frame.blocks.append(element)
        self.frame.lists.append(_OdfList(element, context.ordering, context.start))

    def _on_list_item(self, instruction: ListItem) -> None:
        if not self.frame.lists:
            self._on_begin_list(BeginList(context={"depth": instruction.depth, "ordering": instruction.ordering}))
        entry = self.frame.lists[-1]
        item = sub_element(entry.element, "text:list-item")
        if entry.items == 0 and entry.start is not None and entry.start != 1:
            _set(item, text__start_value=entry.start)
        entry.items += 1
        entry.item = item
        style = instruction.style.model_copy(update={"heading_level": None})
        self.frame.paragraph = self._paragraph_element(style, parent=item)

    def _on_end_list(self, instruction: EndList) -> None:
        self.frame.paragraph = None
        if self.frame.lists:
            self.frame.lists.pop()

    # -- tables -------------------------------------------------------------

    def _on_begin_table(self, instruction: BeginTable) -> None:
        self.frame.paragraph = None
        grid_cols = max(1, instruction.grid_cols, instruction.cols)
        table = make_element(
            "table:table",
            table__name=self.registry.next_table_name(),
            table__style_name=self.registry.table_style(),
        )
        sub_element(table, "table:table-column", table__number_columns_repeated=grid_cols)
        if self.frame.lists:
            self.frame.blocks.append(table)
            self._reopen_lists()
        else:
            self.frame.blocks.append(table)
        self.frame.table = _TableState(table, grid_cols)

    def _pad_row(self, table: _TableState) -> None:
        while table.row is not None and table.filled < table.grid_cols:
            cell = sub_element(
                table.row, "table:table-cell", table__style_name=self.registry.cell_style(), office__value_type="string"
            )
            sub_element(cell, "text:p")
            table.filled += 1

    def _on_table_row(self, instruction: TableRow) -> None:
        table = self.frame.table
        self._pad_row(table)
        if instruction.header and not table.body_started:
            if table.header_rows is None:
                table.header_rows = sub_element(table.element, "table:table-header-rows")
            parent = table.header_rows
        else:
            table.body_started = True
            parent = table.element
        table.row = sub_element(parent, "table:table-row")
        table.filled = 0

    def _on_table_cell(self, instruction: TableCell) -> None:
        table = self.frame.table
        colspan = max(1, min(instruction.colspan, table.grid_cols - table.filled))
        cell = sub_element(
            table.row, "table:table-cell", table__style_name=self.registry.cell_style(), office__value_type="string"
        )
        if colspan > 1:
            _set(cell, table__number_columns_spanned=colspan)
        blocks = self.emit(instruction.content)
        for block in blocks:
            cell.append(block)
        if not blocks:
            sub_element(cell, "text:p")
        for _ in range(colspan - 1):
            sub_element(table.row, "table:covered-table-cell")
        table.filled += colspan

    def _on_end_table(self, instruction: EndTable) -> None:
        self._pad_row(self.frame.table)
        self.frame.table = None
        self.frame.paragraph = None
