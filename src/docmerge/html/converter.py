"""HTML to document instruction conversion.

The converter walks the parsed HTML tree once, carrying a StyleState down
the tree and a stack of open lists, and writes backend-agnostic
instructions into a buffer. Paragraphs open lazily on their first piece of
content, so empty blocks never reach the emitters.
"""

import logging
import re

from docmerge.html.parser import normalize_newlines, parse_html, strip_to_text
from docmerge.models.html import HtmlElement, HtmlNode, HtmlText
from docmerge.models.instructions import (
    Alignment,
    BeginList,
    BeginTable,
    DocumentInstruction,
    EndList,
    EndTable,
    Hyperlink,
    LineBreak,
    ListContext,
    ListItem,
    ListOrdering,
    Paragraph,
    ParagraphStyle,
    Run,
    RunStyle,
    StyleState,
    TableCell,
    TableRow,
)

logger = logging.getLogger(__name__)

# Runs of ASCII whitespace collapse; NBSP is content.
_WHITESPACE_RE = re.compile(r"[ \t\n\r\f\v]+")

SKIPPED_TAGS = frozenset(
    {"script", "style", "head", "title", "meta", "link", "noscript", "template", "iframe", "object", "img", "svg"}
)
PARAGRAPH_TAGS = frozenset(
    {
        "p",
        "div",
        "section",
        "article",
        "header",
        "footer",
        "address",
        "figure",
        "figcaption",
        "main",
        "nav",
        "aside",
        "dl",
        "dt",
        "dd",
        "center",
        "caption",
        "li",
        "tr",
        "td",
        "th",
        "thead",
        "tbody",
        "tfoot",
    }
)
HEADING_LEVEL: dict[str, int] = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}

INLINE_FLAGS: dict[str, dict[str, bool]] = {
    "b": {"bold": True},
    "strong": {"bold": True},
    "i": {"italic": True},
    "em": {"italic": True},
    "cite": {"italic": True},
    "dfn": {"italic": True},
    "var": {"italic": True},
    "u": {"underline": True},
    "ins": {"underline": True},
    "s": {"strike": True},
    "strike": {"strike": True},
    "del": {"strike": True},
    "code": {"monospace": True},
    "kbd": {"monospace": True},
    "samp": {"monospace": True},
    "tt": {"monospace": True},
    "sup": {"superscript": True, "subscript": False},
    "sub": {"subscript": True, "superscript": False},
}

OL_TYPE_ORDERING: dict[str, ListOrdering] = {
    "1": ListOrdering.DECIMAL,
    "a": ListOrdering.LOWER_ALPHA,
    "A": ListOrdering.UPPER_ALPHA,
    "i": ListOrdering.LOWER_ROMAN,
    "I": ListOrdering.UPPER_ROMAN,
}
CSS_LIST_ORDERING: dict[str, ListOrdering] = {
    "decimal": ListOrdering.DECIMAL,
    "decimal-leading-zero": ListOrdering.DECIMAL,
    "lower-alpha": ListOrdering.LOWER_ALPHA,
    "lower-latin": ListOrdering.LOWER_ALPHA,
    "upper-alpha": ListOrdering.UPPER_ALPHA,
    "upper-latin": ListOrdering.UPPER_ALPHA,
    "lower-roman": ListOrdering.LOWER_ROMAN,
    "upper-roman": ListOrdering.UPPER_ROMAN,
    "disc": ListOrdering.BULLET,
    "circle": ListOrdering.BULLET,
    "square": ListOrdering.BULLET,
    "none": ListOrdering.BULLET,
}
ALIGNMENTS: dict[str, Alignment] = {
    "left": Alignment.LEFT,
    "start": Alignment.LEFT,
    "center": Alignment.CENTER,
    "right": Alignment.RIGHT,
    "end": Alignment.RIGHT,
    "justify": Alignment.JUSTIFY,
}
MONOSPACE_FONTS = ("monospace", "courier", "consolas", "menlo", "monaco")

# TinyMCE indents paragraphs with padding-left in steps of 40px.
CSS_INDENT_STEP_PX = 40


def parse_css(style: str) -> dict[str, str]:
    """Parse an inline ``style`` attribute into lowercase declarations."""
    declarations: dict[str, str] = {}
    for declaration in style.split(";"):
        name, sep, value = declaration.partition(":")
        if sep and name.strip():
            declarations[name.strip().lower()] = value.strip().lower().replace("!important", "").strip()
    return declarations


def _css_length_px(value: str) -> float:
    match = re.match(r"^(-?\d+(?:\.\d+)?)\s*(px|pt|em|rem)?$", value)
    if not match:
        return 0.0
    number = float(match.group(1))
    unit = match.group(2) or "px"
    return {"px": number, "pt": number * 4 / 3, "em": number * 16, "rem": number * 16}[unit]


def apply_css(element: HtmlElement, state: StyleState) -> StyleState:
    """Fold an element's inline CSS and ``align`` attribute into the state."""
    changes: dict[str, object] = {}
    css = parse_css(element.attr("style"))

    weight = css.get("font-weight")
    if weight:
        if weight in ("bold", "bolder"):
            changes["bold"] = True
        elif weight in ("normal", "lighter"):
            changes["bold"] = False
        elif weight.isdigit():
            changes["bold"] = int(weight) >= 600

    font_style = css.get("font-style")
    if font_style:
        changes["italic"] = font_style in ("italic", "oblique")

    decoration = css.get("text-decoration-line") or css.get("text-decoration")
    if decoration:
        if "none" in decoration:
            changes["underline"] = False
            changes["strike"] = False
        if "underline" in decoration:
            changes["underline"] = True
        if "line-through" in decoration:
            changes["strike"] = True

    family = css.get("font-family")
    if family and any(font in family for font in MONOSPACE_FONTS):
        changes["monospace"] = True

    vertical = css.get("vertical-align")
    if vertical == "super":
        changes.update(superscript=True, subscript=False)
    elif vertical == "sub":
        changes.update(subscript=True, superscript=False)

    align = css.get("text-align") or element.attr("align").strip().lower()
    if align in ALIGNMENTS:
        changes["alignment"] = ALIGNMENTS[align]

    padding = css.get("padding-left") or css.get("margin-left")
    if padding and element.tag in ("p", "div", "h1", "h2", "h3", "h4", "h5", "h6"):
        steps = round(_css_length_px(padding) / CSS_INDENT_STEP_PX)
        if steps > 0:
            changes["indent_level"] = state.indent_level + steps

    return state.with_changes(**changes)


class _InstructionBuffer:
    """Collects instructions while managing the open paragraph.

    Whitespace is collapsed across inline element boundaries, adjacent runs
    of equal style are merged and trailing spaces are trimmed when a
    paragraph closes. While a link is being captured, runs go to the
    capture list instead of the output.
    """

    def __init__(self) -> None:
        self.out: list[DocumentInstruction] = []
        self._pending: ParagraphStyle | None = None
        self._open = False
        self._preformatted = False
        self._fresh_item = False
        self._at_line_start = True
        self._ends_with_space = False
        self._capture: list[Run] | None = None

    @property
    def capturing(self) -> bool:
        return self._capture is not None

    def request_paragraph(self, style: ParagraphStyle) -> None:
        """Start a new paragraph on the next content.

        An empty list item paragraph is reused instead, so ``<li><p>x</p>``
        yields a single item paragraph.
        """
        if self.capturing:
            return
        if self._open and self._fresh_item:
            return
        self.close_paragraph()
        self._pending = style

    def close_paragraph(self) -> None:
        if self.capturing:
            return
        if self._open and not self._preformatted:
            self._trim_trailing(self.out)
        self._open = False
        self._pending = None
        self._fresh_item = False
        self._at_line_start = True
        self._ends_with_space = False

    def emit_block(self, instruction: DocumentInstruction) -> None:
        self.close_paragraph()
        self.out.append(instruction)

    def open_item(self, item: ListItem) -> None:
        self.close_paragraph()
        self.out.append(item)
        self._open = True
        self._fresh_item = True
        self._preformatted = item.style.preformatted

    def add_text(self, text: str, state: StyleState) -> None:
        if not text:
            return
        if state.preformatted:
            lines = text.split("\n")
            for index, line in enumerate(lines):
                if index:
                    self.add_break(state)
                if line:
                    self._ensure_paragraph(state)
                    self._append_run(line, state.run_style())
                    self._at_line_start = False
                    self._ends_with_space = False
            return

        text = _WHITESPACE_RE.sub(" ", text)
        if self._at_line_start or self._ends_with_space:
            text = text.lstrip(" ")
        if not text:
            return
        if not self.capturing:
            self._ensure_paragraph(state)
        self._append_run(text, state.run_style())
        self._at_line_start = False
        self._ends_with_space = text.endswith(" ")

    def add_break(self, state: StyleState) -> None:
        if self.capturing:
            self.add_text(" ", state)
            return
        self._ensure_paragraph(state)
        if not self._preformatted:
            self._trim_trailing(self.out)
        self.out.append(LineBreak())
        self._fresh_item = False
        self._at_line_start = True
        self._ends_with_space = False

    def begin_capture(self) -> None:
        self._capture = []

    def end_capture(self) -> list[Run]:
        runs = self._capture or []
        self._capture = None
        return runs

    def add_hyperlink(self, link: Hyperlink, state: StyleState) -> None:
        self._ensure_paragraph(state)
        self.out.append(link)
        self._fresh_item = False
        self._at_line_start = False
        self._ends_with_space = link.text.endswith(" ")

    def _ensure_paragraph(self, state: StyleState) -> None:
        if self._open:
            self._fresh_item = False
            return
        style = self._pending if self._pending is not None else state.paragraph_style()
        self.out.append(Paragraph(style=style))
        self._pending = None
        self._open = True
        self._fresh_item = False
        self._preformatted = style.preformatted
        self._at_line_start = True
        self._ends_with_space = False

    def _append_run(self, text: str, style: RunStyle) -> None:
        target: list = self._capture if self._capture is not None else self.out
        last = target[-1] if target else None
        if isinstance(last, Run) and last.style == style:
            last.text += text
        else:
            target.append(Run(text=text, style=style))

    @staticmethod
    def _trim_trailing(instructions: list) -> None:
        while instructions:
            last = instructions[-1]
            if isinstance(last, Run):
                last.text = last.text.rstrip(" ")
                if last.text:
                    return
                instructions.pop()
                continue
            if isinstance(last, Hyperlink):
                if last.runs:
                    last.runs[-1].text = last.runs[-1].text.rstrip(" ")
                    if last.runs[-1].text:
                        return
                    last.runs.pop()
                if not last.runs:
                    instructions.pop()
                continue
            return


class _ConversionContext:
    """Per-call walk state: the instruction buffer and the open lists."""

    def __init__(self) -> None:
        self.buffer = _InstructionBuffer()
        self.lists: list[ListContext] = []

    def convert(self, element: HtmlElement, state: StyleState) -> list[DocumentInstruction]:
        self.walk_children(element, state)
        self.buffer.close_paragraph()
        return self.buffer.out

    def walk_children(self, element: HtmlElement, state: StyleState) -> None:
        for child in element.children:
            self.walk(child, state)

    def walk(self, node: HtmlNode, state: StyleState) -> None:
        if isinstance(node, HtmlText):
            self.buffer.add_text(node.text, state)
            return

        tag = node.tag
        if tag in SKIPPED_TAGS:
            return
        state = apply_css(node, state)

        if tag in INLINE_FLAGS:
            self.walk_children(node, state.with_changes(**INLINE_FLAGS[tag]))
        elif tag == "a":
            self._link(node, state)
        elif tag == "br":
            self.buffer.add_break(state)
        elif tag == "hr":
            self.buffer.close_paragraph()
        elif tag in HEADING_LEVEL:
            self._block(node, state.with_changes(heading_level=HEADING_LEVEL[tag]))
        elif tag == "blockquote":
            self._block(node, state.with_changes(indent_level=state.indent_level + 1))
        elif tag == "pre":
            self._preformatted(node, state)
        elif tag in ("ul", "ol"):
            self._list(node, state)
        elif tag == "table":
            self._table(node, state)
        elif tag == "li" and self.lists:
            self._list_item(node, state)
        elif tag in PARAGRAPH_TAGS:
            if tag == "center" and state.alignment is None:
                state = state.with_changes(alignment=Alignment.CENTER)
            elif tag == "dd":
                state = state.with_changes(indent_level=state.indent_level + 1)
            self._block(node, state)
        else:
            self.walk_children(node, state)

    def _block(self, node: HtmlElement, state: StyleState) -> None:
        self.buffer.request_paragraph(state.paragraph_style())
        self.walk_children(node, state)
        self.buffer.close_paragraph()

    def _preformatted(self, node: HtmlElement, state: StyleState) -> None:
        state = state.with_changes(monospace=True, preformatted=True)
        children = list(node.children)
        if children and isinstance(children[0], HtmlText) and children[0].text.startswith("\n"):
            children[0] = HtmlText(text=children[0].text[1:])
        if children and isinstance(children[-1], HtmlText) and children[-1].text.endswith("\n"):
            children[-1] = HtmlText(text=children[-1].text[:-1])
        self.buffer.request_paragraph(state.paragraph_style())
        for child in children:
            self.walk(child, state)
        self.buffer.close_paragraph()

    def _link(self, node: HtmlElement, state: StyleState) -> None:
        href = node.attr("href").strip()
        if not href or self.buffer.capturing:
            self.walk_children(node, state)
            return
        self.buffer.begin_capture()
        self.walk_children(node, state)
        runs = self.buffer.end_capture()
        if not "".join(run.text for run in runs).strip():
            if runs:
                self.buffer.add_text(" ", state)
            return
        self.buffer.add_hyperlink(Hyperlink(url=href, runs=runs), state)

    def _ordering(self, node: HtmlElement) -> ListOrdering:
        css_type = parse_css(node.attr("style")).get("list-style-type", "")
        if css_type in CSS_LIST_ORDERING:
            return CSS_LIST_ORDERING[css_type]
        if node.tag == "ul":
            return ListOrdering.BULLET
        return OL_TYPE_ORDERING.get(node.attr("type").strip(), ListOrdering.DECIMAL)

    def _list(self, node: HtmlElement, state: StyleState) -> None:
        start: int | None = None
        if node.tag == "ol":
            raw_start = node.attr("start").strip()
            if raw_start.lstrip("-").isdigit():
                start = int(raw_start)

        context = ListContext(depth=len(self.lists), ordering=self._ordering(node), start=start)
        self.buffer.emit_block(BeginList(context=context.model_copy()))
        self.lists.append(context)
        item_state = state.with_changes(heading_level=None)
        for child in node.children:
            if isinstance(child, HtmlText):
                if child.text.strip():
                    self._list_item(HtmlElement(tag="li", children=[child]), item_state)
            elif child.tag == "li":
                self._list_item(child, item_state)
            elif child.tag in ("ul", "ol"):
                self._list(child, item_state)
            elif child.tag not in SKIPPED_TAGS:
                self._list_item(HtmlElement(tag="li", children=[child]), item_state)
        self.lists.pop()
        self.buffer.emit_block(EndList())

    def _list_item(self, node: HtmlElement, state: StyleState) -> None:
        context = self.lists[-1]
        context.item_index += 1
        state = apply_css(node, state).with_changes(list_depth=context.depth, preformatted=False)
        self.buffer.open_item(
            ListItem(
                depth=context.depth,
                ordering=context.ordering,
                index=context.item_index,
                style=state.paragraph_style(),
            )
        )
        self.walk_children(node, state)
        self.buffer.close_paragraph()

    def _table(self, node: HtmlElement, state: StyleState) -> None:
        rows: list[tuple[HtmlElement, bool]] = []
        caption: HtmlElement | None = None
        for child in node.children:
            if not isinstance(child, HtmlElement):
                continue
            if child.tag == "tr":
                rows.append((child, False))
            elif child.tag in ("thead", "tbody", "tfoot"):
                rows.extend(
                    (row, child.tag == "thead")
                    for row in child.children
                    if isinstance(row, HtmlElement) and row.tag == "tr"
                )
            elif child.tag == "caption" and caption is None:
                caption = child

        if caption is not None:
            self._block(caption, state.with_changes(list_depth=None))

        grid: list[tuple[HtmlElement, bool, list[HtmlElement]]] = []
        for row, in_head in rows:
            cells = [c for c in row.children if isinstance(c, HtmlElement) and c.tag in ("td", "th")]
            if cells:
                grid.append((row, in_head, cells))
        if not grid:
            return

        widths = [sum(_colspan(cell) for cell in cells) for _, _, cells in grid]
        self.buffer.emit_block(BeginTable(rows=len(grid), cols=len(grid[0][2]), grid_cols=max(widths)))
        cell_base = StyleState(
            bold=state.bold,
            italic=state.italic,
            underline=state.underline,
            strike=state.strike,
            monospace=state.monospace,
        )
        for row, in_head, cells in grid:
            row_state = apply_css(row, cell_base)
            header = in_head or all(cell.tag == "th" for cell in cells)
            self.buffer.emit_block(TableRow(header=header))
            for cell in cells:
                cell_state = apply_css(cell, row_state)
                if cell.tag == "th":
                    cell_state = cell_state.with_changes(bold=True)
                content = _ConversionContext().convert(cell, cell_state)
                self.buffer.emit_block(
                    TableCell(
                        colspan=_colspan(cell),
                        header=cell.tag == "th",
                        alignment=cell_state.alignment,
                        content=content,
                    )
                )
        self.buffer.emit_block(EndTable())


def _colspan(cell: HtmlElement) -> int:
    raw = cell.attr("colspan").strip()
    return max(1, int(raw)) if raw.isdigit() else 1


class HtmlConverter:
    """Converts rich-text HTML into DocumentInstructions.

    Stateless between calls: each conversion builds its own context, so
    one converter can serve any number of fields and documents.
    """

    def convert(self, fragment: str) -> list[DocumentInstruction]:
        """Convert an HTML fragment.

        Malformed input never raises: if the tree cannot be walked the
        fragment degrades to its text, one paragraph per line.

        Args:
            fragment: HTML from the editor; assumed sanitised.

        Returns:
            Instructions in document order, empty for blank input.
        """
        if not fragment or not fragment.strip():
            return []
        try:
            root = parse_html(fragment)
            return _ConversionContext().convert(root, StyleState())
        except Exception:
            logger.exception("Falling back to plain text for unconvertible HTML (%d chars)", len(fragment))
            return self._text_fallback(fragment)

    def convert_plain(self, text: str) -> list[DocumentInstruction]:
        """Wrap a plain value in one paragraph, newlines becoming line breaks."""
        text = normalize_newlines(text or "")
        if not text.strip():
            return []
        instructions: list[DocumentInstruction] = [Paragraph()]
        for index, line in enumerate(text.split("\n")):
            if index:
                instructions.append(LineBreak())
            if line:
                instructions.append(Run(text=line))
        return instructions

    def _text_fallback(self, fragment: str) -> list[DocumentInstruction]:
        instructions: list[DocumentInstruction] = []
        for line in strip_to_text(fragment).split("\n"):
            if line.strip():
                instructions.extend([Paragraph(), Run(text=line.strip())])
        return instructions
