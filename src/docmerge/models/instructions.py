"""Backend-agnostic document instructions produced by the HTML converter."""

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Alignment(str, Enum):
    """Paragraph or cell horizontal alignment."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    JUSTIFY = "justify"


class ListOrdering(str, Enum):
    """Marker style of a list level."""

    BULLET = "bullet"
    DECIMAL = "decimal"
    LOWER_ALPHA = "lower_alpha"
    UPPER_ALPHA = "upper_alpha"
    LOWER_ROMAN = "lower_roman"
    UPPER_ROMAN = "upper_roman"


class RunStyle(BaseModel):
    """Character formatting flags of a run."""

    model_config = ConfigDict(frozen=True)

    bold: bool = False
    italic: bool = False
    underline: bool = False
    strike: bool = False
    monospace: bool = False
    superscript: bool = False
    subscript: bool = False

    @property
    def is_plain(self) -> bool:
        return self == RunStyle()


class ParagraphStyle(BaseModel):
    """Block-level formatting of a paragraph."""

    model_config = ConfigDict(frozen=True)

    heading_level: int | None = Field(default=None, ge=1, le=6)
    alignment: Alignment | None = None
    indent_level: int = 0
    list_depth: int | None = None
    preformatted: bool = False

    @property
    def is_default(self) -> bool:
        return self == ParagraphStyle()


class StyleState(BaseModel):
    """Formatting accumulated while descending the HTML tree.

    Inline flags behave as a set: nesting ``<b><i>`` or ``<i><b>`` yields
    the same state.
    """

    model_config = ConfigDict(frozen=True)

    bold: bool = False
    italic: bool = False
    underline: bool = False
    strike: bool = False
    monospace: bool = False
    superscript: bool = False
    subscript: bool = False
    alignment: Alignment | None = None
    heading_level: int | None = None
    indent_level: int = 0
    preformatted: bool = False
    list_depth: int | None = None

    def with_changes(self, **changes: object) -> "StyleState":
        return self.model_copy(update=changes) if changes else self

    def run_style(self) -> RunStyle:
        return RunStyle(
            bold=self.bold,
            italic=self.italic,
            underline=self.underline,
            strike=self.strike,
            monospace=self.monospace,
            superscript=self.superscript,
            subscript=self.subscript,
        )

    def paragraph_style(self) -> ParagraphStyle:
        return ParagraphStyle(
            heading_level=self.heading_level,
            alignment=self.alignment,
            indent_level=self.indent_level,
            list_depth=self.list_depth,
            preformatted=self.preformatted,
        )


class ListContext(BaseModel):
    """State of one open list while converting."""

    depth: int = 0
    ordering: ListOrdering = ListOrdering.BULLET
    item_index: int = 0
    start: int | None = None


class Paragraph(BaseModel):
    """Opens a paragraph; it stays open until the next block instruction."""

    kind: Literal["paragraph"] = "paragraph"
    style: ParagraphStyle = Field(default_factory=ParagraphStyle)


class Run(BaseModel):
    kind: Literal["run"] = "run"
    text: str
    style: RunStyle = Field(default_factory=RunStyle)


class LineBreak(BaseModel):
    kind: Literal["line_break"] = "line_break"


class Hyperlink(BaseModel):
    """A link wrapping styled runs."""

    kind: Literal["hyperlink"] = "hyperlink"
    url: str
    runs: list[Run] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)


class BeginList(BaseModel):
    kind: Literal["begin_list"] = "begin_list"
    context: ListContext


class ListItem(BaseModel):
    """Opens the paragraph of a list item."""

    kind: Literal["list_item"] = "list_item"
    depth: int
    ordering: ListOrdering
    index: int
    style: ParagraphStyle = Field(default_factory=ParagraphStyle)


class EndList(BaseModel):
    kind: Literal["end_list"] = "end_list"


class BeginTable(BaseModel):
    """Opens a table.

    ``cols`` is the first row's cell count; ``grid_cols`` is the widest row
    once colspans are counted.
    """

    kind: Literal["begin_table"] = "begin_table"
    rows: int
    cols: int
    grid_cols: int


class TableRow(BaseModel):
    kind: Literal["table_row"] = "table_row"
    header: bool = False


class TableCell(BaseModel):
    """One cell with its own converted content."""

    kind: Literal["table_cell"] = "table_cell"
    colspan: int = 1
    header: bool = False
    alignment: Alignment | None = None
    content: list["DocumentInstruction"] = Field(default_factory=list)


class EndTable(BaseModel):
    kind: Literal["end_table"] = "end_table"


DocumentInstruction = Union[
    Paragraph,
    Run,
    LineBreak,
    Hyperlink,
    BeginList,
    ListItem,
    EndList,
    BeginTable,
    TableRow,
    TableCell,
    EndTable,
]

TableCell.model_rebuild()

INLINE_KINDS = frozenset({"run", "line_break", "hyperlink"})
