"""Data models for the document generator."""

from docmerge.models.fields import FieldKind, FieldSchema, RawFieldToken, ValueType
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
from docmerge.models.merge import FieldValue, ItemsValue, MergeContext, ScalarValue

__all__ = [
    "Alignment",
    "BeginList",
    "BeginTable",
    "DocumentInstruction",
    "EndList",
    "EndTable",
    "FieldKind",
    "FieldSchema",
    "FieldValue",
    "HtmlElement",
    "HtmlNode",
    "HtmlText",
    "Hyperlink",
    "ItemsValue",
    "LineBreak",
    "ListContext",
    "ListItem",
    "ListOrdering",
    "MergeContext",
    "Paragraph",
    "ParagraphStyle",
    "RawFieldToken",
    "Run",
    "RunStyle",
    "ScalarValue",
    "StyleState",
    "TableCell",
    "TableRow",
    "ValueType",
]
