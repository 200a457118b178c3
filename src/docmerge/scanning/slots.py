"""Text slots of OOXML and ODF paragraphs.

A slot is one place where paragraph text lives: the text of a ``w:t`` in
OOXML, or an element's ``text``/``tail`` in ODF. Placeholders typed in a
word processor are often split over several slots; :func:`consolidate`
moves every token into the slot where it starts so it can be replaced
in place.
"""

from dataclasses import dataclass

from docx.oxml.ns import qn

from docmerge.namespaces import odf
from docmerge.scanning.tokens import find_tokens

# Stands in for tabs, breaks and embedded objects; never part of a token.
BOUNDARY = "\x00"

_W_TEXT = qn("w:t")
_W_PARAGRAPH = qn("w:p")
_W_BOUNDARIES = frozenset(
    qn(tag)
    for tag in (
        "w:tab",
        "w:br",
        "w:cr",
        "w:noBreakHyphen",
        "w:softHyphen",
        "w:sym",
        "w:drawing",
        "w:object",
        "w:pict",
        "w:fldChar",
        "w:footnoteReference",
        "w:endnoteReference",
    )
)
_W_SKIPPED = frozenset(
    qn(tag) for tag in ("w:pPr", "w:rPr", "w:del", "w:delText", "w:instrText", "w:moveFrom")
)

_ODF_PARAGRAPHS = frozenset({odf("text:p"), odf("text:h")})
_ODF_BOUNDARIES = frozenset(
    {odf("text:s"), odf("text:tab"), odf("text:line-break"), odf("text:note"), odf("office:annotation"), odf("draw:frame")}
)
_ODF_OPAQUE = frozenset(
    {
        odf("text:bookmark"),
        odf("text:bookmark-start"),
        odf("text:bookmark-end"),
        odf("text:soft-page-break"),
        odf("office:annotation-end"),
    }
)


@dataclass
class TextSlot:
    """A text-bearing location inside a paragraph."""

    element: object
    attr: str = "text"
    boundary: bool = False

    @property
    def text(self) -> str:
        if self.boundary:
            return BOUNDARY
        return getattr(self.element, self.attr) or ""

    @text.setter
    def text(self, value: str) -> None:
        if self.boundary:
            raise ValueError("Boundary slots hold no text")
        setattr(self.element, self.attr, value or None)


def docx_slots(paragraph) -> list[TextSlot]:
    """Slots of a ``w:p``, excluding nested paragraphs (text boxes)."""
    slots: list[TextSlot] = []

    def walk(element) -> None:
        for child in element:
            tag = child.tag
            if not isinstance(tag, str) or tag in _W_SKIPPED or tag == _W_PARAGRAPH:
                continue
            if tag == _W_TEXT:
                slots.append(TextSlot(child, "text"))
            elif tag in _W_BOUNDARIES:
                slots.append(TextSlot(child, boundary=True))
            else:
                walk(child)

    walk(paragraph)
    return slots


def odf_slots(paragraph) -> list[TextSlot]:
    """Slots of a ``text:p``/``text:h`` in document order."""
    slots: list[TextSlot] = [TextSlot(paragraph, "text")]

    def walk(element) -> None:
        for child in element:
            tag = child.tag
            if not isinstance(tag, str):
                slots.append(TextSlot(child, "tail"))
                continue
            if tag in _ODF_BOUNDARIES:
                slots.append(TextSlot(child, boundary=True))
            elif tag not in _ODF_OPAQUE and tag not in _ODF_PARAGRAPHS:
                slots.append(TextSlot(child, "text"))
                walk(child)
            slots.append(TextSlot(child, "tail"))

    walk(paragraph)
    return slots


def slots_text(slots: list[TextSlot]) -> str:
    return "".join(slot.text for slot in slots)


def _slot_offsets(slots: list[TextSlot]) -> list[int]:
    offsets: list[int] = []
    position = 0
    for slot in slots:
        offsets.append(position)
        position += len(slot.text)
    return offsets


def consolidate(slots: list[TextSlot]) -> int:
    """Move every token that spans several slots into its starting slot.

    The joined paragraph text is unchanged; only its distribution across
    slots moves.

    Args:
        slots: Slots of one paragraph.

    Returns:
        Number of tokens that had to be moved.
    """
    text = slots_text(slots)
    offsets = _slot_offsets(slots)
    ends = [offsets[i] + len(slots[i].text) for i in range(len(slots))]
    moved = 0
    for match in reversed(find_tokens(text)):
        first = next(i for i in range(len(slots)) if offsets[i] <= match.start < ends[i])
        last = next(i for i in range(len(slots)) if offsets[i] < match.end <= ends[i])
        if first == last:
            continue
        head = slots[first].text
        local_start = match.start - offsets[first]
        slots[first].text = head[:local_start] + text[match.start : match.end]
        for index in range(first + 1, last):
            slots[index].text = ""
        tail = slots[last].text
        slots[last].text = tail[match.end - offsets[last] :]
        moved += 1
    return moved
