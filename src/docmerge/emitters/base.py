"""Shared machinery of the format emitters."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from docmerge.config import ConversionConfig
from docmerge.models.instructions import DocumentInstruction, Hyperlink, LineBreak, Run

# Characters XML 1.0 cannot carry, even escaped.
_XML_ILLEGAL_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def xml_safe_text(text: str) -> str:
    """Drop control characters that would make the output unparseable."""
    return _XML_ILLEGAL_RE.sub("", text)


@dataclass
class EmitFrame:
    """Output state of one emission: the top level or a table cell.

    Attributes:
        blocks: Block elements produced at this level, in order.
        paragraph: The paragraph receiving inline content, if open.
        lists: Open lists, innermost last; contents are emitter specific.
        table: The table being built, if any.
    """

    blocks: list = field(default_factory=list)
    paragraph: object | None = None
    lists: list = field(default_factory=list)
    table: object | None = None


class DocumentSink(ABC):
    """Turns DocumentInstructions into native XML elements.

    Each instruction kind is dispatched to ``_on_<kind>``. Table cells are
    emitted recursively in a fresh frame so their content can hold lists
    and tables of its own.
    """

    def __init__(self, config: ConversionConfig | None = None) -> None:
        self.config = config or ConversionConfig()
        self._frames: list[EmitFrame] = []

    @property
    def frame(self) -> EmitFrame:
        return self._frames[-1]

    def emit(self, instructions: list[DocumentInstruction]) -> list:
        """Emit block content.

        Args:
            instructions: Converter output.

        Returns:
            Top-level block elements in document order.
        """
        frame = EmitFrame()
        self._frames.append(frame)
        try:
            for instruction in instructions:
                getattr(self, f"_on_{instruction.kind}")(instruction)
            self._finish_frame(frame)
        finally:
            self._frames.pop()
        return frame.blocks

    def emit_inline(self, instructions: list[DocumentInstruction]) -> list:
        """Emit run-level content for splicing into an existing paragraph.

        Raises:
            ValueError: If the instructions contain anything block level
                other than a leading default paragraph.
        """
        nodes: list = []
        for instruction in instructions:
            if isinstance(instruction, Run):
                nodes.extend(self._inline_run(instruction))
            elif isinstance(instruction, LineBreak):
                nodes.append(self._inline_break())
            elif isinstance(instruction, Hyperlink):
                nodes.extend(self._inline_hyperlink(instruction))
            elif instruction.kind == "paragraph" and not nodes:
                continue
            else:
                raise ValueError(f"'{instruction.kind}' cannot be emitted inline")
        return nodes

    def _finish_frame(self, frame: EmitFrame) -> None:
        frame.paragraph = None

    @abstractmethod
    def _inline_run(self, run: Run) -> list: ...

    @abstractmethod
    def _inline_break(self): ...

    @abstractmethod
    def _inline_hyperlink(self, link: Hyperlink) -> list: ...
