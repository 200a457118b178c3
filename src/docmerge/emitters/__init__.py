"""Format emitters turning instructions into native document XML."""

from docmerge.emitters.base import DocumentSink, xml_safe_text
from docmerge.emitters.odf import OdfEmitter, OdfStyleRegistry
from docmerge.emitters.ooxml import NumberingRegistry, OoxmlEmitter

__all__ = [
    "DocumentSink",
    "NumberingRegistry",
    "OdfEmitter",
    "OdfStyleRegistry",
    "OoxmlEmitter",
    "xml_safe_text",
]
