"""Template assembly: filling placeholders with converted values."""

from docmerge.assembly.adapters import DocxPartAdapter, OdtPartAdapter, PartAdapter
from docmerge.assembly.assembler import AssemblyContext, DocumentAssembler, is_inline

__all__ = [
    "AssemblyContext",
    "DocumentAssembler",
    "DocxPartAdapter",
    "OdtPartAdapter",
    "PartAdapter",
    "is_inline",
]
