"""Template reading: placeholder syntax, containers and token scanning."""

from docmerge.scanning.tokens import TokenMatch, find_tokens, parse_parameters
from docmerge.scanning.slots import TextSlot, consolidate
from docmerge.scanning.packages import DocxPackage, OdtPackage, open_package
from docmerge.scanning.scanner import SUPPORTED_FORMATS, TemplateScanner, detect_format, read_template

__all__ = [
    "SUPPORTED_FORMATS",
    "DocxPackage",
    "OdtPackage",
    "TemplateScanner",
    "TextSlot",
    "TokenMatch",
    "consolidate",
    "detect_format",
    "find_tokens",
    "open_package",
    "parse_parameters",
    "read_template",
]
