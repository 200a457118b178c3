"""Error types raised by the document generation pipeline."""


class DocGenError(Exception):
    """Base class for every failure surfaced by docmerge.

    Attributes:
        kind: Stable machine-readable error identifier.
    """

    kind = "docgen_error"


class TemplateMissingError(DocGenError, FileNotFoundError):
    """The template path is empty or does not point to a file."""

    kind = "template_missing"


class TemplateInvalidError(DocGenError, ValueError):
    """The template has an unsupported extension or an unreadable container."""

    kind = "template_invalid"


class ParseError(DocGenError):
    """A template container or one of its XML parts could not be parsed."""

    kind = "parse_error"


class GenerationError(DocGenError):
    """Assembly failed structurally, e.g. an unbounded repeat region."""

    kind = "generation_error"


class PdfSourceMissingError(DocGenError):
    """PDF export was requested without a native document to convert."""

    kind = "pdf_source_missing"
