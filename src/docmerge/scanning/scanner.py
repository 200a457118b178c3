"""Template scanner: extracts raw placeholder tokens from DOCX/ODT files."""

import logging
from pathlib import Path

from docmerge.errors import ParseError, TemplateInvalidError, TemplateMissingError
from docmerge.models.fields import RawFieldToken
from docmerge.scanning.packages import iter_paragraphs, open_package
from docmerge.scanning.slots import slots_text
from docmerge.scanning.tokens import TokenMatch, find_tokens, to_raw_token

logger = logging.getLogger(__name__)

# Supported template extensions mapped to format identifiers
SUPPORTED_FORMATS: dict[str, str] = {
    ".docx": "docx",
    ".odt": "odt",
}


def detect_format(file_path: str | Path) -> str:
    """Determine the template format from its extension.

    Args:
        file_path: Path to the template.

    Returns:
        Format string ("docx" or "odt").

    Raises:
        TemplateInvalidError: If the extension is not supported.
    """
    ext = Path(file_path).suffix.lower()
    if ext not in SUPPORTED_FORMATS:
        raise TemplateInvalidError(
            f"Unsupported template format: '{ext}'. "
            f"Supported: {', '.join(SUPPORTED_FORMATS.keys())}"
        )
    return SUPPORTED_FORMATS[ext]


def read_template(file_path: str | Path | None) -> tuple[bytes, str]:
    """Read template bytes and detect their format.

    Raises:
        TemplateMissingError: If the path is empty or not an existing file.
        TemplateInvalidError: If the extension is not supported.
    """
    if not file_path or not str(file_path).strip():
        raise TemplateMissingError("No template path given")
    path = Path(file_path)
    if not path.is_file():
        raise TemplateMissingError(f"Template not found: {path}")
    file_format = detect_format(path)
    return path.read_bytes(), file_format


class TemplateScanner:
    """Finds the placeholders of a template in document order.

    Body, headers and footers are scanned. Tokens split across runs or
    spans are found because text is joined per paragraph first.
    """

    def scan(self, file_path: str | Path | None) -> list[RawFieldToken]:
        """Scan a template file.

        Args:
            file_path: Path to a ``.docx`` or ``.odt`` template.

        Returns:
            De-duplicated raw tokens in first-seen order.

        Raises:
            TemplateMissingError: If the path is empty or missing.
            TemplateInvalidError: If the format is unsupported or the
                container cannot be read.
        """
        data, file_format = read_template(file_path)
        return self.scan_bytes(data, file_format)

    def scan_bytes(self, data: bytes, file_format: str) -> list[RawFieldToken]:
        """Scan template bytes of a known format.

        Raises:
            TemplateMissingError: If ``data`` is empty.
            TemplateInvalidError: If the container cannot be read.
        """
        if not data:
            raise TemplateMissingError("Template is empty")
        if file_format not in SUPPORTED_FORMATS.values():
            raise TemplateInvalidError(f"Unsupported template format: '{file_format}'")

        try:
            package = open_package(data, file_format)
        except ParseError as exc:
            raise TemplateInvalidError(str(exc)) from exc

        matches: list[TokenMatch] = []
        for _, paragraph in iter_paragraphs(package):
            matches.extend(find_tokens(slots_text(package.slots(paragraph))))

        tokens = self._deduplicate(matches)
        logger.debug("Found %d distinct tokens in %s template", len(tokens), file_format)
        return tokens

    def _deduplicate(self, matches: list[TokenMatch]) -> list[RawFieldToken]:
        """Merge repeated placeholders by path.

        Control tokens without a path are kept per distinct ``repeat`` group.
        Later occurrences only fill parameters the first one lacked.
        """
        merged: dict[str, TokenMatch] = {}
        for match in matches:
            if not match.path and not match.is_control:
                continue
            key = match.path
            if match.is_control:
                key = f"{match.path};repeat={match.parameters['repeat']}"
            existing = merged.get(key)
            if existing is None:
                merged[key] = TokenMatch(0, 0, match.path, dict(match.parameters))
                continue
            for name, value in match.parameters.items():
                existing.parameters.setdefault(name, value)
        return [to_raw_token(match) for match in merged.values()]
