"""Reading user-supplied data files of unknown encoding."""

import logging
from pathlib import Path

import chardet

logger = logging.getLogger(__name__)


def read_text(file_path: str | Path) -> str:
    """Read a data file as text.

    UTF-8 (with or without a BOM) is tried first; anything else is decoded
    with the encoding chardet detects.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    raw_bytes = Path(file_path).read_bytes()
    try:
        return raw_bytes.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass

    encoding = chardet.detect(raw_bytes).get("encoding") or "utf-8"
    logger.info("%s is not UTF-8; decoding as %s", file_path, encoding)
    try:
        return raw_bytes.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        logger.warning("Could not decode %s as %s; replacing invalid bytes", file_path, encoding)
        return raw_bytes.decode("utf-8", errors="replace")
