"""HTML fragment parsing into the HtmlNode tree, plus text helpers."""

import html
import re

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from docmerge.models.html import HtmlElement, HtmlText

_KNOWN_TAG_RE = re.compile(
    r"</?(?:p|div|br|hr|span|a|strong|b|em|i|u|s|strike|del|ins|sub|sup|code|pre|blockquote"
    r"|ul|ol|li|table|thead|tbody|tfoot|tr|td|th|caption|h[1-6]|section|article|font|mark|small)\b[^<>]*>",
    re.IGNORECASE,
)
_BLOCK_BOUNDARY_RE = re.compile(
    r"<\s*(?:br|/?(?:p|div|li|tr|h[1-6]|blockquote|pre|table|ul|ol|section|article))\b[^>]*>",
    re.IGNORECASE,
)
_ANY_TAG_RE = re.compile(r"<[^<>]+>")
_EXTRA_NEWLINES_RE = re.compile(r"\n{3,}")


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def looks_like_html(text: str) -> bool:
    """True when ``text`` contains at least one recognised HTML tag.

    Comparisons such as ``5 < 10 and 10 > 5`` are not markup.
    """
    return bool(text) and "<" in text and ">" in text and bool(_KNOWN_TAG_RE.search(text))


def strip_to_text(fragment: str) -> str:
    """Reduce markup to plain text, keeping block boundaries as newlines.

    Used when a fragment cannot be converted structurally.
    """
    text = normalize_newlines(fragment or "")
    text = _BLOCK_BOUNDARY_RE.sub("\n", text)
    text = _ANY_TAG_RE.sub("", text)
    text = html.unescape(text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    return _EXTRA_NEWLINES_RE.sub("\n\n", text).strip()


def _flatten_attrs(attrs: dict) -> dict[str, str]:
    flat: dict[str, str] = {}
    for name, value in attrs.items():
        if isinstance(value, (list, tuple)):
            value = " ".join(value)
        flat[str(name).lower()] = "" if value is None else str(value)
    return flat


def parse_html(fragment: str) -> HtmlElement:
    """Parse an HTML fragment with BeautifulSoup's lxml backend.

    The tree is copied iteratively so deep nesting does not exhaust the
    interpreter stack. Comments, doctypes and processing instructions are
    dropped.

    Args:
        fragment: HTML as produced by a rich-text editor.

    Returns:
        A synthetic ``body`` element holding the fragment's nodes.
    """
    root = HtmlElement(tag="body")
    soup = BeautifulSoup(normalize_newlines(fragment), "lxml")
    source = soup.body
    if source is None:
        return root

    stack: list[tuple[Tag, HtmlElement]] = [(source, root)]
    while stack:
        tag, target = stack.pop()
        for child in tag.children:
            if isinstance(child, Tag):
                node = HtmlElement(tag=child.name.lower(), attrs=_flatten_attrs(child.attrs))
                target.children.append(node)
                stack.append((child, node))
            elif isinstance(child, NavigableString) and not isinstance(child, PreformattedString):
                target.children.append(HtmlText(text=str(child)))
    return root
