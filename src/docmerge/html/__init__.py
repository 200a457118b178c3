"""HTML parsing and conversion into document instructions."""

from docmerge.html.converter import HtmlConverter
from docmerge.html.parser import looks_like_html, parse_html, strip_to_text

__all__ = ["HtmlConverter", "looks_like_html", "parse_html", "strip_to_text"]
