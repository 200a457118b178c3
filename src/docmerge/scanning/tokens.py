"""Placeholder token syntax: ``[path]`` or ``[path;key=value;flag]``."""

import re
from dataclasses import dataclass, field

from docmerge.models.fields import RawFieldToken

_NAME = r"[A-Za-z_][\w\-]*"

TOKEN_RE = re.compile(
    r"\[(?P<path>" + _NAME + r"(?:\." + _NAME + r")*(?:\[\*\]\." + _NAME + r")?)?"
    r"(?P<params>(?:;[^\[\]\x00]*)?)\]"
)

_PARAM_RE = re.compile(
    r"""\s*(?P<key>[\w\-]+)\s*(?:=\s*(?P<value>"[^"]*"|'[^']*'|[^;]*))?\s*(?:;|$)"""
)

LABEL_KEYS = ("title", "label")
TYPE_KEYS = ("type", "data_type")


@dataclass
class TokenMatch:
    """A placeholder located inside a run of text."""

    start: int
    end: int
    path: str
    parameters: dict[str, str] = field(default_factory=dict)

    @property
    def is_control(self) -> bool:
        return bool(self.parameters.get("repeat", "").strip())


def parse_parameters(raw: str) -> dict[str, str]:
    """Parse ``;key=value;flag`` into a dict.

    Quoted values lose their quotes and bare flags map to ``"true"``.

    Args:
        raw: Parameter section of a token, including the leading ``;``.

    Returns:
        Parameter mapping with lowercase keys, first occurrence wins.
    """
    params: dict[str, str] = {}
    body = raw[1:] if raw.startswith(";") else raw
    for match in _PARAM_RE.finditer(body):
        key = match.group("key").lower()
        value = match.group("value")
        if value is None:
            value = "true"
        else:
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]
        params.setdefault(key, value)
    return params


def find_tokens(text: str) -> list[TokenMatch]:
    """Find every placeholder in ``text``.

    Bracketed text that carries neither a path nor parameters (``[]``) is
    ignored, as is ``[1]``-style prose since paths must start with a letter.
    """
    found: list[TokenMatch] = []
    for match in TOKEN_RE.finditer(text):
        path = match.group("path") or ""
        raw_params = match.group("params") or ""
        if not path and not raw_params:
            continue
        found.append(
            TokenMatch(
                start=match.start(),
                end=match.end(),
                path=path,
                parameters=parse_parameters(raw_params) if raw_params else {},
            )
        )
    return found


def humanize(slug: str) -> str:
    """Turn ``resolution_title`` into ``Resolution title``."""
    words = re.sub(r"[_\-.]+", " ", slug).strip()
    return words[:1].upper() + words[1:] if words else ""


def to_raw_token(match: TokenMatch) -> RawFieldToken:
    """Build the schema-facing token for a located placeholder."""
    label = next((match.parameters[k] for k in LABEL_KEYS if match.parameters.get(k)), "")
    declared = next((match.parameters[k] for k in TYPE_KEYS if match.parameters.get(k)), "")
    if not label and match.path:
        leaf = match.path.rsplit(".", 1)[-1]
        label = humanize(leaf)
    return RawFieldToken(
        placeholder_path=match.path,
        label=label,
        declared_type=declared,
        parameters=dict(match.parameters),
    )
