"""Schema inference from raw placeholder tokens."""

import logging

from docmerge.models.fields import FieldKind, FieldSchema, RawFieldToken, ValueType
from docmerge.scanning.tokens import humanize

logger = logging.getLogger(__name__)

RICH_TYPES = frozenset({"html", "rich", "tinymce", "editor", "wysiwyg", "richtext", "rich_text"})
NUMBER_TYPES = frozenset({"number", "numeric", "int", "integer", "float", "decimal"})
BOOLEAN_TYPES = frozenset({"boolean", "bool", "checkbox"})
DATE_TYPES = frozenset({"date", "datetime", "datetime-local"})

# Declarations that say nothing beyond "text"; the slug may refine them.
GENERIC_TEXT_TYPES = frozenset({"", "text", "string", "str", "textarea", "plain", "single", "input"})
RICH_NAME_HINTS = ("content", "body", "html")

DESCRIPTION_KEYS = ("description", "help", "hint")
TRUTHY = frozenset({"true", "yes", "1", "on"})


def infer_value_type(declared_type: str, slug: str = "") -> ValueType:
    """Map a declared placeholder type to a value type.

    Args:
        declared_type: The ``type=`` parameter, any case.
        slug: Field or leaf slug, used when the declaration is generic.

    Returns:
        The inferred ValueType; unknown declarations are plain text.
    """
    declared = declared_type.strip().lower()
    if declared in RICH_TYPES:
        return ValueType.RICH_HTML
    if declared in NUMBER_TYPES:
        return ValueType.NUMBER
    if declared in BOOLEAN_TYPES:
        return ValueType.BOOLEAN
    if declared in DATE_TYPES:
        return ValueType.DATE
    if declared in GENERIC_TEXT_TYPES and _names_rich_content(slug):
        return ValueType.RICH_HTML
    return ValueType.PLAIN_TEXT


def _names_rich_content(slug: str) -> bool:
    name = slug.strip().lower().rsplit(".", 1)[-1]
    return any(name == hint or name.endswith(f"_{hint}") for hint in RICH_NAME_HINTS)


def _field_from_token(slug: str, token: RawFieldToken) -> FieldSchema:
    params = token.parameters
    description = next((params[key] for key in DESCRIPTION_KEYS if params.get(key)), "")
    return FieldSchema(
        slug=slug,
        kind=FieldKind.SCALAR,
        value_type=infer_value_type(token.declared_type, slug),
        label=token.label or humanize(slug),
        description=description,
        required=params.get("required", "").strip().lower() in TRUTHY,
        parameters=dict(params),
    )


def build_schema(tokens: list[RawFieldToken]) -> list[FieldSchema]:
    """Group raw tokens into a typed schema.

    ``group[*].leaf`` tokens become one array field per group; every other
    non-empty path is a scalar. Tokens carrying ``repeat=`` only mark a
    repeat region and contribute no field. Output follows first appearance.

    Args:
        tokens: Raw tokens as returned by the scanner.

    Returns:
        The schema, possibly empty.
    """
    scalars: dict[str, RawFieldToken] = {}
    groups: dict[str, dict[str, RawFieldToken]] = {}
    group_labels: dict[str, str] = {}
    order: list[tuple[str, str]] = []

    for token in tokens:
        path = token.placeholder_path.strip()
        repeat = token.repeat_group
        if repeat:
            if token.parameters.get("title"):
                group_labels.setdefault(repeat, token.parameters["title"])
            continue
        if not path:
            continue

        group, leaf = token.group, token.leaf
        if group and leaf:
            if group in scalars:
                logger.warning("Scalar field '%s' collides with an array group; keeping the array", group)
                del scalars[group]
                order.remove(("scalar", group))
            if group not in groups:
                groups[group] = {}
                order.append(("array", group))
            groups[group].setdefault(leaf, token)
            continue

        if path in groups:
            logger.warning("Scalar field '%s' collides with an array group; keeping the array", path)
            continue
        if path not in scalars:
            scalars[path] = token
            order.append(("scalar", path))

    schema: list[FieldSchema] = []
    for kind, slug in order:
        if kind == "scalar":
            schema.append(_field_from_token(slug, scalars[slug]))
            continue
        items = {leaf: _field_from_token(leaf, token) for leaf, token in groups[slug].items()}
        schema.append(
            FieldSchema(
                slug=slug,
                kind=FieldKind.ARRAY,
                value_type=ValueType.PLAIN_TEXT,
                label=group_labels.get(slug) or humanize(slug),
                item_schema=items,
            )
        )
    return schema
