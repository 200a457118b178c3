"""Stored form of a template schema."""

import logging
from typing import Any

from pydantic import BaseModel, Field

from docmerge.models.fields import FieldKind, FieldSchema, ValueType
from docmerge.scanning.tokens import humanize

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2


class StoredSchema(BaseModel):
    """A schema as persisted per template, with the hash it was built from."""

    template_id: str
    content_hash: str = ""
    fields: list[FieldSchema] = Field(default_factory=list)


def _field_entry(field: FieldSchema) -> dict[str, Any]:
    return {
        "slug": field.slug,
        "label": field.label,
        "type": field.value_type.value,
        "description": field.description,
        "required": field.required,
        "parameters": dict(field.parameters),
    }


def schema_to_document(schema: list[FieldSchema], meta: dict[str, Any] | None = None) -> dict[str, Any]:
    """Serialise a schema into the versioned storage document.

    Scalars go under ``fields`` and arrays under ``repeaters``; the field
    order within each list is preserved.
    """
    fields = [_field_entry(field) for field in schema if not field.is_array]
    repeaters = [
        {
            "slug": field.slug,
            "label": field.label,
            "fields": [_field_entry(item) for item in field.item_schema.values()],
        }
        for field in schema
        if field.is_array
    ]
    return {"version": SCHEMA_VERSION, "fields": fields, "repeaters": repeaters, "meta": dict(meta or {})}


def _parse_value_type(raw: Any) -> ValueType:
    try:
        return ValueType(str(raw))
    except ValueError:
        return ValueType.PLAIN_TEXT


def _field_from_entry(entry: Any) -> FieldSchema | None:
    if not isinstance(entry, dict):
        return None
    slug = str(entry.get("slug") or "").strip()
    if not slug:
        return None
    params = entry.get("parameters")
    return FieldSchema(
        slug=slug,
        value_type=_parse_value_type(entry.get("type")),
        label=str(entry.get("label") or humanize(slug)),
        description=str(entry.get("description") or ""),
        required=bool(entry.get("required", False)),
        parameters={str(k): str(v) for k, v in params.items()} if isinstance(params, dict) else {},
    )


def schema_from_document(document: Any) -> list[FieldSchema]:
    """Rebuild a schema from its storage document.

    Malformed entries are skipped; a missing or foreign document yields an
    empty schema.

    Args:
        document: The decoded storage document.

    Returns:
        Scalars followed by arrays, each in stored order.
    """
    if not isinstance(document, dict):
        return []
    version = document.get("version")
    if version != SCHEMA_VERSION:
        logger.warning("Ignoring stored schema with unsupported version %r", version)
        return []

    schema: list[FieldSchema] = []
    seen: set[str] = set()
    for entry in document.get("fields") or []:
        field = _field_from_entry(entry)
        if field is not None and field.slug not in seen:
            seen.add(field.slug)
            schema.append(field)

    for entry in document.get("repeaters") or []:
        if not isinstance(entry, dict):
            continue
        slug = str(entry.get("slug") or "").strip()
        items: dict[str, FieldSchema] = {}
        for item_entry in entry.get("fields") or []:
            item = _field_from_entry(item_entry)
            if item is not None:
                items.setdefault(item.slug, item)
        if not slug or not items or slug in seen:
            continue
        seen.add(slug)
        schema.append(
            FieldSchema(
                slug=slug,
                kind=FieldKind.ARRAY,
                label=str(entry.get("label") or humanize(slug)),
                item_schema=items,
            )
        )
    return schema
