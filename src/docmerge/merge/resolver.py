"""Resolution of stored field values into an immutable merge context."""

import json
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, Field

from docmerge.models.fields import FieldSchema, ValueType
from docmerge.models.merge import FieldValue, ItemsValue, MergeContext, ScalarValue

logger = logging.getLogger(__name__)

FLAT_KEY_PREFIX = "field_"
TRUTHY = frozenset({"true", "yes", "1", "on"})
DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y")


class FieldValues(BaseModel):
    """Field values of one document as stored by the host application.

    Attributes:
        structured: ``slug -> value`` or ``slug -> {"type": ..., "value": ...}``.
        flat: Fallback store keyed ``field_<slug>``.
    """

    structured: dict[str, Any] = Field(default_factory=dict)
    flat: dict[str, Any] = Field(default_factory=dict)

    def lookup(self, slug: str) -> Any:
        """Return the raw value for ``slug`` or None when neither source has it."""
        if slug in self.structured:
            entry = self.structured[slug]
            if isinstance(entry, dict) and "value" in entry:
                entry = entry["value"]
            if entry is not None:
                return entry
        return self.flat.get(f"{FLAT_KEY_PREFIX}{slug}")


def is_truthy(value: Any) -> bool:
    """Interpret checkbox-style values: true/yes/1/on or a positive number."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value > 0
    text = str(value).strip().lower()
    if text in TRUTHY:
        return True
    try:
        return float(text) > 0
    except ValueError:
        return False


def normalize_number(value: Any) -> str:
    """Canonical decimal text, e.g. ``" 7.0 "`` -> ``"7"``; junk is kept trimmed."""
    text = str(value).strip()
    if not text or isinstance(value, bool):
        return text
    try:
        number = Decimal(text.replace(" ", ""))
    except InvalidOperation:
        return text
    if not number.is_finite():
        return text
    if number == number.to_integral_value():
        return str(int(number))
    return format(number.normalize(), "f")


def normalize_date(value: Any) -> str:
    """ISO ``YYYY-MM-DD`` when the value parses as a date; trimmed text otherwise."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if not text:
        return text
    try:
        return datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return text


def normalize_value(value: Any, value_type: ValueType) -> str:
    """Convert one raw scalar into its merge text.

    Rich HTML is returned untouched; every other type is trimmed and then
    normalised per type.
    """
    if value is None:
        return ""
    if value_type == ValueType.RICH_HTML:
        return value if isinstance(value, str) else str(value)
    if value_type == ValueType.NUMBER:
        return normalize_number(value)
    if value_type == ValueType.BOOLEAN:
        if isinstance(value, str) and not value.strip():
            return ""
        return "1" if is_truthy(value) else "0"
    if value_type == ValueType.DATE:
        return normalize_date(value)
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value).strip()


class MergeContextResolver:
    """Builds the merge context for one generation request."""

    def resolve(self, schema: list[FieldSchema], values: FieldValues) -> MergeContext:
        """Resolve every schema field from the stored values.

        Args:
            schema: The template schema.
            values: Stored values of the document.

        Returns:
            An immutable MergeContext with one entry per schema field.
        """
        resolved: dict[str, FieldValue] = {}
        for field in schema:
            if field.is_array:
                resolved[field.slug] = self._resolve_items(field, values.lookup(field.slug))
            else:
                resolved[field.slug] = self._resolve_scalar(field, values.lookup(field.slug))
        return MergeContext(values=resolved)

    def _resolve_scalar(self, field: FieldSchema, raw: Any) -> ScalarValue:
        if isinstance(raw, (list, dict, tuple, set)):
            logger.warning("Field '%s' expects a single value, got %s", field.slug, type(raw).__name__)
            raw = None
        return ScalarValue(value=normalize_value(raw, field.value_type), value_type=field.value_type)

    def _resolve_items(self, field: FieldSchema, raw: Any) -> ItemsValue:
        item_types = {slug: item.value_type for slug, item in field.item_schema.items()}
        records = self._decode_items(field.slug, raw)

        items: list[dict[str, str]] = []
        for position, record in enumerate(records):
            if not isinstance(record, dict):
                logger.warning("Skipping item %d of '%s': not a mapping", position, field.slug)
                continue
            item: dict[str, str] = {}
            for leaf, value_type in item_types.items():
                entry = record.get(leaf)
                if isinstance(entry, dict) and "value" in entry:
                    entry = entry["value"]
                if isinstance(entry, (list, dict)):
                    entry = None
                item[leaf] = normalize_value(entry, value_type)
            items.append(item)
        return ItemsValue(items=tuple(items), item_types=item_types)

    def _decode_items(self, slug: str, raw: Any) -> list[Any]:
        """Accept a list, a JSON string of one, or an index-keyed mapping."""
        if raw is None or raw == "":
            return []
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Items of '%s' are not valid JSON; treating as empty", slug)
                return []
        if isinstance(raw, (list, tuple)):
            return list(raw)
        if isinstance(raw, dict):
            try:
                keyed = sorted(raw.items(), key=lambda pair: int(pair[0]))
            except (TypeError, ValueError):
                logger.warning("Items of '%s' are a mapping without numeric keys; treating as empty", slug)
                return []
            return [value for _, value in keyed]
        logger.warning("Items of '%s' have unsupported type %s; treating as empty", slug, type(raw).__name__)
        return []
