"""Merge context: resolved field values for one generation request."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from docmerge.models.fields import ValueType


class ScalarValue(BaseModel):
    """A single resolved value."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["scalar"] = "scalar"
    value: str = ""
    value_type: ValueType = ValueType.PLAIN_TEXT


class ItemsValue(BaseModel):
    """Resolved records of an array field, in submission order."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["items"] = "items"
    items: tuple[dict[str, str], ...] = ()
    item_types: dict[str, ValueType] = Field(default_factory=dict)


FieldValue = ScalarValue | ItemsValue


class MergeContext(BaseModel):
    """Immutable slug -> value mapping consumed by the assembler."""

    model_config = ConfigDict(frozen=True)

    values: dict[str, FieldValue] = Field(default_factory=dict)

    def __contains__(self, slug: object) -> bool:
        return slug in self.values

    def get(self, slug: str) -> FieldValue | None:
        return self.values.get(slug)

    def scalar(self, slug: str) -> ScalarValue | None:
        """Return the scalar value for ``slug`` or None if absent or an array."""
        value = self.values.get(slug)
        return value if isinstance(value, ScalarValue) else None

    def items(self, slug: str) -> ItemsValue | None:
        """Return the item records for ``slug`` or None if absent or a scalar."""
        value = self.values.get(slug)
        return value if isinstance(value, ItemsValue) else None

    def rich_values(self) -> list[str]:
        """Collect every rich HTML value, scalars first then item leaves.

        Returns:
            Non-empty rich HTML strings in schema order.
        """
        found: list[str] = []
        for value in self.values.values():
            if isinstance(value, ScalarValue):
                if value.value_type == ValueType.RICH_HTML and value.value:
                    found.append(value.value)
                continue
            for item in value.items:
                for leaf, text in item.items():
                    if value.item_types.get(leaf) == ValueType.RICH_HTML and text:
                        found.append(text)
        return found
