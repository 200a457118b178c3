"""Template field models: raw placeholder tokens and the typed schema."""

import re
from enum import Enum

from pydantic import BaseModel, Field, model_validator

# group[*].leaf
ARRAY_PATH_RE = re.compile(r"^(?P<group>[^\[\]]+)\[\*\]\.(?P<leaf>[^\[\]]+)$")


class FieldKind(str, Enum):
    """Whether a field holds one value or a list of item records."""

    SCALAR = "scalar"
    ARRAY = "array"


class ValueType(str, Enum):
    """How a field's value is interpreted during generation."""

    PLAIN_TEXT = "plain_text"
    RICH_HTML = "rich_html"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


class RawFieldToken(BaseModel):
    """A placeholder found in a template, before schema inference."""

    placeholder_path: str
    label: str = ""
    declared_type: str = ""
    parameters: dict[str, str] = Field(default_factory=dict)

    @property
    def group(self) -> str | None:
        """Array group name when the path is ``group[*].leaf``."""
        match = ARRAY_PATH_RE.match(self.placeholder_path)
        return match.group("group") if match else None

    @property
    def leaf(self) -> str | None:
        """Item leaf name when the path is ``group[*].leaf``."""
        match = ARRAY_PATH_RE.match(self.placeholder_path)
        return match.group("leaf") if match else None

    @property
    def repeat_group(self) -> str | None:
        """Group named by a ``repeat=`` control parameter, if any."""
        value = self.parameters.get("repeat", "").strip()
        return value or None


class FieldSchema(BaseModel):
    """One typed field of a template schema.

    Array fields own an ``item_schema`` whose entries are always scalar.
    """

    slug: str
    kind: FieldKind = FieldKind.SCALAR
    value_type: ValueType = ValueType.PLAIN_TEXT
    label: str = ""
    description: str = ""
    required: bool = False
    parameters: dict[str, str] = Field(default_factory=dict)
    item_schema: dict[str, "FieldSchema"] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_item_schema(self) -> "FieldSchema":
        if self.kind == FieldKind.ARRAY:
            if not self.item_schema:
                raise ValueError(f"Array field '{self.slug}' needs at least one item field")
            for slug, item in self.item_schema.items():
                if item.kind != FieldKind.SCALAR:
                    raise ValueError(f"Item field '{slug}' of '{self.slug}' must be scalar")
                if item.slug != slug:
                    raise ValueError(f"Item field key '{slug}' does not match its slug '{item.slug}'")
        elif self.item_schema:
            raise ValueError(f"Scalar field '{self.slug}' cannot have an item schema")
        return self

    @property
    def is_array(self) -> bool:
        return self.kind == FieldKind.ARRAY


FieldSchema.model_rebuild()
