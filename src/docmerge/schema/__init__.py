"""Schema inference and its stored form."""

from docmerge.schema.builder import build_schema, infer_value_type
from docmerge.schema.serialization import StoredSchema, schema_from_document, schema_to_document

__all__ = [
    "StoredSchema",
    "build_schema",
    "infer_value_type",
    "schema_from_document",
    "schema_to_document",
]
