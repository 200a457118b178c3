"""Schema persistence."""

from docmerge.storage.database import get_connection, initialize_database
from docmerge.storage.schema_store import InMemorySchemaStore, SchemaStore, SqliteSchemaStore

__all__ = ["InMemorySchemaStore", "SchemaStore", "SqliteSchemaStore", "get_connection", "initialize_database"]
