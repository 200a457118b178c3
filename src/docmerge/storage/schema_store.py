"""Per-template schema persistence.

The generator never touches storage directly; it is handed a store that
implements :class:`SchemaStore`.
"""

import json
import logging
from pathlib import Path
from typing import Protocol

from docmerge.schema.serialization import StoredSchema, schema_from_document, schema_to_document
from docmerge.storage.database import get_connection, initialize_database

logger = logging.getLogger(__name__)


class SchemaStore(Protocol):
    """Where schemas are kept between requests."""

    def save_schema(self, template_id: str, stored: StoredSchema) -> None: ...

    def load_schema(self, template_id: str, content_hash: str | None = None) -> StoredSchema | None:
        """Return the stored schema, or None if absent or built from other bytes."""
        ...


class InMemorySchemaStore:
    """Dict-backed store for tests and one-off runs."""

    def __init__(self) -> None:
        self._schemas: dict[str, StoredSchema] = {}

    def save_schema(self, template_id: str, stored: StoredSchema) -> None:
        self._schemas[template_id] = stored.model_copy(deep=True)

    def load_schema(self, template_id: str, content_hash: str | None = None) -> StoredSchema | None:
        stored = self._schemas.get(template_id)
        if stored is None:
            return None
        if content_hash is not None and stored.content_hash != content_hash:
            return None
        return stored.model_copy(deep=True)


class SqliteSchemaStore:
    """Store backed by the ``template_schemas`` table.

    Args:
        db_path: Path to the SQLite database file; created on first use.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        initialize_database(self.db_path)

    def save_schema(self, template_id: str, stored: StoredSchema) -> None:
        payload = json.dumps(
            schema_to_document(stored.fields, meta={"template_id": template_id}),
            ensure_ascii=False,
        )
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO template_schemas (template_id, content_hash, schema_json, updated_at)
                VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(template_id) DO UPDATE SET
                    content_hash = excluded.content_hash,
                    schema_json = excluded.schema_json,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (template_id, stored.content_hash, payload),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Saved schema for template %s (%d fields)", template_id, len(stored.fields))

    def load_schema(self, template_id: str, content_hash: str | None = None) -> StoredSchema | None:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT content_hash, schema_json FROM template_schemas WHERE template_id = ?",
                (template_id,),
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        if content_hash is not None and row["content_hash"] != content_hash:
            return None
        try:
            document = json.loads(row["schema_json"])
        except json.JSONDecodeError:
            logger.warning("Stored schema of template %s is not valid JSON; ignoring it", template_id)
            return None
        return StoredSchema(
            template_id=template_id,
            content_hash=row["content_hash"],
            fields=schema_from_document(document),
        )
