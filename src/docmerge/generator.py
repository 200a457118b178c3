"""High-level entry point: template + values -> generated document."""

import hashlib
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from docmerge.assembly import DocumentAssembler
from docmerge.config import AppConfig
from docmerge.export import build_output_path, output_format
from docmerge.html import HtmlConverter
from docmerge.merge import FieldValues, MergeContextResolver
from docmerge.models.fields import FieldSchema
from docmerge.scanning import TemplateScanner, read_template
from docmerge.schema import StoredSchema, build_schema
from docmerge.storage import InMemorySchemaStore, SchemaStore

logger = logging.getLogger(__name__)


class GeneratedDocument(BaseModel):
    """A generated document ready to be written or downloaded."""

    content: bytes
    file_format: str
    mime_type: str
    extension: str


def content_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class DocumentGenerator:
    """Runs the scan -> schema -> resolve -> assemble pipeline.

    Args:
        config: Application configuration.
        store: Schema store; an in-memory one is used when omitted.
    """

    def __init__(self, config: AppConfig | None = None, store: SchemaStore | None = None) -> None:
        self.config = config or AppConfig()
        self.store = store if store is not None else InMemorySchemaStore()
        self.scanner = TemplateScanner()
        self.resolver = MergeContextResolver()
        self.assembler = DocumentAssembler(self.config.conversion, HtmlConverter())

    @staticmethod
    def _template_id(template_path: str | Path, template_id: str | None) -> str:
        return template_id or str(Path(template_path).resolve())

    def _schema_for(self, data: bytes, file_format: str, template_id: str) -> list[FieldSchema]:
        digest = content_hash(data)
        stored = self.store.load_schema(template_id, digest)
        if stored is not None:
            logger.debug("Using stored schema for template %s", template_id)
            return stored.fields

        schema = build_schema(self.scanner.scan_bytes(data, file_format))
        self.store.save_schema(template_id, StoredSchema(template_id=template_id, content_hash=digest, fields=schema))
        logger.info("Built schema for template %s: %d fields", template_id, len(schema))
        return schema

    def get_schema(self, template_path: str | Path, template_id: str | None = None) -> list[FieldSchema]:
        """Return the template's schema, rebuilding it when the file changed.

        Raises:
            TemplateMissingError: If the template path is empty or missing.
            TemplateInvalidError: If the template cannot be read.
        """
        data, file_format = read_template(template_path)
        return self._schema_for(data, file_format, self._template_id(template_path, template_id))

    def generate(
        self,
        template_path: str | Path,
        values: FieldValues | dict[str, Any],
        template_id: str | None = None,
    ) -> GeneratedDocument:
        """Generate a document in the template's own format.

        Args:
            template_path: Path to a ``.docx`` or ``.odt`` template.
            values: Field values, or a plain ``slug -> value`` dict.
            template_id: Key of the template in the schema store.

        Returns:
            The generated document.

        Raises:
            TemplateMissingError: If the template path is empty or missing.
            TemplateInvalidError: If the template cannot be read.
            ParseError: If the container is corrupt at assembly time.
            GenerationError: If a repeat region cannot be bounded.
        """
        if not isinstance(values, FieldValues):
            values = FieldValues(structured=dict(values))
        data, file_format = read_template(template_path)
        schema = self._schema_for(data, file_format, self._template_id(template_path, template_id))
        context = self.resolver.resolve(schema, values)
        content = self.assembler.assemble(data, file_format, schema, context)

        fmt = output_format(file_format)
        return GeneratedDocument(
            content=content,
            file_format=file_format,
            mime_type=fmt.mime_type,
            extension=fmt.extension,
        )

    def generate_to_file(
        self,
        template_path: str | Path,
        values: FieldValues | dict[str, Any],
        output_dir: str | Path | None = None,
        title: str = "",
    ) -> Path:
        """Generate a document and write it to a fresh file.

        Returns:
            Path of the written document.
        """
        document = self.generate(template_path, values)
        directory = output_dir if output_dir is not None else self.config.storage.output_dir
        path = build_output_path(directory, title or Path(template_path).stem, document.file_format)
        path.write_bytes(document.content)
        logger.info("Wrote %s", path)
        return path
