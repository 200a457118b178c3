"""Command line entry point for docmerge."""

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

from docmerge.config import load_config
from docmerge.errors import DocGenError
from docmerge.generator import DocumentGenerator
from docmerge.merge import FieldValues
from docmerge.schema import schema_to_document
from docmerge.storage import SqliteSchemaStore
from docmerge.textio import read_text


def load_values(data_path: str | Path) -> FieldValues:
    """Read field values from a YAML or JSON file.

    The file holds ``fields:`` (structured values) and optionally ``flat:``;
    a mapping without either key is taken as the structured values.
    """
    document = yaml.safe_load(read_text(data_path)) or {}
    if not isinstance(document, dict):
        raise ValueError(f"{data_path} must contain a mapping")
    if "fields" not in document and "flat" not in document:
        return FieldValues(structured=document)
    return FieldValues(structured=document.get("fields") or {}, flat=document.get("flat") or {})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fill a DOCX/ODT template with field values.")
    parser.add_argument("template", help="Path to a .docx or .odt template")
    parser.add_argument("data", nargs="?", help="YAML or JSON file with field values")
    parser.add_argument("-o", "--output", help="Output file (default: a new file in the output directory)")
    parser.add_argument("--config", default="config.yaml", help="Configuration file")
    parser.add_argument("--schema", action="store_true", help="Print the template schema as JSON and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Generate a document, or print a template's schema."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config(args.config)
    generator = DocumentGenerator(config, SqliteSchemaStore(config.storage.sqlite_path))

    try:
        if args.schema:
            schema = generator.get_schema(args.template)
            print(json.dumps(schema_to_document(schema), ensure_ascii=False, indent=2))
            return 0

        if not args.data:
            logging.error("A data file is required unless --schema is given")
            return 2
        values = load_values(args.data)
        if args.output:
            document = generator.generate(args.template, values)
            output = Path(args.output)
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_bytes(document.content)
        else:
            output = generator.generate_to_file(args.template, values)
    except DocGenError as exc:
        logging.error("%s: %s", exc.kind, exc)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
