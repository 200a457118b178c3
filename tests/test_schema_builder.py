"""Tests for schema inference and its stored form."""

import logging

import pytest

from docmerge.models import FieldKind, RawFieldToken, ValueType
from docmerge.schema import build_schema, infer_value_type, schema_from_document, schema_to_document
from docmerge.schema.serialization import SCHEMA_VERSION


def token(path: str, declared: str = "", **params: str) -> RawFieldToken:
    return RawFieldToken(placeholder_path=path, declared_type=declared, parameters=params)


class TestInferValueType:
    @pytest.mark.parametrize(
        ("declared", "expected"),
        [
            ("html", ValueType.RICH_HTML),
            ("TinyMCE", ValueType.RICH_HTML),
            ("number", ValueType.NUMBER),
            ("checkbox", ValueType.BOOLEAN),
            ("date", ValueType.DATE),
            ("text", ValueType.PLAIN_TEXT),
            ("something-odd", ValueType.PLAIN_TEXT),
        ],
    )
    def test_declared_types(self, declared: str, expected: ValueType) -> None:
        assert infer_value_type(declared) == expected

    def test_slug_hints_rich_content(self) -> None:
        assert infer_value_type("", "resolution_content") == ValueType.RICH_HTML
        assert infer_value_type("text", "body") == ValueType.RICH_HTML
        assert infer_value_type("", "contents_count") == ValueType.PLAIN_TEXT

    def test_explicit_type_beats_slug_hint(self) -> None:
        assert infer_value_type("number", "content") == ValueType.NUMBER


class TestBuildSchema:
    def test_empty(self) -> None:
        assert build_schema([]) == []

    def test_scalars_keep_first_appearance_order(self) -> None:
        schema = build_schema([token("b"), token("a", "number"), token("c", "html")])
        assert [f.slug for f in schema] == ["b", "a", "c"]
        assert schema[1].value_type == ValueType.NUMBER
        assert schema[2].value_type == ValueType.RICH_HTML

    def test_array_groups(self) -> None:
        schema = build_schema(
            [
                token("title"),
                token("annexes[*].title"),
                token("annexes[*].content", "html"),
                token("annexes[*].title", "html"),
            ]
        )
        assert [f.slug for f in schema] == ["title", "annexes"]
        annexes = schema[1]
        assert annexes.kind == FieldKind.ARRAY
        assert list(annexes.item_schema) == ["title", "content"]
        assert annexes.item_schema["title"].value_type == ValueType.PLAIN_TEXT
        assert annexes.item_schema["content"].value_type == ValueType.RICH_HTML

    def test_repeat_token_labels_group_only(self) -> None:
        schema = build_schema(
            [
                RawFieldToken(placeholder_path="onshow", parameters={"repeat": "annexes", "title": "Annexes"}),
                token("annexes[*].title"),
            ]
        )
        assert [f.slug for f in schema] == ["annexes"]
        assert schema[0].label == "Annexes"

    def test_labels_descriptions_required(self) -> None:
        (field,) = build_schema(
            [RawFieldToken(placeholder_path="due_date", label="", parameters={"help": "ISO date", "required": "yes"})]
        )
        assert field.label == "Due date"
        assert field.description == "ISO date"
        assert field.required is True

    def test_array_wins_collision(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            schema = build_schema([token("annexes"), token("annexes[*].title")])
        assert [(f.slug, f.kind) for f in schema] == [("annexes", FieldKind.ARRAY)]
        assert "collides" in caplog.text

    def test_idempotent(self) -> None:
        tokens = [token("a"), token("g[*].x"), token("b", "date")]
        assert build_schema(tokens) == build_schema(tokens)


class TestSerialization:
    def test_document_layout(self) -> None:
        schema = build_schema([token("title"), token("annexes[*].title")])
        document = schema_to_document(schema, meta={"template_id": "t1"})
        assert document["version"] == SCHEMA_VERSION
        assert [f["slug"] for f in document["fields"]] == ["title"]
        assert document["repeaters"][0]["slug"] == "annexes"
        assert document["meta"] == {"template_id": "t1"}

    def test_restores_schema(self) -> None:
        schema = build_schema([token("amount", "number"), token("annexes[*].content", "html")])
        restored = schema_from_document(schema_to_document(schema))
        assert [(f.slug, f.kind, f.value_type) for f in restored] == [
            (f.slug, f.kind, f.value_type) for f in schema
        ]
        assert restored[1].item_schema["content"].value_type == ValueType.RICH_HTML

    def test_skips_malformed_entries(self) -> None:
        document = {
            "version": SCHEMA_VERSION,
            "fields": [{"slug": "ok", "type": "bogus"}, {"label": "no slug"}, "junk"],
            "repeaters": [{"slug": "empty", "fields": []}],
        }
        restored = schema_from_document(document)
        assert [f.slug for f in restored] == ["ok"]
        assert restored[0].value_type == ValueType.PLAIN_TEXT

    def test_foreign_version_is_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            assert schema_from_document({"version": 1, "fields": [{"slug": "a"}]}) == []
        assert schema_from_document(None) == []
