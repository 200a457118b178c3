"""Tests for merge context resolution."""

import logging

import pytest

from docmerge.merge import FieldValues, MergeContextResolver, is_truthy, normalize_value
from docmerge.models import FieldKind, FieldSchema, ValueType


@pytest.fixture
def resolver() -> MergeContextResolver:
    return MergeContextResolver()


@pytest.fixture
def schema() -> list[FieldSchema]:
    return [
        FieldSchema(slug="title"),
        FieldSchema(slug="amount", value_type=ValueType.NUMBER),
        FieldSchema(slug="body", value_type=ValueType.RICH_HTML),
        FieldSchema(
            slug="annexes",
            kind=FieldKind.ARRAY,
            item_schema={
                "title": FieldSchema(slug="title"),
                "content": FieldSchema(slug="content", value_type=ValueType.RICH_HTML),
            },
        ),
    ]


class TestFieldValues:
    def test_structured_wrapped_value(self) -> None:
        values = FieldValues(structured={"title": {"type": "text", "value": "Budget"}})
        assert values.lookup("title") == "Budget"

    def test_flat_fallback(self) -> None:
        values = FieldValues(structured={"title": None}, flat={"field_title": "Flat"})
        assert values.lookup("title") == "Flat"
        assert values.lookup("missing") is None


class TestNormalizeValue:
    def test_number(self) -> None:
        assert normalize_value(" 7.0 ", ValueType.NUMBER) == "7"
        assert normalize_value("2.50", ValueType.NUMBER) == "2.5"
        assert normalize_value("n/a", ValueType.NUMBER) == "n/a"

    def test_boolean(self) -> None:
        assert normalize_value("yes", ValueType.BOOLEAN) == "1"
        assert normalize_value("off", ValueType.BOOLEAN) == "0"
        assert normalize_value("", ValueType.BOOLEAN) == ""
        assert is_truthy(2) and not is_truthy(0)

    def test_date(self) -> None:
        assert normalize_value("2024-03-01T10:00:00", ValueType.DATE) == "2024-03-01"
        assert normalize_value("01/03/2024", ValueType.DATE) == "2024-03-01"
        assert normalize_value("soon", ValueType.DATE) == "soon"

    def test_rich_is_untouched(self) -> None:
        assert normalize_value("  <p>x</p> ", ValueType.RICH_HTML) == "  <p>x</p> "

    def test_plain_is_trimmed(self) -> None:
        assert normalize_value("  hi  ", ValueType.PLAIN_TEXT) == "hi"
        assert normalize_value(None, ValueType.PLAIN_TEXT) == ""


class TestResolve:
    def test_every_field_is_present(self, resolver: MergeContextResolver, schema: list[FieldSchema]) -> None:
        context = resolver.resolve(schema, FieldValues())
        assert context.scalar("title").value == ""
        assert context.items("annexes").items == ()

    def test_scalars(self, resolver: MergeContextResolver, schema: list[FieldSchema]) -> None:
        context = resolver.resolve(schema, FieldValues(structured={"title": " Budget ", "amount": "1200.00"}))
        assert context.scalar("title").value == "Budget"
        assert context.scalar("amount").value == "1200"
        assert context.scalar("amount").value_type == ValueType.NUMBER

    def test_scalar_given_list(
        self, resolver: MergeContextResolver, schema: list[FieldSchema], caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING):
            context = resolver.resolve(schema, FieldValues(structured={"title": ["a", "b"]}))
        assert context.scalar("title").value == ""
        assert "expects a single value" in caplog.text

    def test_items_from_list(self, resolver: MergeContextResolver, schema: list[FieldSchema]) -> None:
        raw = [{"title": "A", "content": "<p>a</p>"}, {"title": {"value": "B"}}, "junk"]
        items = resolver.resolve(schema, FieldValues(structured={"annexes": raw})).items("annexes")
        assert items.items == ({"title": "A", "content": "<p>a</p>"}, {"title": "B", "content": ""})
        assert items.item_types["content"] == ValueType.RICH_HTML

    def test_items_from_json_string(self, resolver: MergeContextResolver, schema: list[FieldSchema]) -> None:
        values = FieldValues(structured={"annexes": '[{"title": "A"}]'})
        assert resolver.resolve(schema, values).items("annexes").items[0]["title"] == "A"

    def test_items_from_indexed_mapping(self, resolver: MergeContextResolver, schema: list[FieldSchema]) -> None:
        values = FieldValues(structured={"annexes": {"10": {"title": "second"}, "2": {"title": "first"}}})
        titles = [item["title"] for item in resolver.resolve(schema, values).items("annexes").items]
        assert titles == ["first", "second"]

    def test_items_from_flat_store(self, resolver: MergeContextResolver, schema: list[FieldSchema]) -> None:
        values = FieldValues(flat={"field_annexes": '[{"title": "flat"}]'})
        assert resolver.resolve(schema, values).items("annexes").items[0]["title"] == "flat"

    def test_bad_items(
        self, resolver: MergeContextResolver, schema: list[FieldSchema], caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING):
            for raw in ("{not json", {"a": {"title": "x"}}, 42):
                context = resolver.resolve(schema, FieldValues(structured={"annexes": raw}))
                assert context.items("annexes").items == ()
        assert "treating as empty" in caplog.text
