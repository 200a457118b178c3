"""Tests for the template scanner."""

import zipfile
from pathlib import Path

import pytest

from conftest import build_docx
from docmerge.errors import TemplateInvalidError, TemplateMissingError
from docmerge.scanning import SUPPORTED_FORMATS, TemplateScanner, detect_format


@pytest.fixture
def scanner() -> TemplateScanner:
    return TemplateScanner()


class TestDetectFormat:
    def test_supported_formats(self) -> None:
        assert SUPPORTED_FORMATS == {".docx": "docx", ".odt": "odt"}
        assert detect_format("a/B.DOCX") == "docx"
        assert detect_format("a/b.odt") == "odt"

    def test_unsupported_extension(self) -> None:
        with pytest.raises(TemplateInvalidError):
            detect_format("letter.doc")


class TestScanDocx:
    """Tests for DOCX templates."""

    def test_tokens_in_document_order(self, scanner: TemplateScanner, docx_template) -> None:
        path = docx_template(["Title: [resolution_title]", "Body: [resolution_content;type=html]", "[amount]"])
        tokens = scanner.scan(path)
        assert [t.placeholder_path for t in tokens] == ["resolution_title", "resolution_content", "amount"]
        assert tokens[1].declared_type == "html"

    def test_split_runs_are_joined(self, scanner: TemplateScanner, docx_template) -> None:
        path = docx_template([["Dear [cli", "ent_na", "me],"]])
        tokens = scanner.scan(path)
        assert [t.placeholder_path for t in tokens] == ["client_name"]

    def test_duplicates_merge_parameters(self, scanner: TemplateScanner, docx_template) -> None:
        path = docx_template(["[amount]", "[amount;type=number]", "[amount;type=text]"])
        (token,) = scanner.scan(path)
        assert token.declared_type == "number"

    def test_tables_and_headers_are_scanned(self, scanner: TemplateScanner, docx_template) -> None:
        path = docx_template(["[a]"], table=[["[b]", "[c]"]], header="Ref [reference]")
        paths = {t.placeholder_path for t in scanner.scan(path)}
        assert paths == {"a", "b", "c", "reference"}

    def test_control_tokens_are_kept_per_group(self, scanner: TemplateScanner, docx_template) -> None:
        path = docx_template(["[onshow;repeat=annexes]", "[annexes[*].title]", "[onshow;repeat=votes]"])
        tokens = scanner.scan(path)
        assert [t.repeat_group for t in tokens] == ["annexes", None, "votes"]

    def test_template_without_tokens(self, scanner: TemplateScanner, docx_template) -> None:
        assert scanner.scan(docx_template(["No placeholders here [1]."])) == []


class TestScanOdt:
    def test_tokens_split_over_spans(self, scanner: TemplateScanner, odt_template) -> None:
        path = odt_template(
            '<text:p>Total [am<text:span text:style-name="T1">oun</text:span>t;type=number]</text:p>'
            "<text:h text:outline-level=\"1\">[title]</text:h>"
        )
        tokens = scanner.scan(path)
        assert [t.placeholder_path for t in tokens] == ["amount", "title"]
        assert tokens[0].declared_type == "number"


class TestScanErrors:
    def test_empty_path(self, scanner: TemplateScanner) -> None:
        with pytest.raises(TemplateMissingError):
            scanner.scan("")
        with pytest.raises(TemplateMissingError):
            scanner.scan(None)

    def test_missing_file(self, scanner: TemplateScanner, tmp_path: Path) -> None:
        with pytest.raises(TemplateMissingError):
            scanner.scan(tmp_path / "absent.docx")

    def test_missing_file_is_file_not_found(self, scanner: TemplateScanner, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            scanner.scan(tmp_path / "absent.odt")

    def test_corrupt_container(self, scanner: TemplateScanner, tmp_path: Path) -> None:
        path = tmp_path / "broken.docx"
        path.write_bytes(b"not a zip file")
        with pytest.raises(TemplateInvalidError):
            scanner.scan(path)

    def test_odt_without_content(self, scanner: TemplateScanner, tmp_path: Path) -> None:
        path = tmp_path / "empty.odt"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("mimetype", "application/vnd.oasis.opendocument.text")
        with pytest.raises(TemplateInvalidError):
            scanner.scan(path)

    def test_empty_bytes(self, scanner: TemplateScanner) -> None:
        with pytest.raises(TemplateMissingError):
            scanner.scan_bytes(b"", "docx")

    def test_unknown_format_bytes(self, scanner: TemplateScanner) -> None:
        with pytest.raises(TemplateInvalidError):
            scanner.scan_bytes(build_docx(["[a]"]), "rtf")
