"""Tests for reading data files of unknown encoding."""

from pathlib import Path

import pytest

from docmerge.textio import read_text

FRENCH = "Le comité a approuvé la décision à l'unanimité. Très bien, merci à tous.\n" * 20


class TestReadText:
    def test_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "values.yaml"
        path.write_text("name: Ana\n", encoding="utf-8")
        assert read_text(path) == "name: Ana\n"

    def test_bom_is_dropped(self, tmp_path: Path) -> None:
        path = tmp_path / "values.yaml"
        path.write_bytes("\ufeffname: Ana\n".encode("utf-8"))
        assert read_text(path) == "name: Ana\n"

    def test_legacy_encoding_is_detected(self, tmp_path: Path) -> None:
        path = tmp_path / "values.yaml"
        path.write_bytes(FRENCH.encode("cp1252"))
        assert "comité a approuvé" in read_text(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            read_text(tmp_path / "absent.yaml")
