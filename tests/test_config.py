"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml

from docmerge.config import AppConfig, load_config


class TestAppConfigDefaults:
    """Test that AppConfig provides sensible defaults."""

    def test_default_config_creates_successfully(self) -> None:
        config = AppConfig()
        assert config.app.name == "docmerge"
        assert config.app.language == "en"

    def test_default_conversion_config(self) -> None:
        config = AppConfig()
        assert config.conversion.monospace_font == "Courier New"
        assert config.conversion.indent_step_twips == 720
        assert config.conversion.list_hanging_twips == 360
        assert config.conversion.hyperlink_color == "0563C1"

    def test_default_storage_config(self) -> None:
        config = AppConfig()
        assert config.storage.sqlite_path == "./db/docmerge.db"
        assert config.storage.output_dir == "./output"


class TestLoadConfig:
    """Test loading config from YAML files."""

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        yaml_data = {
            "app": {"name": "Test App", "version": "0.1.0"},
            "conversion": {"monospace_font": "Consolas"},
        }
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump(yaml_data))

        config = load_config(config_file)
        assert config.app.name == "Test App"
        assert config.app.version == "0.1.0"
        assert config.conversion.monospace_font == "Consolas"
        # Other fields keep defaults
        assert config.conversion.indent_step_twips == 720

    def test_load_missing_yaml_uses_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "nonexistent.yaml")
        assert config.app.name == "docmerge"

    def test_empty_yaml_uses_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        config = load_config(config_file)
        assert config.storage.output_dir == "./output"

    def test_env_vars_override_storage(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("{}")

        monkeypatch.setenv("DOCMERGE_SQLITE_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("DOCMERGE_OUTPUT_DIR", str(tmp_path / "out"))

        config = load_config(config_file)
        assert config.storage.sqlite_path == str(tmp_path / "env.db")
        assert config.storage.output_dir == str(tmp_path / "out")

    def test_load_project_config_yaml(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading the actual project config.yaml."""
        monkeypatch.delenv("DOCMERGE_SQLITE_PATH", raising=False)
        monkeypatch.chdir(Path(__file__).parent.parent)
        config = load_config("config.yaml")
        assert config.app.name == "docmerge"
        assert config.storage.sqlite_path == "./db/docmerge.db"
