"""Configuration loader for the document generator."""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class AppInfo(BaseModel):
    """Application metadata."""

    name: str = "docmerge"
    version: str = "1.0.0"
    language: str = "en"


class ConversionConfig(BaseModel):
    """Rendering knobs shared by the OOXML and ODF emitters."""

    monospace_font: str = "Courier New"
    indent_step_twips: int = 720
    list_hanging_twips: int = 360
    hyperlink_color: str = "0563C1"
    table_width_pct: int = 5000  # fiftieths of a percent, 5000 == 100%
    table_border_size: int = 4  # eighths of a point
    odf_indent_step_cm: float = 1.25
    odf_table_border: str = "0.5pt solid #000000"


class StorageConfig(BaseModel):
    """Storage paths configuration."""

    sqlite_path: str = "./db/docmerge.db"
    output_dir: str = "./output"


class AppConfig(BaseModel):
    """Root application configuration."""

    app: AppInfo = Field(default_factory=AppInfo)
    conversion: ConversionConfig = Field(default_factory=ConversionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def load_config(config_path: str | Path = "config.yaml") -> AppConfig:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Fully populated AppConfig instance.
    """
    load_dotenv()

    yaml_data: dict = {}
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file, encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f) or {}

    config = AppConfig(**yaml_data)

    # Override storage locations from environment
    sqlite_path = os.getenv("DOCMERGE_SQLITE_PATH")
    if sqlite_path:
        config.storage.sqlite_path = sqlite_path
    output_dir = os.getenv("DOCMERGE_OUTPUT_DIR")
    if output_dir:
        config.storage.output_dir = output_dir

    return config
