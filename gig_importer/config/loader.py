from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DatabaseConfig, ImportConfig
from ..models.import_result import ImportOptions
from ..models.rows import ColumnMapping

"""Config loader.

Responsibilities:
- Load the YAML config (default ``config/import.yml``)
- Validate it against ``config_schema.json`` (unknown keys rejected)
- Apply defaults (options, file name) and build typed config objects
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/import.yml")
SCHEMA_PATH = Path(__file__).parent / "config_schema.json"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing/invalid, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )

    input_file = data["input_file"]
    opts_raw = data.get("options") or {}
    options = ImportOptions(
        skip_duplicates=opts_raw.get("skip_duplicates", True),
        combine_rows=opts_raw.get("combine_rows", False),
        file_name=data.get("file_name") or Path(input_file).name,
    )

    mapping = None
    if data.get("column_mapping"):
        try:
            mapping = ColumnMapping.from_dict(data["column_mapping"])
        except ValueError as e:
            raise ConfigError(f"invalid column_mapping: {e}") from e

    sentinels = data.get("null_sentinels")
    return ImportConfig(
        input_file=input_file,
        user_id=data["user_id"],
        database=db,
        options=options,
        column_mapping=mapping,
        null_sentinels={s.strip().upper() for s in sentinels} if sentinels else None,
    )
