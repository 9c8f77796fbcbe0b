"""
Table schema loading.

Schemas live in YAML files using the same field layout as source specs:

    schema:
      - name: trade_id
        type: STRING
        mode: REQUIRED
      - name: legs
        type: RECORD
        mode: REPEATED
        fields:
          - name: notional
            type: NUMERIC

A bare top-level list of fields is accepted as well.
"""

from pathlib import Path
from typing import Any

import yaml
from google.cloud import bigquery

from table_inserter.errors import ConfigurationError

VALID_MODES = {"NULLABLE", "REQUIRED", "REPEATED"}


def parse_fields(fields: list[dict[str, Any]], path: str = "schema") -> list[bigquery.SchemaField]:
    """Convert a list of field dicts into SchemaFields, recursing into RECORDs."""
    result = []
    seen = set()

    for i, field in enumerate(fields):
        if not isinstance(field, dict):
            raise ConfigurationError(f"{path}[{i}] must be a mapping")

        name = field.get("name")
        if not name:
            raise ConfigurationError(f"{path}[{i}] missing 'name'")
        if name in seen:
            raise ConfigurationError(f"Duplicate field name: {path}.{name}")
        seen.add(name)

        field_type = str(field.get("type", "")).upper()
        if not field_type:
            raise ConfigurationError(f"Field '{path}.{name}' missing 'type'")

        mode = str(field.get("mode", "NULLABLE")).upper()
        if mode not in VALID_MODES:
            raise ConfigurationError(
                f"Field '{path}.{name}' has invalid mode '{mode}'. Valid: {sorted(VALID_MODES)}"
            )

        sub_fields: tuple[bigquery.SchemaField, ...] = ()
        if field_type in ("RECORD", "STRUCT"):
            if not field.get("fields"):
                raise ConfigurationError(f"RECORD field '{path}.{name}' has no 'fields'")
            sub_fields = tuple(parse_fields(field["fields"], f"{path}.{name}"))

        result.append(bigquery.SchemaField(
            name,
            field_type,
            mode=mode,
            description=field.get("description"),
            fields=sub_fields,
        ))

    return result


def load_schema(schema_path: str | Path) -> list[bigquery.SchemaField]:
    """
    Load a table schema from a YAML file.

    Args:
        schema_path: Path to the YAML file

    Returns:
        List of SchemaFields in file order

    Raises:
        ConfigurationError: If the file is missing, unparsable or malformed
    """
    path = Path(schema_path)
    try:
        raw = yaml.safe_load(path.read_text())
    except FileNotFoundError:
        raise ConfigurationError(f"Schema file not found: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigurationError(f"YAML parse error in {path}: {e}") from e

    if isinstance(raw, dict):
        raw = raw.get("schema")
    if not raw or not isinstance(raw, list):
        raise ConfigurationError(f"Schema is empty in {path}")

    return parse_fields(raw)
