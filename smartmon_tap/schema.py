from __future__ import annotations

from functools import lru_cache
from importlib import resources
import json
from typing import Any

from jsonschema import Draft202012Validator

SCHEMA_FILE = "schemas/smartmon-measurements.schema.json"


def load_schema() -> dict[str, Any]:
    schema_text = resources.files("smartmon_tap").joinpath(SCHEMA_FILE).read_text(
        encoding="utf-8"
    )
    return json.loads(schema_text)


@lru_cache(maxsize=1)
def get_validator() -> Draft202012Validator:
    schema = load_schema()
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema=schema)


def validate_payload(payload: dict[str, Any]) -> list[str]:
    """Return one ``<json path>: <message>`` line per schema violation."""
    errors = sorted(get_validator().iter_errors(payload), key=lambda e: list(e.path))
    return [
        f"{'/'.join(str(part) for part in error.path) or '<root>'}: {error.message}"
        for error in errors
    ]
