from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import yaml
from jsonschema import validate

DEFAULT_CONFIG: dict[str, Any] = {
    # Rows shown per dimension in the goal summary; the query over-fetches by
    # the margin since zero-conversion and excluded rows are dropped afterwards.
    "top_rows": 3,
    "top_rows_margin": 2,
    "conversion_rate_precision": 1,
    "time_precision": 3,
    "render_context": "html",
    "capabilities": ["UserCountry", "Referrers"],
    "keyword_not_defined": "Keyword not defined",
    "dimensions": [
        {
            "name": "country",
            "method": "UserCountry.getCountry",
            "capability": "UserCountry",
            "exclude_labels": [],
        },
        {
            "name": "keyword",
            "method": "Referrers.getKeywords",
            "capability": "Referrers",
            "exclude_labels": ["${keyword_not_defined}"],
        },
        {
            "name": "website",
            "method": "Referrers.getWebsites",
            "capability": "Referrers",
            "exclude_labels": [],
        },
    ],
    "goals": {},
}

CONFIG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "top_rows": {"type": "integer", "minimum": 1, "default": 3},
        "top_rows_margin": {"type": "integer", "minimum": 0, "default": 2},
        "conversion_rate_precision": {"type": "integer", "minimum": 0, "default": 1},
        "time_precision": {"type": "integer", "minimum": 0, "default": 3},
        "render_context": {"type": "string", "enum": ["html", "machine"], "default": "html"},
        "capabilities": {"type": "array", "items": {"type": "string"}},
        "keyword_not_defined": {"type": "string"},
        "dimensions": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "method"],
                "properties": {
                    "name": {"type": "string"},
                    "method": {"type": "string"},
                    "capability": {"type": ["string", "null"], "default": None},
                    "exclude_labels": {
                        "type": "array",
                        "items": {"type": "string"},
                        "default": [],
                    },
                },
            },
        },
        "goals": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "allow_multiple": {"type": "boolean", "default": False},
                },
            },
        },
    },
}


def merge_config(config: dict[str, Any] | None) -> dict[str, Any]:
    if config is None:
        return copy.deepcopy(DEFAULT_CONFIG)
    merged = copy.deepcopy(DEFAULT_CONFIG)
    _deep_merge(merged, config)
    return merged


def _deep_merge(target: dict[str, Any], incoming: dict[str, Any]) -> None:
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


def load_settings(path: str | Path | None) -> dict[str, Any]:
    if not path:
        return {}
    path = Path(path)
    content = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        data = json.loads(content)
    else:
        data = yaml.safe_load(content)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file must hold a mapping: {path}")
    return data


def resolve_config(settings: dict[str, Any] | None) -> dict[str, Any]:
    """Merge over the defaults, apply JSONSchema defaults, then validate."""

    resolved = merge_config(settings)
    _apply_jsonschema_defaults(CONFIG_SCHEMA, resolved)
    validate(instance=resolved, schema=CONFIG_SCHEMA)
    return resolved


def _apply_jsonschema_defaults(schema: Any, instance: Any) -> Any:
    """Fill ``default`` values from a JSONSchema into ``instance``.

    Handles object properties, additionalProperties and array items, which is
    all ``CONFIG_SCHEMA`` uses.
    """

    if not isinstance(schema, dict):
        return instance

    schema_type = schema.get("type")
    if schema_type == "object" and isinstance(instance, dict):
        props = schema.get("properties") or {}
        for key in sorted(props.keys()):
            prop_schema = props.get(key)
            if key not in instance:
                if isinstance(prop_schema, dict) and "default" in prop_schema:
                    instance[key] = copy.deepcopy(prop_schema["default"])
            if key in instance:
                instance[key] = _apply_jsonschema_defaults(prop_schema, instance[key])

        additional = schema.get("additionalProperties")
        if isinstance(additional, dict):
            for key in sorted(instance.keys()):
                if key in props:
                    continue
                instance[key] = _apply_jsonschema_defaults(additional, instance[key])

    if schema_type == "array" and isinstance(instance, list):
        items_schema = schema.get("items")
        if isinstance(items_schema, dict):
            for idx, value in enumerate(list(instance)):
                instance[idx] = _apply_jsonschema_defaults(items_schema, value)

    return instance
