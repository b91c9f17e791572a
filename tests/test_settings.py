from __future__ import annotations

import json

import pytest
from jsonschema import ValidationError

from processed_metrics.core.config import load_settings, merge_config, resolve_config


def test_merge_config_defaults() -> None:
    config = merge_config(None)
    assert config["top_rows"] == 3
    assert config["top_rows_margin"] == 2
    assert config["conversion_rate_precision"] == 1
    assert config["render_context"] == "html"
    assert [d["name"] for d in config["dimensions"]] == ["country", "keyword", "website"]


def test_merge_config_is_deep_and_does_not_leak() -> None:
    config = merge_config({"goals": {"1": {"name": "Signup"}}})
    config["capabilities"].append("Mutated")
    assert merge_config(None)["capabilities"] == ["UserCountry", "Referrers"]
    assert config["goals"] == {"1": {"name": "Signup"}}


def test_resolve_config_applies_schema_defaults() -> None:
    resolved = resolve_config(
        {
            "goals": {"1": {"name": "Signup"}},
            "dimensions": [{"name": "country", "method": "UserCountry.getCountry"}],
        }
    )
    assert resolved["goals"]["1"]["allow_multiple"] is False
    assert resolved["dimensions"][0]["exclude_labels"] == []
    assert resolved["dimensions"][0]["capability"] is None


def test_resolve_config_rejects_invalid_values() -> None:
    with pytest.raises(ValidationError):
        resolve_config({"render_context": "pdf"})
    with pytest.raises(ValidationError):
        resolve_config({"top_rows": 0})


def test_load_settings_yaml_and_json(tmp_path) -> None:
    yaml_path = tmp_path / "settings.yaml"
    yaml_path.write_text("top_rows: 5\ncapabilities: [UserCountry]\n", encoding="utf-8")
    json_path = tmp_path / "settings.json"
    json_path.write_text(json.dumps({"top_rows_margin": 0}), encoding="utf-8")
    empty_path = tmp_path / "empty.yaml"
    empty_path.write_text("", encoding="utf-8")

    assert load_settings(yaml_path) == {"top_rows": 5, "capabilities": ["UserCountry"]}
    assert load_settings(json_path) == {"top_rows_margin": 0}
    assert load_settings(empty_path) == {}
    assert load_settings(None) == {}


def test_load_settings_requires_mapping(tmp_path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError, match="mapping"):
        load_settings(path)
