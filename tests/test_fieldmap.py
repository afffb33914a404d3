import json
import logging
from pathlib import Path

import pytest

from lunchbill.fieldmap import (
    FIELDMAP_ENV_KEY,
    FieldMapping,
    MappingOrigin,
    default_config_path,
    load_field_mapping,
)
from lunchbill.schema import CANONICAL_FIELDS, DEFAULT_FIELD_MAPPING


def test_missing_file_falls_back_to_default(tmp_path):
    mapping = load_field_mapping(tmp_path / "fieldmap.json")

    assert mapping.origin is MappingOrigin.DEFAULT
    assert mapping.is_default
    assert dict(mapping.columns) == dict(DEFAULT_FIELD_MAPPING)
    assert set(mapping.columns) == set(CANONICAL_FIELDS)


def test_missing_file_fallback_is_logged_as_warning(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="lunchbill.fieldmap"):
        load_field_mapping(tmp_path / "fieldmap.json")

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert any("built-in default" in r.getMessage() for r in warnings)


def test_valid_json_is_loaded_as_is(tmp_path):
    payload = {name: f"col_{name}" for name in CANONICAL_FIELDS}
    path = Path(tmp_path) / "fieldmap.json"
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")

    mapping = load_field_mapping(path)

    assert mapping.origin is MappingOrigin.LOADED
    assert mapping.path == path
    assert mapping.columns["Barcode3"] == "col_Barcode3"


def test_utf8_bom_and_cjk_values_are_accepted(tmp_path):
    path = Path(tmp_path) / "fieldmap.json"
    path.write_bytes(b"\xef\xbb\xbf" + json.dumps({"ClassName": "班別"}, ensure_ascii=False).encode("utf-8"))

    mapping = load_field_mapping(path)

    assert mapping.origin is MappingOrigin.LOADED
    assert mapping.columns["ClassName"] == "班別"


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "{}",
        "[]",
        '["ClassName", "班級"]',
        '"ClassName"',
        "null",
    ],
)
def test_unusable_content_falls_back_to_default(tmp_path, content):
    path = Path(tmp_path) / "fieldmap.json"
    path.write_text(content, encoding="utf-8")

    mapping = load_field_mapping(path)

    assert mapping.origin is MappingOrigin.DEFAULT
    assert dict(mapping.columns) == dict(DEFAULT_FIELD_MAPPING)


def test_one_bad_value_discards_the_whole_document(tmp_path):
    """No partial merge: a single malformed entry means the default wins in full."""

    path = Path(tmp_path) / "fieldmap.json"
    path.write_text(json.dumps({"ClassName": "Klasse", "StudentId": 42}), encoding="utf-8")

    mapping = load_field_mapping(path)

    assert mapping.is_default
    assert mapping.columns["ClassName"] == "班級"


def test_partial_document_is_not_merged_with_defaults(tmp_path):
    path = Path(tmp_path) / "fieldmap.json"
    path.write_text(json.dumps({"ClassName": "Klasse"}), encoding="utf-8")

    mapping = load_field_mapping(path)

    assert mapping.origin is MappingOrigin.LOADED
    assert dict(mapping.columns) == {"ClassName": "Klasse"}
    # Unmapped fields resolve under their own canonical name.
    assert mapping.source_column_for("StudentId") == "StudentId"


def test_yaml_mapping_is_supported(tmp_path):
    path = Path(tmp_path) / "fieldmap.yaml"
    path.write_text("ClassName: 班級\nParentName: 家長\n", encoding="utf-8")

    mapping = load_field_mapping(path)

    assert mapping.origin is MappingOrigin.LOADED
    assert mapping.columns["ParentName"] == "家長"


def test_invalid_yaml_falls_back(tmp_path):
    path = Path(tmp_path) / "fieldmap.yml"
    path.write_text("ClassName: [unclosed\n", encoding="utf-8")

    assert load_field_mapping(path).is_default


def test_mapping_is_immutable_and_detached_from_caller_dict():
    source = {"ClassName": "Klasse"}
    mapping = FieldMapping.loaded(source)
    source["ClassName"] = "changed"

    assert mapping.columns["ClassName"] == "Klasse"
    with pytest.raises(TypeError):
        mapping.columns["ClassName"] = "other"  # type: ignore[index]


def test_default_config_path_honours_env_override(monkeypatch, tmp_path):
    target = Path(tmp_path) / "custom.json"
    monkeypatch.setenv(FIELDMAP_ENV_KEY, str(target))

    assert default_config_path() == target


def test_default_config_path_sits_beside_program(monkeypatch, tmp_path):
    monkeypatch.delenv(FIELDMAP_ENV_KEY, raising=False)
    monkeypatch.setattr("sys.argv", [str(Path(tmp_path) / "lunchbill_app.py")])

    assert default_config_path() == Path(tmp_path).resolve() / "fieldmap.json"


def test_load_without_argument_uses_default_location(monkeypatch, tmp_path):
    path = Path(tmp_path) / "fieldmap.json"
    path.write_text(json.dumps({"ClassName": "Klasse"}), encoding="utf-8")
    monkeypatch.setenv(FIELDMAP_ENV_KEY, str(path))

    mapping = load_field_mapping()

    assert mapping.origin is MappingOrigin.LOADED
    assert mapping.columns["ClassName"] == "Klasse"
