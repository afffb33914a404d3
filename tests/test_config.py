from pathlib import Path

import pytest

from lunchbill.config import ConfigError, load_settings

SETTING_KEYS = (
    "LUNCHBILL_FIELDMAP",
    "LUNCHBILL_REPORT_NOTE",
    "LUNCHBILL_STRICT",
    "LUNCHBILL_OUTPUT_DIR",
    "LUNCHBILL_SUMMARY_LIMIT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in SETTING_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults_when_unset():
    settings = load_settings()

    assert settings.fieldmap_path is None
    assert settings.report_note == ""
    assert settings.strict is False
    assert settings.output_dir == Path("./exports")
    assert settings.summary_limit == 10


def test_values_are_read_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("LUNCHBILL_FIELDMAP", str(Path(tmp_path) / "map.json"))
    monkeypatch.setenv("LUNCHBILL_REPORT_NOTE", "114上")
    monkeypatch.setenv("LUNCHBILL_STRICT", " On ")
    monkeypatch.setenv("LUNCHBILL_SUMMARY_LIMIT", "25")

    settings = load_settings()

    assert settings.fieldmap_path == Path(tmp_path) / "map.json"
    assert settings.report_note == "114上"
    assert settings.strict is True
    assert settings.summary_limit == 25


@pytest.mark.parametrize("raw", ["", "   "])
def test_blank_values_use_defaults(monkeypatch, raw):
    monkeypatch.setenv("LUNCHBILL_STRICT", raw)
    monkeypatch.setenv("LUNCHBILL_SUMMARY_LIMIT", raw)

    settings = load_settings()

    assert settings.strict is False
    assert settings.summary_limit == 10


@pytest.mark.parametrize(
    "key, raw",
    [
        ("LUNCHBILL_SUMMARY_LIMIT", "ten"),
        ("LUNCHBILL_SUMMARY_LIMIT", "2.5"),
        ("LUNCHBILL_SUMMARY_LIMIT", "0"),
        ("LUNCHBILL_SUMMARY_LIMIT", "-3"),
        ("LUNCHBILL_STRICT", "maybe"),
    ],
)
def test_malformed_values_raise(monkeypatch, key, raw):
    monkeypatch.setenv(key, raw)

    with pytest.raises(ConfigError, match=key):
        load_settings()
