from __future__ import annotations

import pytest

from doc_quizzer.core.config import (
    TomlConfigError,
    load_toml,
    merge_strict,
    write_toml_template,
)


def test_load_toml_reads_tables(tmp_path):
    path = tmp_path / "cfg.toml"
    path.write_text('[section]\nkey = "value"\n', encoding="utf-8")

    assert load_toml(path) == {"section": {"key": "value"}}


def test_load_toml_reports_missing_and_invalid(tmp_path):
    with pytest.raises(TomlConfigError, match="not found"):
        load_toml(tmp_path / "missing.toml")

    broken = tmp_path / "broken.toml"
    broken.write_text("key = ", encoding="utf-8")
    with pytest.raises(TomlConfigError, match="Failed to parse"):
        load_toml(broken)


def test_merge_strict_merges_nested_tables():
    base = {"a": {"b": 1, "c": 2}, "d": None}

    merge_strict(base, {"a": {"c": 5}, "d": "set"})

    assert base == {"a": {"b": 1, "c": 5}, "d": "set"}


def test_merge_strict_rejects_unknown_and_mistyped_keys():
    with pytest.raises(TomlConfigError, match="'a.x'"):
        merge_strict({"a": {"b": 1}}, {"a": {"x": 1}})
    with pytest.raises(TomlConfigError, match="Expected table for 'a'"):
        merge_strict({"a": {"b": 1}}, {"a": 3})


def test_write_toml_template_respects_overwrite(tmp_path):
    target = tmp_path / "nested" / "cfg.toml"

    write_toml_template(target, template="x = 1\n")
    with pytest.raises(TomlConfigError, match="already exists"):
        write_toml_template(target, template="x = 2\n")
    write_toml_template(target, template="x = 3\n", overwrite=True)

    assert target.read_text(encoding="utf-8") == "x = 3\n"
    assert oct(target.stat().st_mode & 0o777) == oct(0o600)
