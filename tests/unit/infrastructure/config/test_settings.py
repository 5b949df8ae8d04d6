from pathlib import Path

import pytest

from promptaudit.domain.models.analysis import PatternSeverity
from promptaudit.infrastructure.config import settings
from promptaudit.infrastructure.config.settings import (
    DEFAULT_CACHE_TTL_SECONDS,
    get_cache_dir,
    get_cache_ttl_seconds,
    get_config,
    get_results_dir,
    load_rules_config,
    set_config,
    set_config_for_testing,
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ["PROMPTAUDIT_CACHE_TTL_SECONDS", "PROMPTAUDIT_RESULTS_DIR", "PROMPTAUDIT_CACHE_DIR", "PROMPTAUDIT_DATA_DIR"]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(settings, "_config", {})


def test_test_config_overrides_everything(clean_env, monkeypatch):
    monkeypatch.setenv("PROMPTAUDIT_RESULTS_DIR", "/from/env")
    set_config_for_testing({"results_dir": "/from/test"})

    assert get_results_dir() == Path("/from/test")


def test_environment_variables_are_prefixed_and_coerced(clean_env, monkeypatch):
    monkeypatch.setenv("PROMPTAUDIT_CACHE_TTL_SECONDS", "60")
    monkeypatch.setenv("PROMPTAUDIT_SOME_FLAG", "true")

    assert get_cache_ttl_seconds() == 60
    assert get_config("some_flag") is True


def test_nested_yaml_keys_are_resolved(clean_env, monkeypatch):
    monkeypatch.setattr(settings, "_config", {"cache": {"ttl_seconds": 120}})

    assert get_cache_ttl_seconds() == 120
    assert get_config("cache.missing", "fallback") == "fallback"


def test_invalid_ttl_falls_back_to_default(clean_env):
    set_config_for_testing({"cache.ttl_seconds": "soon"})

    assert get_cache_ttl_seconds() == DEFAULT_CACHE_TTL_SECONDS


def test_directories_default_under_data_dir(clean_env, tmp_path):
    set_config_for_testing({"data_dir": str(tmp_path)})

    assert get_results_dir() == tmp_path / "results"
    assert get_cache_dir() == tmp_path / "cache"


def test_set_config_updates_process(clean_env, monkeypatch):
    # Registered so monkeypatch removes it again afterwards
    monkeypatch.setenv("PROMPTAUDIT_LOGGING_LEVEL", "")

    set_config("logging.level", "DEBUG")

    assert get_config("logging.level") == "DEBUG"


def test_load_rules_config(tmp_path, caplog):
    rules_file = tmp_path / ".promptaudit.yaml"
    rules_file.write_text(
        "rules:\n"
        "  imperative:\n"
        "    enabled: false\n"
        "  vague:\n"
        "    severity: Medium\n"
        "  no-goal:\n"
        "    severity: critical\n"
        "  too-broad: yes\n",
        encoding="utf-8",
    )

    rules = load_rules_config(rules_file)

    assert rules["imperative"].enabled is False
    assert rules["vague"].severity is PatternSeverity.MEDIUM
    assert rules["no-goal"].severity is None
    assert "too-broad" not in rules
    assert 'invalid severity "critical"' in caplog.text


def test_missing_rules_file_gives_empty_config(tmp_path):
    assert load_rules_config(tmp_path / "absent.yaml") == {}


def test_invalid_rules_yaml_raises(tmp_path):
    rules_file = tmp_path / "bad.yaml"
    rules_file.write_text("rules: [unclosed", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid rules config"):
        load_rules_config(rules_file)
