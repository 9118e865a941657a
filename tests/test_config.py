"""Tests for YAML config loading, API key discovery and keyword overrides."""

from __future__ import annotations

import json
import logging

from news_pulse.config import AppConfig, ClassifierConfig, LoggingConfig, get_api_keys, load_config
from news_pulse.core.taxonomy import DEFAULT_WEIGHTS, Taxonomy
from news_pulse.utils.logging import log_event, mask_secret, setup_logging


def test_load_config_without_path_returns_defaults():
    cfg = load_config(None)
    assert cfg == AppConfig()
    assert cfg.scheduler.min_analysis_interval_seconds == 900


def test_load_config_merges_sections_and_ignores_unknown_keys(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "scheduler:\n"
        "  min_fetch_interval_seconds: 60\n"
        "  retired_option: true\n"
        "classifier:\n"
        "  provider: gemini\n"
        "keywords:\n"
        "  known_tools: [Zed]\n"
        "mystery_section:\n"
        "  a: 1\n",
        encoding="utf-8",
    )

    cfg = load_config(str(path))

    assert cfg.scheduler.min_fetch_interval_seconds == 60
    assert cfg.scheduler.min_analysis_interval_seconds == 900
    assert not hasattr(cfg.scheduler, "retired_option")
    assert cfg.classifier.provider == "gemini"
    assert cfg.keywords == {"known_tools": ["Zed"]}


def test_load_config_handles_empty_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)) == AppConfig()


def test_api_keys_from_numbered_environment_variables(monkeypatch):
    monkeypatch.setenv("TEST_LLM_KEY", "alpha")
    monkeypatch.setenv("TEST_LLM_KEY_2", "beta")
    monkeypatch.setenv("TEST_LLM_KEY_3", "  ")
    monkeypatch.setenv("TEST_LLM_KEY_4", "alpha")
    monkeypatch.setenv("TEST_LLM_KEY_10", "omega")

    keys = get_api_keys(ClassifierConfig(api_key_env="TEST_LLM_KEY"))

    assert keys == ["alpha", "beta", "omega"]


def test_inline_api_keys_override_environment(monkeypatch):
    monkeypatch.setenv("TEST_LLM_KEY", "from-env")
    cfg = ClassifierConfig(api_key_env="TEST_LLM_KEY", api_keys=["inline", "inline", ""])
    assert get_api_keys(cfg) == ["inline"]


def test_taxonomy_overrides_replace_lists_and_merge_weights():
    taxonomy = Taxonomy.from_overrides(
        {
            "known_tools": ["Zed", "Helix"],
            "weights": {"tool": 45},
            "not_a_list": ["ignored"],
        }
    )

    assert taxonomy.known_tools == ["Zed", "Helix"]
    assert taxonomy.weight("tool") == 45
    assert taxonomy.weight("framework") == DEFAULT_WEIGHTS["framework"]
    assert taxonomy.known_models == Taxonomy().known_models


def test_file_logging_writes_jsonl_with_extra_fields(tmp_path):
    logger = setup_logging(LoggingConfig(console=False, file=True, filename="run.jsonl"), tmp_path)
    log_event(logger, "Cycle done", logging.INFO, event="cycle_done", items=3)
    for handler in logger.handlers:
        handler.flush()

    (line,) = (tmp_path / "run.jsonl").read_text(encoding="utf-8").splitlines()
    payload = json.loads(line)
    assert payload["message"] == "Cycle done"
    assert payload["event"] == "cycle_done"
    assert payload["items"] == 3


def test_mask_secret_keeps_only_the_tail():
    assert mask_secret("gsk_abcdef1234") == "***1234"
    assert mask_secret(None) == ""
