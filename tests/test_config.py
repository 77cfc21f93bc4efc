"""Tests for configuration loading."""
import json

import pytest

from config import DEFAULT_CONFIG, load_config, load_config_from_env


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in DEFAULT_CONFIG:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CONFIG_FILE", str(tmp_path / "config.json"))


def test_defaults_without_file_or_env():
    config = load_config()

    assert config == DEFAULT_CONFIG
    assert config["SOLANA_RPC_URL"] == "https://api.mainnet-beta.solana.com"
    assert config["HELIUS_API_KEY"] == ""
    assert config["RECONNECT_DELAY_SECONDS"] == 30


def test_env_overrides_are_typed(monkeypatch):
    monkeypatch.setenv("HELIUS_API_KEY", "secret")
    monkeypatch.setenv("SOLANA_RPC_URL", "https://rpc.example.org")
    monkeypatch.setenv("FETCH_TIMEOUT_SECONDS", "7")
    monkeypatch.setenv("ENABLE_PUMPPORTAL_WS", "false")

    config = load_config()

    assert config["HELIUS_API_KEY"] == "secret"
    assert config["SOLANA_RPC_URL"] == "https://rpc.example.org"
    assert config["FETCH_TIMEOUT_SECONDS"] == 7
    assert config["ENABLE_PUMPPORTAL_WS"] is False


def test_unparseable_env_falls_back(monkeypatch):
    monkeypatch.setenv("HELIUS_MAX_PAGES", "many")
    assert load_config_from_env()["HELIUS_MAX_PAGES"] == DEFAULT_CONFIG["HELIUS_MAX_PAGES"]


def test_file_values_fill_missing_keys(monkeypatch, tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"REFRESH_INTERVAL_SECONDS": 60}))
    monkeypatch.setenv("SEARCH_RESULT_LIMIT", "10")

    config = load_config()

    assert config["REFRESH_INTERVAL_SECONDS"] == 60
    assert config["SEARCH_RESULT_LIMIT"] == 10
    assert config["JUPITER_TOKENS_URL"] == DEFAULT_CONFIG["JUPITER_TOKENS_URL"]


def test_broken_file_uses_defaults(tmp_path):
    (tmp_path / "config.json").write_text("{not json")
    assert load_config() == DEFAULT_CONFIG
