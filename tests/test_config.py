"""Tests for config module."""

from pathlib import Path

import pytest

from vault_meili.config import Config

ENV_VARS = [
    "VAULT_ROOT",
    "VAULT_METADATA",
    "VAULT_PORT",
    "VAULT_AUTO_INDEX",
    "VAULT_SYNC_INTERVAL",
    "VAULT_WATCH",
    "VAULT_WATCH_DEBOUNCE_MS",
    "MEILI_HOST",
    "MEILI_API_KEY",
    "MEILI_INDEX",
    "MEILI_HYBRID_SEARCH",
    "MEILI_SEMANTIC_RATIO",
    "MEILI_TASK_POLL_INTERVAL",
    "MEILI_TASK_MAX_ATTEMPTS",
    "MEILI_BATCH_SIZE",
    "MEILI_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_config_defaults():
    """Test config loads with defaults when no env vars set."""
    config = Config.from_env()
    assert config.vault_root == Path.home() / "vault"
    assert config.metadata_path == Path.home() / "vault" / ".meilisearch-metadata.json"
    assert config.port == 8080
    assert config.meili_host == "http://localhost:7700"
    assert config.meili_api_key is None
    assert config.index_name == "obsidian-vault"
    assert config.auto_index_on_startup is True
    assert config.hybrid_search is False
    assert config.task_poll_interval == 1.0
    assert config.task_max_attempts == 600
    assert config.sync_interval == 0
    assert config.watch is True


def test_config_from_env(monkeypatch):
    """Test config loads from environment variables."""
    monkeypatch.setenv("VAULT_ROOT", "/custom/vault")
    monkeypatch.setenv("VAULT_METADATA", "/custom/state.json")
    monkeypatch.setenv("VAULT_PORT", "9000")
    monkeypatch.setenv("MEILI_HOST", "https://search.example.com/")
    monkeypatch.setenv("MEILI_API_KEY", "masterKey")
    monkeypatch.setenv("MEILI_INDEX", "notes")
    monkeypatch.setenv("MEILI_HYBRID_SEARCH", "yes")
    monkeypatch.setenv("MEILI_SEMANTIC_RATIO", "0.8")
    monkeypatch.setenv("VAULT_AUTO_INDEX", "false")

    config = Config.from_env()
    assert config.vault_root == Path("/custom/vault")
    assert config.metadata_path == Path("/custom/state.json")
    assert config.port == 9000
    assert config.meili_host == "https://search.example.com"
    assert config.meili_api_key == "masterKey"
    assert config.index_name == "notes"
    assert config.hybrid_search is True
    assert config.semantic_ratio == 0.8
    assert config.auto_index_on_startup is False


def test_metadata_follows_vault_root(monkeypatch):
    monkeypatch.setenv("VAULT_ROOT", "/custom/vault")
    config = Config.from_env()
    assert config.metadata_path == Path("/custom/vault/.meilisearch-metadata.json")


def test_empty_api_key_means_none(monkeypatch):
    monkeypatch.setenv("MEILI_API_KEY", "")
    assert Config.from_env().meili_api_key is None


def test_config_from_env_creates_new_instances():
    """Test Config.from_env() creates new instances each time."""
    config1 = Config.from_env()
    config2 = Config.from_env()
    assert config1 is not config2


def test_config_tilde_expansion(monkeypatch):
    """Test config expands tilde in paths."""
    monkeypatch.setenv("VAULT_ROOT", "~/custom/vault")
    config = Config.from_env()
    assert "~" not in str(config.vault_root)
    assert config.vault_root.is_absolute()


def test_config_invalid_port_non_numeric(monkeypatch):
    """Test config raises error for non-numeric port."""
    monkeypatch.setenv("VAULT_PORT", "not_a_number")
    with pytest.raises(ValueError, match="Invalid VAULT_PORT"):
        Config.from_env()


def test_config_invalid_port_out_of_range(monkeypatch):
    """Test config raises error for port out of valid range."""
    monkeypatch.setenv("VAULT_PORT", "70000")
    with pytest.raises(ValueError, match="Port must be between 1 and 65535"):
        Config.from_env()


def test_config_invalid_host(monkeypatch):
    monkeypatch.setenv("MEILI_HOST", "localhost:7700")
    with pytest.raises(ValueError, match="Invalid MEILI_HOST"):
        Config.from_env()


def test_config_sync_interval_from_env(monkeypatch):
    """Test sync_interval loads from environment."""
    monkeypatch.setenv("VAULT_SYNC_INTERVAL", "60")
    config = Config.from_env()
    assert config.sync_interval == 60


def test_config_sync_interval_invalid_non_numeric(monkeypatch):
    """Test config raises error for non-numeric sync interval."""
    monkeypatch.setenv("VAULT_SYNC_INTERVAL", "fast")
    with pytest.raises(ValueError, match="Invalid VAULT_SYNC_INTERVAL"):
        Config.from_env()


def test_config_sync_interval_invalid_negative(monkeypatch):
    """Test config raises error for negative sync interval."""
    monkeypatch.setenv("VAULT_SYNC_INTERVAL", "-5")
    with pytest.raises(ValueError, match="Sync interval must be >= 0"):
        Config.from_env()


def test_config_semantic_ratio_out_of_range(monkeypatch):
    monkeypatch.setenv("MEILI_SEMANTIC_RATIO", "1.5")
    with pytest.raises(ValueError, match="Semantic ratio must be between 0 and 1"):
        Config.from_env()


def test_config_task_budget_must_be_positive(monkeypatch):
    monkeypatch.setenv("MEILI_TASK_MAX_ATTEMPTS", "0")
    with pytest.raises(ValueError, match="Task max attempts must be positive"):
        Config.from_env()


def test_config_poll_interval_must_be_positive(monkeypatch):
    monkeypatch.setenv("MEILI_TASK_POLL_INTERVAL", "0")
    with pytest.raises(ValueError, match="Task poll interval must be positive"):
        Config.from_env()


def test_config_batch_size_must_be_positive(monkeypatch):
    monkeypatch.setenv("MEILI_BATCH_SIZE", "-1")
    with pytest.raises(ValueError, match="Batch size must be positive"):
        Config.from_env()
