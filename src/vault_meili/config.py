"""Configuration module for vault-meili.

Loads configuration from environment variables with sensible defaults.
A Config instance is built once at startup and passed to each component.
"""

import os
from dataclasses import dataclass
from pathlib import Path

METADATA_FILENAME = ".meilisearch-metadata.json"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_int(name: str, default: str) -> int:
    value = os.getenv(name, default)
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"Invalid {name} value '{value}': {e}") from e


def _env_float(name: str, default: str) -> float:
    value = os.getenv(name, default)
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"Invalid {name} value '{value}': {e}") from e


@dataclass
class Config:
    """Application configuration."""

    vault_root: Path
    metadata_path: Path
    port: int
    meili_host: str
    meili_api_key: str | None
    index_name: str
    auto_index_on_startup: bool = True
    hybrid_search: bool = False
    semantic_ratio: float = 0.5
    task_poll_interval: float = 1.0
    task_max_attempts: int = 600
    batch_size: int = 1000
    request_timeout: float = 10.0
    sync_interval: int = 0
    watch: bool = True
    watch_debounce_ms: int = 500

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        default_root = str(Path.home() / "vault")
        vault_root = Path(os.getenv("VAULT_ROOT", default_root)).expanduser()

        default_metadata = str(vault_root / METADATA_FILENAME)
        metadata_path = Path(os.getenv("VAULT_METADATA", default_metadata)).expanduser()

        port_str = os.getenv("VAULT_PORT", "8080")
        try:
            port = int(port_str)
            if not 1 <= port <= 65535:
                raise ValueError(f"Port must be between 1 and 65535, got {port}")
        except ValueError as e:
            raise ValueError(f"Invalid VAULT_PORT value '{port_str}': {e}") from e

        meili_host = os.getenv("MEILI_HOST", "http://localhost:7700").rstrip("/")
        if not meili_host.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid MEILI_HOST value '{meili_host}': must start with http:// or https://"
            )

        # Empty API key means an unsecured instance
        meili_api_key = os.getenv("MEILI_API_KEY") or None

        index_name = os.getenv("MEILI_INDEX", "obsidian-vault")
        if not index_name:
            raise ValueError("MEILI_INDEX must not be empty")

        semantic_ratio = _env_float("MEILI_SEMANTIC_RATIO", "0.5")
        if not 0.0 <= semantic_ratio <= 1.0:
            raise ValueError(
                f"Semantic ratio must be between 0 and 1, got {semantic_ratio}"
            )

        task_poll_interval = _env_float("MEILI_TASK_POLL_INTERVAL", "1.0")
        if task_poll_interval <= 0:
            raise ValueError(
                f"Task poll interval must be positive, got {task_poll_interval}"
            )

        task_max_attempts = _env_int("MEILI_TASK_MAX_ATTEMPTS", "600")
        if task_max_attempts <= 0:
            raise ValueError(f"Task max attempts must be positive, got {task_max_attempts}")

        batch_size = _env_int("MEILI_BATCH_SIZE", "1000")
        if batch_size <= 0:
            raise ValueError(f"Batch size must be positive, got {batch_size}")

        request_timeout = _env_float("MEILI_TIMEOUT", "10.0")

        # Periodic sync - 0 disables it
        sync_interval = _env_int("VAULT_SYNC_INTERVAL", "0")
        if sync_interval < 0:
            raise ValueError(f"Sync interval must be >= 0, got {sync_interval}")

        watch_debounce_ms = _env_int("VAULT_WATCH_DEBOUNCE_MS", "500")

        return cls(
            vault_root=vault_root,
            metadata_path=metadata_path,
            port=port,
            meili_host=meili_host,
            meili_api_key=meili_api_key,
            index_name=index_name,
            auto_index_on_startup=_env_bool("VAULT_AUTO_INDEX", "true"),
            hybrid_search=_env_bool("MEILI_HYBRID_SEARCH", "false"),
            semantic_ratio=semantic_ratio,
            task_poll_interval=task_poll_interval,
            task_max_attempts=task_max_attempts,
            batch_size=batch_size,
            request_timeout=request_timeout,
            sync_interval=sync_interval,
            watch=_env_bool("VAULT_WATCH", "true"),
            watch_debounce_ms=watch_debounce_ms,
        )
