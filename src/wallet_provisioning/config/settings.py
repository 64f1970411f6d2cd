"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``WALLETPROV_``, nested via ``__``)
2. YAML config file (``WALLETPROV_CONFIG_PATH`` env var or ``AppConfig.from_yaml``)
3. Defaults defined here
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class DatabaseEngine(enum.StrEnum):
    """Supported database engines."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class StoreEngine(enum.StrEnum):
    """Supported credential store backends."""

    DATABASE = "database"
    MEMORY = "memory"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class ProviderConfig(BaseSettings):
    """Custodial wallet provider (relay) settings."""

    model_config = SettingsConfigDict(
        env_prefix="WALLETPROV_PROVIDER__",
        case_sensitive=False,
    )

    url: str = "http://localhost:3001/api/circle"
    api_key: str = ""
    read_timeout: float = Field(
        default=5.0,
        ge=3.0,
        le=6.0,
        description="Timeout for read/status calls in seconds",
    )
    create_timeout: float = Field(
        default=15.0,
        gt=0,
        description="Timeout for calls that may create provider-side resources",
    )
    read_retries: int = Field(default=2, ge=0, le=2)
    create_retries: int = Field(default=1, ge=0, le=1)
    retry_backoff: float = Field(default=0.25, ge=0)
    blockchain: str = "APTOS-TESTNET"
    wallet_description: str = ""


class ChallengeConfig(BaseSettings):
    """Client-side challenge ceremony settings."""

    model_config = SettingsConfigDict(
        env_prefix="WALLETPROV_CHALLENGE__",
        case_sensitive=False,
    )

    timeout: float = Field(
        default=60.0,
        gt=0,
        description="How long to wait for the end user to finish the ceremony",
    )
    advisory_codes: list[int] = Field(default_factory=list)
    advisory_phrases: list[str] = Field(default_factory=list)


class ProvisioningConfig(BaseSettings):
    """Workflow settings."""

    model_config = SettingsConfigDict(
        env_prefix="WALLETPROV_PROVISIONING__",
        case_sensitive=False,
    )

    max_attempts: int = Field(default=2, ge=1)
    confirm_attempts: int = Field(default=3, ge=1)
    confirm_interval: float = Field(default=1.0, ge=0)
    recovery_timeout: float = Field(default=5.0, gt=0)
    check_challenge_status: bool = False


class DatabaseConfig(BaseSettings):
    """Database settings."""

    model_config = SettingsConfigDict(
        env_prefix="WALLETPROV_DB__",
        case_sensitive=False,
    )

    engine: DatabaseEngine = Field(
        default=DatabaseEngine.SQLITE,
        description="Database backend: sqlite or postgresql",
    )
    dsn: str = Field(
        default="sqlite+aiosqlite:///./wallet_provisioning.db",
        description="Async database connection string",
    )
    max_idle_connections: int = 5
    max_open_connections: int = 10
    debug_sql: bool = False


class StoreConfig(BaseSettings):
    """Credential store settings."""

    model_config = SettingsConfigDict(
        env_prefix="WALLETPROV_STORE__",
        case_sensitive=False,
    )

    engine: StoreEngine = Field(
        default=StoreEngine.DATABASE,
        description="Credential store backend: database or memory",
    )


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="WALLETPROV_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level configuration.

    Loads settings from environment variables (``WALLETPROV_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="WALLETPROV_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    config_path: str = ""

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    challenge: ChallengeConfig = Field(default_factory=ChallengeConfig)
    provisioning: ProvisioningConfig = Field(default_factory=ProvisioningConfig)
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                values[key] = {**val, **values[key]}
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
