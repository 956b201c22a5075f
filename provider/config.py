"""
provider/config.py - Provider configuration.

YAML defaults with environment overrides.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from config import CONFIG_DIR, load_provider
from core.constants import (
    DEFAULT_ACCOUNT_METHODS,
    DEFAULT_RECONNECT_DELAY_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
)


@dataclass
class ProviderConfig:
    """Full provider configuration."""

    rpc_url: str = "http://127.0.0.1:8545"
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    reconnect_delay_seconds: float = DEFAULT_RECONNECT_DELAY_SECONDS
    query_network_on_connect: bool = True
    remember_authorization: bool = True
    account_methods: tuple[str, ...] = DEFAULT_ACCOUNT_METHODS

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True


def load_provider_config(config_path: Path | None = None) -> ProviderConfig:
    """
    Load provider configuration from YAML file.

    Args:
        config_path: Path to provider.yaml (default: config/provider.yaml)

    Returns:
        ProviderConfig with file values and environment overrides applied
    """
    load_dotenv()

    data: dict[str, Any] = {}
    if config_path is None:
        if (CONFIG_DIR / "provider.yaml").exists():
            data = load_provider()
    elif config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    defaults = ProviderConfig()
    logging_data = data.get("logging", {}) or {}

    config = ProviderConfig(
        rpc_url=str(data.get("rpc_url", defaults.rpc_url)),
        timeout_seconds=float(data.get("timeout_seconds", defaults.timeout_seconds)),
        reconnect_delay_seconds=float(
            data.get("reconnect_delay_seconds", defaults.reconnect_delay_seconds)
        ),
        query_network_on_connect=bool(
            data.get("query_network_on_connect", defaults.query_network_on_connect)
        ),
        remember_authorization=bool(
            data.get("remember_authorization", defaults.remember_authorization)
        ),
        account_methods=tuple(data.get("account_methods", defaults.account_methods)),
        log_level=str(logging_data.get("level", defaults.log_level)).upper(),
        json_logs=bool(logging_data.get("json", defaults.json_logs)),
    )

    # Environment wins over the file
    if os.getenv("PROVIDER_RPC_URL"):
        config.rpc_url = os.environ["PROVIDER_RPC_URL"]
    if os.getenv("PROVIDER_TIMEOUT_SECONDS"):
        config.timeout_seconds = float(os.environ["PROVIDER_TIMEOUT_SECONDS"])
    if os.getenv("PROVIDER_LOG_LEVEL"):
        config.log_level = os.environ["PROVIDER_LOG_LEVEL"].upper()

    return config
