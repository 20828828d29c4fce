"""Ledger configuration."""

import logging
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sievequota.common.constants import (
    CONFIG_DIR_NAME,
    DEFAULT_KEY_PREFIX,
    DEFAULT_LOCK_TIMEOUT,
    DEFAULT_OPERATION_TIMEOUT,
    DEFAULT_REDIS_URL,
    DEFAULT_SAVE_INTERVAL,
)

logger = logging.getLogger("sievequota.config")


class QuotaSettings(BaseSettings):
    """Ledger settings loaded from environment or config file."""

    model_config = SettingsConfigDict(env_prefix="SIEVEQUOTA_", env_nested_delimiter="__")

    # Store backend
    store_backend: Literal["memory", "file", "redis"] = Field(
        "file", description="Store backend type: memory (test), file (default), redis (multi-process)"
    )
    storage_path: Path = Field(Path("./quota_data"), description="Directory for the file backend")
    redis_url: str = Field(DEFAULT_REDIS_URL, description="Redis connection URL (only used if store_backend=redis)")
    save_interval: float = Field(
        DEFAULT_SAVE_INTERVAL,
        description="Seconds between flushes of the file backend. Env: SIEVEQUOTA_SAVE_INTERVAL",
    )
    lock_timeout: float = Field(
        DEFAULT_LOCK_TIMEOUT,
        description="Seconds the file backend waits while another process holds the ledger file "
        "(-1 = wait forever). Env: SIEVEQUOTA_LOCK_TIMEOUT",
    )

    # Ledger
    key_prefix: str = Field(
        DEFAULT_KEY_PREFIX,
        description="Prefix for every ledger key, lets several deployments share one Redis",
    )
    operation_timeout: Optional[float] = Field(
        DEFAULT_OPERATION_TIMEOUT,
        description="Timeout in seconds for a single store request (None = wait forever). "
        "Env: SIEVEQUOTA_OPERATION_TIMEOUT",
    )

    # Logging
    log_level: str = Field("INFO", description="Level for the sievequota logger")


def parse_size(value: str) -> int:
    """Parse human-readable size string to bytes.

    Examples: '100MB', '1GB', '500kb', '1073741824', '-2KB'
    """
    value = value.strip().upper()
    multipliers = {
        "B": 1,
        "KB": 1024,
        "MB": 1024**2,
        "GB": 1024**3,
        "TB": 1024**4,
        "K": 1024,
        "M": 1024**2,
        "G": 1024**3,
        "T": 1024**4,
    }
    for suffix, mult in sorted(multipliers.items(), key=lambda x: -len(x[0])):
        if value.endswith(suffix):
            return _scale(value[: -len(suffix)].strip(), mult)
    return int(value)


def _scale(num: str, mult: int) -> int:
    """Multiply a decimal string exactly, truncating any fractional byte."""
    try:
        return int(num) * mult
    except ValueError:
        pass
    try:
        amount = Decimal(num)
    except InvalidOperation:
        raise ValueError(f"Invalid size: {num!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid size: {num!r}")
    # Integer part first so large values never pass through a rounding context
    whole = int(amount)
    return whole * mult + int((amount - whole) * mult)


def _parse_yaml_to_settings_dict(config: dict) -> dict:
    """Convert a parsed YAML config dict into a flat settings dict."""
    d: dict = {}

    if "store" in config:
        st = config["store"] or {}
        if "backend" in st:
            d["store_backend"] = st["backend"]
        if "path" in st:
            d["storage_path"] = st["path"]
        if "redis_url" in st:
            d["redis_url"] = st["redis_url"]
        if "save_interval" in st:
            d["save_interval"] = st["save_interval"]
        if "lock_timeout" in st:
            d["lock_timeout"] = st["lock_timeout"]
    if "ledger" in config:
        lg = config["ledger"] or {}
        if "key_prefix" in lg:
            d["key_prefix"] = lg["key_prefix"]
        if "operation_timeout" in lg:
            d["operation_timeout"] = lg["operation_timeout"]
    if "logging" in config:
        if "level" in (config["logging"] or {}):
            d["log_level"] = config["logging"]["level"]

    return d


# ── Config file auto-discovery ────────────────────────────────

# Paths searched in order when no explicit config is given.
_CONFIG_SEARCH_PATHS = [
    Path("./sievequota.yaml"),
    Path("./config/sievequota.yaml"),
    Path.home() / CONFIG_DIR_NAME / "config.yaml",
]


def discover_config_path() -> Optional[Path]:
    """Find a config file using auto-discovery.

    Search order:
      1. ``$SIEVEQUOTA_CONFIG`` environment variable
      2. ``./sievequota.yaml``
      3. ``./config/sievequota.yaml``
      4. ``~/.sievequota/config.yaml``

    Returns:
        Path to the discovered config file, or None.
    """
    env_path = os.environ.get("SIEVEQUOTA_CONFIG", "")
    if env_path:
        p = Path(env_path)
        if p.exists():
            return p
        logger.warning("$SIEVEQUOTA_CONFIG=%s does not exist", env_path)

    for candidate in _CONFIG_SEARCH_PATHS:
        if candidate.exists():
            return candidate
    return None


def load_quota_settings(config_path: Optional[Path] = None) -> QuotaSettings:
    """Load ledger settings from config file + environment variables.

    Environment variables take precedence over values from the file.

    Args:
        config_path: Explicit path to config file.  When ``None``,
            auto-discovery is used (see :func:`discover_config_path`).
    """
    import yaml

    resolved_path = config_path
    if resolved_path is None:
        resolved_path = discover_config_path()

    settings_dict: dict = {}

    if resolved_path and resolved_path.exists():
        with open(resolved_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        settings_dict = _parse_yaml_to_settings_dict(config)
        logger.info("Loaded config from %s", resolved_path.resolve())
    else:
        logger.info("No config file found, using defaults + environment variables")

    # Init kwargs outrank env in pydantic-settings; drop file values the env overrides.
    for field in list(settings_dict):
        if f"SIEVEQUOTA_{field.upper()}" in os.environ:
            settings_dict.pop(field)

    return QuotaSettings(**settings_dict)


def configure_logging(settings: QuotaSettings) -> None:
    """Apply ``log_level`` to the sievequota logger hierarchy."""
    numeric_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.getLogger("sievequota").setLevel(numeric_level)
    # Also set root handler if none configured
    if not logging.getLogger().handlers:
        logging.basicConfig(level=numeric_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
