"""Watcher configuration.

Settings live in a YAML file (``config/watcher.yaml`` by default, or the
path in ``WATCHER_CONFIG``).  Secrets are read from the environment so the
file can be committed: ``DISCORD_BOT_TOKEN`` and ``GIPHY_API_KEY``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from core.errors import ConfigError
from core.fetcher import DEFAULT_PRODUCT_URL, LISTING_URL_TEMPLATE

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "watcher.yaml"

_ENV_OVERRIDES = {
    "bot_token": "DISCORD_BOT_TOKEN",
    "giphy_key": "GIPHY_API_KEY",
}


@dataclass
class WatcherConfig:
    """Typed view of the configuration file."""

    channel: int = 0
    bot_id: int = 0
    bot_token: Optional[str] = None
    giphy_key: Optional[str] = None

    product: str = "3005816"
    product_url: str = DEFAULT_PRODUCT_URL
    listing_url: str = LISTING_URL_TEMPLATE
    block_status: str = "outOfStock"
    notify: str = "@here"

    interval: float = 30.0
    recheck_interval: float = 300.0
    request_timeout: float = 30.0
    retry_attempts: int = 5
    retry_wait_min: float = 1.0
    retry_wait_max: float = 30.0
    retry_on_fault: bool = False

    open_browser: bool = True
    debug_mode: bool = False
    echo_chance: float = 0.1

    log_level: str = "INFO"
    forward_log_level: Optional[str] = "WARNING"

    def validate(self) -> None:
        """Raise :class:`ConfigError` for values the watcher cannot run with."""
        if self.interval <= 0 or self.recheck_interval <= 0:
            raise ConfigError("interval and recheck_interval must be positive")
        if self.retry_attempts < 1:
            raise ConfigError("retry_attempts must be at least 1")
        if not 0.0 <= self.echo_chance <= 1.0:
            raise ConfigError("echo_chance must be between 0 and 1")
        if "{code}" not in self.listing_url:
            raise ConfigError("listing_url must contain a {code} placeholder")
        if not self.product:
            raise ConfigError("product code is required")
        for level in (self.log_level, self.forward_log_level):
            if level is not None and not isinstance(logging.getLevelName(level.upper()), int):
                raise ConfigError(f"unknown log level {level!r}")


def _coerce(name: str, value: Any, default: Any) -> Any:
    if value is None or default is None:
        return value
    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() in {"1", "true", "yes", "on"}
            return bool(value)
        if isinstance(default, (int, float)):
            return type(default)(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid value for {name}: {value!r}") from exc
    return str(value)


def load_config(path: Optional[Path] = None) -> WatcherConfig:
    """Read the YAML file at *path* and apply environment overrides."""
    if path is None:
        path = Path(os.environ.get("WATCHER_CONFIG", DEFAULT_CONFIG_PATH))

    raw: dict[str, Any] = {}
    if path.is_file():
        with open(path) as fh:
            try:
                raw = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"cannot parse {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"{path} must contain a mapping")
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("No configuration file at %s; using defaults", path)

    for key, env_name in _ENV_OVERRIDES.items():
        if os.environ.get(env_name):
            raw[key] = os.environ[env_name]

    defaults = WatcherConfig()
    known = {f.name for f in fields(WatcherConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))

    values = {
        name: _coerce(name, raw[name], getattr(defaults, name))
        for name in known
        if name in raw
    }
    config = WatcherConfig(**values)
    config.validate()
    return config
