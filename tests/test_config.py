"""Tests for core.config.load_config."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.config import DEFAULT_CONFIG_PATH, WatcherConfig, load_config
from core.errors import ConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DISCORD_BOT_TOKEN", "GIPHY_API_KEY", "WATCHER_CONFIG"):
        monkeypatch.delenv(name, raising=False)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "watcher.yaml"
    path.write_text(text)
    return path


def test_loads_values_from_yaml(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        "channel: 1234\n"
        "bot_id: 42\n"
        "product: '999'\n"
        "interval: 10\n"
        "recheck_interval: 120\n"
        "debug_mode: true\n"
        "forward_log_level: null\n",
    )

    config = load_config(path)

    assert config.channel == 1234
    assert config.bot_id == 42
    assert config.product == "999"
    assert config.interval == 10.0
    assert config.recheck_interval == 120.0
    assert config.debug_mode is True
    assert config.forward_log_level is None
    assert config.block_status == WatcherConfig().block_status


def test_secrets_come_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DISCORD_BOT_TOKEN", "secret-token")
    monkeypatch.setenv("GIPHY_API_KEY", "giphy")
    path = _write(tmp_path, "bot_token: from-file\n")

    config = load_config(path)

    assert config.bot_token == "secret-token"
    assert config.giphy_key == "giphy"


def test_path_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write(tmp_path, "product: '111'\n")
    monkeypatch.setenv("WATCHER_CONFIG", str(path))

    assert load_config().product == "111"


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.yaml")
    assert config == WatcherConfig()


def test_shipped_config_is_valid() -> None:
    config = load_config(DEFAULT_CONFIG_PATH)
    assert config.interval > 0


@pytest.mark.parametrize(
    "text",
    [
        "interval: 0\n",
        "retry_attempts: 0\n",
        "echo_chance: 2\n",
        "listing_url: https://example.com/no-placeholder\n",
        "log_level: chatty\n",
        "interval: soon\n",
        "- just\n- a list\n",
        "channel: [unclosed\n",
    ],
)
def test_invalid_config_raises(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, text))
