"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from rman.config import (
    ConfigError,
    ConfigManager,
    RmanConfig,
    flatten_for_env,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".rman" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "Receipt Manager configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, RmanConfig)
    assert config.storage.root_path == "/files/"


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"uploads": {"quality": 70, "max_edge": 1600}, "search": {"scan_limit": 50}})

    env = {"RMAN__UPLOADS__QUALITY": "60", "RMAN__SEARCH__SCAN_LIMIT": "25"}
    cli = {"uploads.quality": 90}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.uploads.max_edge == 1600
    assert config.search.scan_limit == 25
    # CLI overrides take precedence over environment
    assert config.uploads.quality == 90


def test_environment_can_be_ignored(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    monkeypatch.setenv("RMAN__OPERATIONS__OVERWRITE_POLICY", "overwrite")

    assert manager.load().operations.overwrite_policy == "overwrite"
    assert manager.load(include_env=False).operations.overwrite_policy == "skip"


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_flatten_for_env_round_trips_defaults() -> None:
    flat = flatten_for_env(RmanConfig())

    assert flat["RMAN__STORAGE__ROOT_PATH"] == "/files/"
    assert flat["RMAN__UPLOADS__MAX_FILE_SIZE_MB"] == "10"
    assert flat["RMAN__CLI__QUIET_DEFAULT"] == "false"


@pytest.mark.parametrize(
    "overrides",
    [
        {"uploads": {"max_concurrent": "many"}},
        {"uploads": {"optimization": "aggressive"}},
        {"storage": {"unknown_field": True}},
    ],
)
def test_resolve_with_precedence_invalid_value_raises(overrides: dict) -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(defaults=RmanConfig(), file_overrides=overrides)
