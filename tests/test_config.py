from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from rhythm.config import AppConfig, EngineSettings, load_config


def test_load_config_reads_engine_settings(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"log_level": "DEBUG", "engine": {"night_start_hour": 20, "timezone": "Europe/London"}}))
    config = load_config(str(path))
    assert config.log_level == "DEBUG"
    assert config.engine.night_start_hour == 20
    assert config.engine.night_end_hour == 7
    assert config.engine.timezone == "Europe/London"


def test_env_var_points_at_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "custom.json"
    path.write_text(json.dumps({"database_path": "./tmp/flags.db"}))
    monkeypatch.setenv("RHYTHM_CONFIG", str(path))
    assert load_config().database_path == "./tmp/flags.db"


def test_missing_requested_config_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.json"))


def test_defaults() -> None:
    config = AppConfig()
    assert config.engine == EngineSettings(night_start_hour=19, night_end_hour=7, timezone="UTC")
    assert config.resolved_database_path.name == "rhythm.db"


@pytest.mark.parametrize(
    "overrides",
    [
        {"timezone": "Mars/Olympus_Mons"},
        {"night_start_hour": 7, "night_end_hour": 7},
        {"night_start_hour": 24},
    ],
)
def test_invalid_engine_settings(overrides) -> None:
    with pytest.raises(ValidationError):
        EngineSettings(**overrides)
