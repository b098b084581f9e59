"""Tests for configuration loading."""

import yaml

from pomogoal.core.config import Config


def test_defaults(tmp_path):
    config = Config.load(tmp_path / "missing.yaml")

    assert config.timer.work_minutes == 25
    assert config.timer.break_minutes == 5
    assert config.timer.work_to_break_delay < config.timer.break_to_work_delay
    assert config.store.user_id == "1"


def test_load_from_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "data_dir": str(tmp_path / "data"),
                "timer": {"work_minutes": 50, "break_minutes": 10},
                "store": {"base_url": "http://store.local:9000", "user_id": "42"},
            }
        )
    )

    config = Config.load(path)

    assert config.timer.work_minutes == 50
    assert config.timer.break_minutes == 10
    assert config.store.base_url == "http://store.local:9000"
    assert config.cache_path == tmp_path / "data" / "session_cache.json"


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("POMOGOAL_TIMER__WORK_MINUTES", "45")
    monkeypatch.setenv("POMOGOAL_STORE__USER_ID", "7")

    config = Config.load(tmp_path / "missing.yaml")

    assert config.timer.work_minutes == 45
    assert config.store.user_id == "7"


def test_save_round_trip(tmp_path):
    config = Config(config_dir=tmp_path, data_dir=tmp_path / "data")
    config.timer.work_minutes = 40

    config.save()

    assert Config.load(tmp_path / "config.yaml").timer.work_minutes == 40
