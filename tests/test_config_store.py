import json

from keepawake.config import AppConfig, JiggleInterval, ScheduleWindow
from keepawake.config_store import UserSettings, load_user_settings, save_user_settings


def test_missing_file_returns_defaults(tmp_path) -> None:
    settings = load_user_settings(tmp_path / "missing.json")

    assert settings == UserSettings()
    assert settings.interval is JiggleInterval.THIRTY_SECONDS
    assert settings.weekday_window.start == "09:00"
    assert settings.weekend_window.stop == "14:00"


def test_save_then_load_preserves_all_fields(tmp_path) -> None:
    path = tmp_path / "nested" / "settings.json"
    settings = UserSettings(
        running=True,
        interval=JiggleInterval.FIVE_MINUTES,
        randomize=True,
        schedule_enabled=True,
        weekday_window=ScheduleWindow(start="22:00", stop="06:00"),
        weekend_enabled=True,
        weekend_window=ScheduleWindow(start="11:30", stop="12:45"),
        pause_on_battery=True,
    )

    save_user_settings(settings, path)

    assert load_user_settings(path) == settings
    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored["interval"] == 300
    assert stored["weekday_start"] == "22:00"


def test_invalid_values_fall_back_per_key(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "running": "yes",
                "interval": 45,
                "randomize": True,
                "weekday_start": "25:00",
                "weekday_stop": "18:30",
                "pause_on_battery": True,
            }
        ),
        encoding="utf-8",
    )

    settings = load_user_settings(path)

    assert settings.running is False
    assert settings.interval is JiggleInterval.THIRTY_SECONDS
    assert settings.randomize is True
    assert settings.weekday_window == ScheduleWindow(start="09:00", stop="18:30")
    assert settings.pause_on_battery is True


def test_corrupt_file_returns_defaults(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert load_user_settings(path) == UserSettings()


def test_non_object_json_returns_defaults(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")

    assert load_user_settings(path) == UserSettings()


def test_schedule_window_normalizes_time() -> None:
    window = ScheduleWindow(start="9:5", stop="17:00")

    assert window.start == "09:05"
    assert window.start_minute == 9 * 60 + 5


def test_app_config_defaults() -> None:
    config = AppConfig.load_default()

    assert config.failure_threshold == 3
    assert config.idle_tolerance_seconds == 2.0
    assert config.jitter_ratio == 0.2
    assert config.recovery_mode == "relaunch"
