from pathlib import Path

import pytest

from netwatch_realtime.config.settings import AppSettings, SettingsLoader


def test_default_config_roundtrip(tmp_path: Path) -> None:
    cfg = tmp_path / "netwatch.yaml"
    SettingsLoader.dump_default(cfg)
    loaded = SettingsLoader.load(cfg)
    assert loaded.app_name == "NETWATCH REALTIME"
    assert loaded.monitor.window_capacity == 20
    assert loaded.monitor.tick_period_s == 1.0
    assert loaded.monitor.connect_delay_s == 1.5
    assert loaded.monitor.alert_log_capacity == 10
    assert loaded.sampler.spike_probability == 0.05
    assert loaded.detection.random_anomaly_probability == 0.05
    assert loaded.detection.lookback == 5
    assert loaded.notifier.enabled is False


def test_partial_config_keeps_defaults(tmp_path: Path) -> None:
    cfg = tmp_path / "partial.yaml"
    cfg.write_text("log_level: DEBUG\nmonitor:\n  window_capacity: 30\n", encoding="utf-8")
    loaded = SettingsLoader.load(cfg)
    assert loaded.log_level == "DEBUG"
    assert loaded.monitor.window_capacity == 30
    assert loaded.monitor.tick_period_s == 1.0
    assert loaded.export.format == "csv"


def test_empty_file_loads_defaults(tmp_path: Path) -> None:
    cfg = tmp_path / "empty.yaml"
    cfg.write_text("", encoding="utf-8")
    assert SettingsLoader.load(cfg).monitor.window_capacity == 20


def test_non_mapping_config_is_rejected(tmp_path: Path) -> None:
    cfg = tmp_path / "list.yaml"
    cfg.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        SettingsLoader.load(cfg)


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    cfg = tmp_path / "typo.yaml"
    cfg.write_text("monitor:\n  window_size: 5\n", encoding="utf-8")
    with pytest.raises(TypeError):
        SettingsLoader.load(cfg)


@pytest.mark.parametrize(
    "mutate",
    [
        lambda s: setattr(s.monitor, "window_capacity", 0),
        lambda s: setattr(s.monitor, "tick_period_s", 0),
        lambda s: setattr(s.monitor, "connect_delay_s", -1),
        lambda s: setattr(s.monitor, "alert_log_capacity", 0),
        lambda s: setattr(s.detection, "lookback", 25),
        lambda s: setattr(s.sampler, "spike_probability", 1.5),
        lambda s: setattr(s.detection, "random_anomaly_probability", -0.1),
        lambda s: setattr(s.export, "format", "xml"),
        lambda s: setattr(s.notifier, "enabled", True),
        lambda s: setattr(s.export, "precision", -1),
        lambda s: setattr(s, "log_level", "verbose"),
    ],
)
def test_validation_rejects_invalid_values(mutate) -> None:
    settings = AppSettings()
    mutate(settings)
    with pytest.raises(ValueError):
        settings.validate()
