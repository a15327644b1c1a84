from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass(slots=True)
class MonitorSettings:
    window_capacity: int = 20
    tick_period_s: float = 1.0
    connect_delay_s: float = 1.5
    alert_log_capacity: int = 10


@dataclass(slots=True)
class SamplerSettings:
    base_latency_ms: float = 50.0
    base_bandwidth_mbps: float = 100.0
    base_packet_loss_pct: float = 0.5
    base_connections: int = 35
    latency_jitter_ms: float = 15.0
    bandwidth_jitter_mbps: float = 10.0
    packet_loss_jitter_pct: float = 0.5
    connections_jitter: int = 5
    spike_probability: float = 0.05
    spike_latency_factor: float = 3.0
    spike_bandwidth_factor: float = 0.5
    spike_packet_loss_factor: float = 5.0
    seed: int | None = None


@dataclass(slots=True)
class DetectionSettings:
    lookback: int = 5
    latency_threshold_ms: float = 200.0
    packet_loss_threshold_pct: float = 5.0
    bandwidth_drop_ratio: float = 0.7
    random_anomaly_probability: float = 0.05


@dataclass(slots=True)
class ExportSettings:
    format: str = "csv"
    precision: int = 2


@dataclass(slots=True)
class NotifierSettings:
    enabled: bool = False
    webhook_url: str = ""
    timeout_s: float = 8.0


@dataclass(slots=True)
class AppSettings:
    app_name: str = "NETWATCH REALTIME"
    log_level: str = "INFO"
    monitor: MonitorSettings = field(default_factory=MonitorSettings)
    sampler: SamplerSettings = field(default_factory=SamplerSettings)
    detection: DetectionSettings = field(default_factory=DetectionSettings)
    export: ExportSettings = field(default_factory=ExportSettings)
    notifier: NotifierSettings = field(default_factory=NotifierSettings)

    def validate(self) -> "AppSettings":
        monitor = self.monitor
        if monitor.window_capacity <= 0:
            raise ValueError("monitor.window_capacity debe ser positivo")
        if monitor.alert_log_capacity <= 0:
            raise ValueError("monitor.alert_log_capacity debe ser positivo")
        if monitor.tick_period_s <= 0:
            raise ValueError("monitor.tick_period_s debe ser positivo")
        if monitor.connect_delay_s < 0:
            raise ValueError("monitor.connect_delay_s no puede ser negativo")
        if not 0 < self.detection.lookback <= monitor.window_capacity:
            raise ValueError("detection.lookback debe estar entre 1 y monitor.window_capacity")
        for name, value in (
            ("sampler.spike_probability", self.sampler.spike_probability),
            ("detection.random_anomaly_probability", self.detection.random_anomaly_probability),
        ):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} debe estar en [0, 1]: {value}")
        if self.export.format not in {"csv", "tsv", "json"}:
            raise ValueError(f"Formato de exportación no soportado: {self.export.format}")
        if self.export.precision < 0:
            raise ValueError(f"export.precision no puede ser negativo: {self.export.precision}")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ValueError(f"log_level desconocido: {self.log_level}")
        if self.notifier.enabled and not self.notifier.webhook_url:
            raise ValueError("notifier.webhook_url es obligatorio cuando el notificador está activo")
        return self


class SettingsLoader:
    @staticmethod
    def _loads(text: str) -> dict[str, Any]:
        data = yaml.safe_load(text)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError("Configuración inválida")
        return data

    @staticmethod
    def _dumps(payload: dict[str, Any]) -> str:
        return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)

    @staticmethod
    def load(path: str | Path) -> AppSettings:
        content = SettingsLoader._loads(Path(path).read_text(encoding="utf-8"))

        settings = AppSettings(
            app_name=content.get("app_name", "NETWATCH REALTIME"),
            log_level=content.get("log_level", "INFO"),
            monitor=MonitorSettings(**content.get("monitor", {})),
            sampler=SamplerSettings(**content.get("sampler", {})),
            detection=DetectionSettings(**content.get("detection", {})),
            export=ExportSettings(**content.get("export", {})),
            notifier=NotifierSettings(**content.get("notifier", {})),
        )
        return settings.validate()

    @staticmethod
    def dump_default(path: str | Path) -> None:
        defaults = AppSettings()
        payload: dict[str, Any] = {
            "app_name": defaults.app_name,
            "log_level": defaults.log_level,
            "monitor": asdict(defaults.monitor),
            "sampler": asdict(defaults.sampler),
            "detection": asdict(defaults.detection),
            "export": asdict(defaults.export),
            "notifier": asdict(defaults.notifier),
        }
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        Path(path).write_text(SettingsLoader._dumps(payload), encoding="utf-8")
