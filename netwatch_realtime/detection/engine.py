from __future__ import annotations

import random
from dataclasses import dataclass, field

from netwatch_realtime.analysis.window import SlidingWindow
from netwatch_realtime.models.metrics import Channel

RULE_HIGH_LATENCY = "RULE_HIGH_LATENCY"
RULE_PACKET_LOSS_SPIKE = "RULE_PACKET_LOSS_SPIKE"
RULE_BANDWIDTH_DROP = "RULE_BANDWIDTH_DROP"
RULE_RANDOM_TRIGGER = "RULE_RANDOM_TRIGGER"


@dataclass(slots=True)
class DetectionConfig:
    lookback: int = 5
    latency_threshold_ms: float = 200.0
    packet_loss_threshold_pct: float = 5.0
    bandwidth_drop_ratio: float = 0.7
    random_anomaly_probability: float = 0.05


@dataclass(slots=True)
class AnomalyVerdict:
    high_latency: bool
    packet_loss_spike: bool
    bandwidth_drop: bool
    random_trigger: bool
    rules: list[str] = field(default_factory=list)

    @property
    def is_anomalous(self) -> bool:
        return (self.high_latency and (self.packet_loss_spike or self.bandwidth_drop)) or self.random_trigger


def has_high_latency(values: list[float], threshold_ms: float) -> bool:
    return any(value > threshold_ms for value in values)


def has_packet_loss_spike(values: list[float], threshold_pct: float) -> bool:
    return any(value > threshold_pct for value in values)


def has_bandwidth_drop(values: list[float], ratio: float) -> bool:
    return any(cur < prev * ratio for prev, cur in zip(values, values[1:]))


class AnomalyEvaluator:
    """Regla de anomalías por reglas sobre las últimas muestras de la ventana.

    Sustituto declarado de un modelo real: combina umbrales de latencia,
    pérdida y caída de ancho de banda con un disparo aleatorio ocasional.
    """

    def __init__(self, config: DetectionConfig | None = None, rng: random.Random | None = None) -> None:
        self.config = config or DetectionConfig()
        self.rng = rng or random.Random()

    def evaluate(self, window: SlidingWindow) -> AnomalyVerdict:
        cfg = self.config
        lookback = min(cfg.lookback, window.capacity)
        latency = window.last(Channel.LATENCY, lookback)
        packet_loss = window.last(Channel.PACKET_LOSS, lookback)
        bandwidth = window.last(Channel.BANDWIDTH, lookback)

        # el sorteo se consume siempre, aunque las métricas ya decidan
        random_trigger = self.rng.random() > 1.0 - cfg.random_anomaly_probability

        verdict = AnomalyVerdict(
            high_latency=has_high_latency(latency, cfg.latency_threshold_ms),
            packet_loss_spike=has_packet_loss_spike(packet_loss, cfg.packet_loss_threshold_pct),
            bandwidth_drop=has_bandwidth_drop(bandwidth, cfg.bandwidth_drop_ratio),
            random_trigger=random_trigger,
        )
        if verdict.high_latency:
            verdict.rules.append(RULE_HIGH_LATENCY)
        if verdict.packet_loss_spike:
            verdict.rules.append(RULE_PACKET_LOSS_SPIKE)
        if verdict.bandwidth_drop:
            verdict.rules.append(RULE_BANDWIDTH_DROP)
        if verdict.random_trigger:
            verdict.rules.append(RULE_RANDOM_TRIGGER)
        return verdict
