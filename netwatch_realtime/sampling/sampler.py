from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from netwatch_realtime.models.metrics import MetricSample

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SamplerConfig:
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


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class MetricSampler:
    """Generador sintético de métricas de red con jitter y picos ocasionales.

    Consume exactamente cinco valores de la fuente aleatoria por llamada, en
    orden fijo: latencia, ancho de banda, pérdida, conexiones y pico. Con una
    fuente sembrada la secuencia de muestras es reproducible.
    """

    def __init__(
        self,
        config: SamplerConfig | None = None,
        rng: random.Random | None = None,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.config = config or SamplerConfig()
        self.rng = rng or random.Random()
        self.now = now

    def _jitter(self, base: float, amplitude: float) -> float:
        return base + self.rng.random() * (2 * amplitude) - amplitude

    def generate(self) -> MetricSample:
        cfg = self.config
        latency = self._jitter(cfg.base_latency_ms, cfg.latency_jitter_ms)
        bandwidth = self._jitter(cfg.base_bandwidth_mbps, cfg.bandwidth_jitter_mbps)
        packet_loss = self._jitter(cfg.base_packet_loss_pct, cfg.packet_loss_jitter_pct)
        connections = (
            cfg.base_connections
            + math.floor(self.rng.random() * (2 * cfg.connections_jitter))
            - cfg.connections_jitter
        )

        # sin clamping: los picos pueden empujar valores fuera de rango físico
        if self.rng.random() > 1.0 - cfg.spike_probability:
            latency *= cfg.spike_latency_factor
            bandwidth *= cfg.spike_bandwidth_factor
            packet_loss *= cfg.spike_packet_loss_factor
            logger.debug("Pico simulado: latencia=%.2f perdida=%.2f", latency, packet_loss)

        return MetricSample(
            latency_ms=latency,
            bandwidth_mbps=bandwidth,
            packet_loss_pct=packet_loss,
            active_connections=int(connections),
            timestamp=self.now(),
        )
