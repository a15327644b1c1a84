from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Callable

from netwatch_realtime.models.metrics import AlertEntry, MetricSample

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def format_alert_message(detected_at: datetime, latency_ms: float, packet_loss_pct: float) -> str:
    return (
        f"Anomalía detectada a las {detected_at.strftime('%H:%M:%S')} - "
        f"Latencia: {latency_ms:.2f}ms, Pérdida: {packet_loss_pct:.2f}%"
    )


class AlertLog:
    """Registro acotado de episodios de anomalía, más reciente primero.

    Solo escribe en el flanco de entrada (normal -> anómalo); mientras la
    condición persiste no se duplican entradas y la salida no deja rastro.
    """

    def __init__(self, capacity: int = 10, now: Callable[[], datetime] = _utc_now) -> None:
        if capacity <= 0:
            raise ValueError("La capacidad del registro de alertas debe ser positiva")
        self.capacity = capacity
        self.now = now
        self.is_anomalous = False
        self._entries: deque[AlertEntry] = deque(maxlen=capacity)

    def record(self, anomalous: bool, sample: MetricSample) -> AlertEntry | None:
        if anomalous and not self.is_anomalous:
            detected_at = self.now()
            entry = AlertEntry(
                message=format_alert_message(detected_at, sample.latency_ms, sample.packet_loss_pct),
                detected_at=detected_at,
            )
            self._entries.appendleft(entry)
            self.is_anomalous = True
            logger.debug("Episodio de anomalía registrado: %s", entry.message)
            return entry
        if not anomalous and self.is_anomalous:
            self.is_anomalous = False
            logger.info("Fin del episodio de anomalía")
        return None

    def entries(self) -> tuple[AlertEntry, ...]:
        return tuple(self._entries)

    def reset(self) -> None:
        self._entries.clear()
        self.is_anomalous = False

    def __len__(self) -> int:
        return len(self._entries)
