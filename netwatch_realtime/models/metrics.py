from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Channel(str, Enum):
    LATENCY = "latency"
    BANDWIDTH = "bandwidth"
    PACKET_LOSS = "packet_loss"
    CONNECTIONS = "connections"


class MonitorState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    RUNNING = "running"


@dataclass(frozen=True, slots=True)
class MetricSample:
    latency_ms: float
    bandwidth_mbps: float
    packet_loss_pct: float
    active_connections: int
    timestamp: datetime

    def value(self, channel: Channel) -> float:
        if channel is Channel.LATENCY:
            return self.latency_ms
        if channel is Channel.BANDWIDTH:
            return self.bandwidth_mbps
        if channel is Channel.PACKET_LOSS:
            return self.packet_loss_pct
        return self.active_connections


@dataclass(frozen=True, slots=True)
class AlertEntry:
    message: str
    detected_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))


@dataclass(frozen=True, slots=True)
class MonitorSnapshot:
    """Vista de solo lectura del estado de la sesión para la capa de presentación."""

    state: MonitorState
    channels: dict[Channel, tuple[float, ...]]
    timestamps: tuple[datetime | None, ...]
    is_anomalous: bool
    alerts: tuple[AlertEntry, ...]
    ticks: int = 0
    failed_ticks: int = 0

    @property
    def populated(self) -> int:
        return sum(1 for ts in self.timestamps if ts is not None)
