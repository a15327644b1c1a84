from __future__ import annotations

from dataclasses import dataclass

from netwatch_realtime.models.metrics import Channel, MonitorSnapshot, MonitorState

STATUS_LABELS = {
    MonitorState.CONNECTING: "Conectando a la red...",
    MonitorState.RUNNING: "Monitoreo activo",
    MonitorState.IDLE: "Monitoreo inactivo",
}

CHANNEL_LABELS = {
    Channel.LATENCY: ("Latencia", "ms"),
    Channel.BANDWIDTH: ("Ancho de banda", "Mbps"),
    Channel.PACKET_LOSS: ("Pérdida de paquetes", "%"),
    Channel.CONNECTIONS: ("Conexiones activas", ""),
}


@dataclass(slots=True)
class MonitorSummary:
    status_label: str
    anomaly_banner: str
    channel_lines: list[str]
    alert_lines: list[str]

    def render(self) -> str:
        lines = [f"Estado: {self.status_label}"]
        if self.anomaly_banner:
            lines.append(self.anomaly_banner)
        lines.extend(self.channel_lines)
        lines.append("Registro de anomalías:")
        lines.extend(self.alert_lines)
        return "\n".join(lines)


def compute_monitor_summary(snapshot: MonitorSnapshot) -> MonitorSummary:
    populated = snapshot.populated
    channel_lines: list[str] = []
    for channel, (label, unit) in CHANNEL_LABELS.items():
        values = snapshot.channels[channel][-populated:] if populated else ()
        if not values:
            channel_lines.append(f"{label:<20}: sin datos")
            continue
        latest = values[-1]
        avg = sum(values) / len(values)
        channel_lines.append(
            f"{label:<20}: actual {latest:>8.2f}{unit}  min {min(values):.2f}  "
            f"media {avg:.2f}  max {max(values):.2f}"
        )

    alert_lines = [f"- {alert.message}" for alert in snapshot.alerts]
    if not alert_lines:
        alert_lines.append("Sin anomalías detectadas. Inicie el monitoreo para analizar el tráfico.")

    banner = ""
    if snapshot.is_anomalous:
        banner = "¡Anomalía detectada! Variaciones anormales en las métricas de red."

    return MonitorSummary(
        status_label=STATUS_LABELS[snapshot.state],
        anomaly_banner=banner,
        channel_lines=channel_lines,
        alert_lines=alert_lines,
    )
