from __future__ import annotations

import csv
import io
import json
from pathlib import Path
from typing import Any

from netwatch_realtime.analysis.window import SlidingWindow
from netwatch_realtime.models.metrics import Channel

HEADERS = (
    "Timestamp",
    "Latencia (ms)",
    "Ancho de banda (Mbps)",
    "Pérdida de paquetes (%)",
    "Conexiones",
)
FLOAT_CHANNELS = (Channel.LATENCY, Channel.BANDWIDTH, Channel.PACKET_LOSS)
SUPPORTED_FORMATS = ("csv", "tsv", "json")


def export_delimited(window: SlidingWindow, delimiter: str = ",", precision: int = 2) -> str:
    """Serializa la ventana alineada por índice, de la muestra más antigua a la más reciente.

    Las ranuras que aún no recibieron muestra se exportan a cero con la
    etiqueta de tiempo vacía.
    """

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n")
    writer.writerow(HEADERS)

    columns = [window.values(channel) for channel in FLOAT_CHANNELS]
    connections = window.values(Channel.CONNECTIONS)
    for i, ts in enumerate(window.timestamps()):
        label = ts.strftime("%H:%M:%S") if ts is not None else ""
        row = [label]
        row.extend(f"{column[i]:.{precision}f}" for column in columns)
        row.append(str(int(connections[i])))
        writer.writerow(row)
    return buffer.getvalue()


def export_tsv(window: SlidingWindow, precision: int = 2) -> str:
    return export_delimited(window, delimiter="\t", precision=precision)


def export_json(window: SlidingWindow) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    latency = window.values(Channel.LATENCY)
    bandwidth = window.values(Channel.BANDWIDTH)
    packet_loss = window.values(Channel.PACKET_LOSS)
    connections = window.values(Channel.CONNECTIONS)
    for i, ts in enumerate(window.timestamps()):
        rows.append(
            {
                "timestamp": ts.isoformat() if ts is not None else None,
                "latency_ms": latency[i],
                "bandwidth_mbps": bandwidth[i],
                "packet_loss_pct": packet_loss[i],
                "active_connections": int(connections[i]),
            }
        )
    return rows


def render_export(window: SlidingWindow, fmt: str = "csv", precision: int = 2) -> str:
    if precision < 0:
        raise ValueError(f"Precisión de exportación inválida: {precision}")
    if fmt == "csv":
        return export_delimited(window, precision=precision)
    if fmt == "tsv":
        return export_tsv(window, precision=precision)
    if fmt == "json":
        return json.dumps(export_json(window), ensure_ascii=False, indent=2)
    raise ValueError(f"Formato de exportación no soportado: {fmt}")


def write_export(window: SlidingWindow, output: str | Path, fmt: str = "csv", precision: int = 2) -> None:
    Path(output).write_text(render_export(window, fmt, precision), encoding="utf-8")
