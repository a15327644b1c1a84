"""Entrega defensiva de alertas a un webhook HTTP."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any

import requests

from netwatch_realtime.models.metrics import AlertEntry

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_alert_payload(entry: AlertEntry, source: str = "netwatch-realtime") -> dict[str, Any]:
    return {
        "source": source,
        "message": entry.message,
        "detected_at": entry.detected_at.isoformat(),
    }


class WebhookNotifier:
    """Suscriptor de alertas que publica cada episodio nuevo en un webhook.

    La entrega se hace en un hilo aparte para no bloquear el event loop del
    monitor; los fallos quedan en el log y en el resultado, nunca en la sesión.
    """

    def __init__(self, url: str, timeout_s: float = 8.0, session: requests.Session | None = None) -> None:
        self.url = url
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="netwatch-webhook")

    def send(self, entry: AlertEntry) -> dict[str, Any]:
        try:
            response = self.session.post(self.url, json=build_alert_payload(entry), timeout=self.timeout_s)
            response.raise_for_status()
            return {"ok": True, "status": response.status_code, "response": response.text[:500], "ts": utc_now()}
        except requests.RequestException as exc:
            logger.warning("No se pudo entregar la alerta al webhook %s: %s", self.url, exc)
            return {"ok": False, "error": str(exc), "ts": utc_now()}

    def __call__(self, entry: AlertEntry) -> Future[dict[str, Any]]:
        future = self._executor.submit(self.send, entry)
        future.add_done_callback(self._log_failure)
        return future

    def _log_failure(self, future: Future[dict[str, Any]]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Entrega al webhook %s abortada", self.url, exc_info=exc)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self.session.close()
