from __future__ import annotations

import asyncio
import logging
import random
import threading
import time
from dataclasses import asdict
from typing import Awaitable, Callable

from netwatch_realtime.analysis.window import SlidingWindow
from netwatch_realtime.config.settings import AppSettings
from netwatch_realtime.detection.alerts import AlertLog
from netwatch_realtime.detection.engine import AnomalyEvaluator, DetectionConfig
from netwatch_realtime.export.exporters import render_export
from netwatch_realtime.models.metrics import AlertEntry, Channel, MonitorSnapshot, MonitorState
from netwatch_realtime.sampling.sampler import MetricSampler, SamplerConfig

logger = logging.getLogger(__name__)

AlertListener = Callable[[AlertEntry], None]
SleepFn = Callable[[float], Awaitable[None]]


class MonitorRuntimeError(RuntimeError):
    """Se lanza cuando no se puede programar la tarea de monitoreo."""


class MonitorController:
    """Orquesta la sesión de monitoreo: muestreo, ventana, evaluación y alertas.

    Un único task de asyncio marca los ticks. ``start``/``stop`` se invocan desde
    el hilo del event loop; ``snapshot`` y ``export`` pueden leerse desde
    cualquier hilo. Cada tick construye la ventana nueva sobre una copia y la
    publica bajo lock solo si muestreo y evaluación terminaron bien.
    """

    def __init__(
        self,
        sampler: MetricSampler,
        evaluator: AnomalyEvaluator,
        window_capacity: int = 20,
        alert_log_capacity: int = 10,
        tick_period_s: float = 1.0,
        connect_delay_s: float = 1.5,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.sampler = sampler
        self.evaluator = evaluator
        self.window_capacity = window_capacity
        self.tick_period_s = tick_period_s
        self.connect_delay_s = connect_delay_s
        self.window = SlidingWindow(window_capacity)
        self.alert_log = AlertLog(alert_log_capacity)
        self.ticks = 0
        self.failed_ticks = 0
        self._sleep = sleep
        self._clock = clock
        self._state = MonitorState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._session = 0
        self._epoch = 0
        self._lock = threading.Lock()
        self._listeners: list[AlertListener] = []

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        seed: int | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> "MonitorController":
        seed = seed if seed is not None else settings.sampler.seed
        sampler_fields = asdict(settings.sampler)
        sampler_fields.pop("seed", None)
        sampler = MetricSampler(SamplerConfig(**sampler_fields), rng=random.Random(seed))
        evaluator = AnomalyEvaluator(
            DetectionConfig(**asdict(settings.detection)),
            rng=random.Random(None if seed is None else seed + 1),
        )
        return cls(
            sampler,
            evaluator,
            window_capacity=settings.monitor.window_capacity,
            alert_log_capacity=settings.monitor.alert_log_capacity,
            tick_period_s=settings.monitor.tick_period_s,
            connect_delay_s=settings.monitor.connect_delay_s,
            sleep=sleep,
        )

    @property
    def state(self) -> MonitorState:
        return self._state

    def subscribe(self, listener: AlertListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: AlertListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self) -> None:
        if self._state is not MonitorState.IDLE:
            logger.debug("start() ignorado: monitor en estado %s", self._state.value)
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise MonitorRuntimeError("start() requiere un event loop de asyncio en ejecución") from exc

        self._session += 1
        self._state = MonitorState.CONNECTING
        self._task = loop.create_task(self._run(self._session), name=f"netwatch-monitor-{self._session}")
        logger.info(
            "Conectando a la red (espera %.1fs)", self.connect_delay_s, extra={"state": self._state.value}
        )

    def stop(self) -> None:
        if self._state is MonitorState.IDLE:
            return
        self._session += 1
        self._state = MonitorState.IDLE
        if self._task is not None:
            self._task.cancel()
        logger.info("Monitoreo detenido tras %s ticks", self.ticks, extra={"state": self._state.value, "tick": self.ticks})

    async def wait_closed(self) -> None:
        task = self._task
        if task is None:
            return
        await asyncio.wait({task})
        if self._task is task and task.done():
            self._task = None

    def reset(self) -> None:
        with self._lock:
            self._epoch += 1
            self.window = SlidingWindow(self.window_capacity)
            self.alert_log.reset()
            self.ticks = 0
            self.failed_ticks = 0
        logger.info("Sesión de monitoreo reiniciada")

    async def _run(self, session: int) -> None:
        await self._sleep(self.connect_delay_s)
        if session != self._session:
            return
        self._state = MonitorState.RUNNING
        logger.info("Monitoreo activo (periodo %.2fs)", self.tick_period_s, extra={"state": self._state.value})
        while session == self._session:
            started = self._clock()
            self.tick()
            elapsed = self._clock() - started
            await self._sleep(max(0.0, self.tick_period_s - elapsed))

    def tick(self) -> AlertEntry | None:
        epoch = self._epoch
        try:
            sample = self.sampler.generate()
            candidate = self.window.copy()
            candidate.push(sample)
            verdict = self.evaluator.evaluate(candidate)
        except Exception:
            with self._lock:
                self.failed_ticks += 1
            logger.exception("Tick descartado: fallo al generar o evaluar la muestra")
            return None

        with self._lock:
            if epoch != self._epoch:
                return None
            self.window = candidate
            entry = self.alert_log.record(verdict.is_anomalous, sample)
            self.ticks += 1
            tick = self.ticks

        if verdict.rules:
            logger.debug(
                "Reglas activas en tick %s: %s", tick, ",".join(verdict.rules), extra={"tick": tick, "rules": list(verdict.rules)}
            )
        if entry is not None:
            logger.warning(
                "Alerta: %s",
                entry.message,
                extra={
                    "state": self._state.value,
                    "tick": tick,
                    "rules": list(verdict.rules),
                    "latency_ms": sample.latency_ms,
                    "packet_loss_pct": sample.packet_loss_pct,
                },
            )
            self._notify(entry)
        return entry

    def _notify(self, entry: AlertEntry) -> None:
        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception:
                logger.exception("Fallo en suscriptor de alertas %r", listener)

    def snapshot(self) -> MonitorSnapshot:
        with self._lock:
            window = self.window
            return MonitorSnapshot(
                state=self._state,
                channels={channel: tuple(window.values(channel)) for channel in Channel},
                timestamps=tuple(window.timestamps()),
                is_anomalous=self.alert_log.is_anomalous,
                alerts=self.alert_log.entries(),
                ticks=self.ticks,
                failed_ticks=self.failed_ticks,
            )

    def export(self, fmt: str = "csv", precision: int = 2) -> str:
        with self._lock:
            window = self.window
        return render_export(window, fmt, precision)
