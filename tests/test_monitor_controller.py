import asyncio
import random
from collections import deque
from datetime import datetime, timezone

import pytest

from netwatch_realtime.config.settings import AppSettings
from netwatch_realtime.core.monitor import MonitorController, MonitorRuntimeError
from netwatch_realtime.detection.engine import RULE_RANDOM_TRIGGER, AnomalyEvaluator
from netwatch_realtime.models.metrics import Channel, MonitorState
from netwatch_realtime.sampling.sampler import MetricSampler

NOW = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)
NORMAL_DRAWS = [0.5, 0.5, 0.5, 0.5, 0.0]


class ScriptedRandom(random.Random):
    def __init__(self, values: list[float], fail_on: tuple[int, ...] = ()) -> None:
        super().__init__(0)
        self.values = list(values)
        self.fail_on = fail_on
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        if self.calls in self.fail_on:
            raise RuntimeError("fuente aleatoria agotada")
        return self.values[(self.calls - 1) % len(self.values)]


class SteppedSleep:
    """Fake ``sleep`` whose timers only fire when the test advances them."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self._pending: deque[asyncio.Future[None]] = deque()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        waiter = asyncio.get_running_loop().create_future()
        self._pending.append(waiter)
        await waiter

    async def settle(self) -> None:
        for _ in range(10):
            await asyncio.sleep(0)

    def fire_pending(self) -> None:
        while self._pending:
            waiter = self._pending.popleft()
            if not waiter.done():
                waiter.set_result(None)

    async def advance(self, steps: int = 1) -> None:
        for _ in range(steps):
            await self.settle()
            assert self._pending, "no hay temporizador pendiente"
            self.fire_pending()
            await self.settle()


def _controller(
    evaluator_draws: list[float] | None = None,
    sampler_fail_on: tuple[int, ...] = (),
    evaluator_fail_on: tuple[int, ...] = (),
    sleep: SteppedSleep | None = None,
) -> MonitorController:
    sampler = MetricSampler(rng=ScriptedRandom(NORMAL_DRAWS, fail_on=sampler_fail_on), now=lambda: NOW)
    evaluator = AnomalyEvaluator(rng=ScriptedRandom(evaluator_draws or [0.1], fail_on=evaluator_fail_on))
    return MonitorController(sampler, evaluator, sleep=sleep or SteppedSleep(), clock=lambda: 0.0)


def test_first_random_draw_yields_anomaly_on_first_tick() -> None:
    controller = _controller([0.99, 0.1, 0.1, 0.1, 0.1])
    first = controller.tick()
    assert first is not None
    assert controller.snapshot().is_anomalous
    for _ in range(4):
        assert controller.tick() is None
    snap = controller.snapshot()
    assert not snap.is_anomalous
    assert len(snap.alerts) == 1
    assert snap.ticks == 5


def test_consecutive_anomalous_ticks_produce_one_entry_per_episode() -> None:
    controller = _controller([0.99, 0.99, 0.99, 0.1, 0.99, 0.99])
    for _ in range(6):
        controller.tick()
    assert len(controller.snapshot().alerts) == 2


def test_alert_log_stays_bounded_across_many_episodes() -> None:
    controller = _controller([0.99, 0.1])
    for _ in range(30):
        controller.tick()
    assert len(controller.snapshot().alerts) == 10


def test_window_receives_each_sample() -> None:
    controller = _controller()
    for _ in range(3):
        controller.tick()
    snap = controller.snapshot()
    assert snap.channels[Channel.LATENCY][-3:] == (50.0, 50.0, 50.0)
    assert snap.channels[Channel.LATENCY][:-3] == (0.0,) * 17
    assert snap.populated == 3


def test_sampler_failure_is_discarded_and_session_continues(caplog) -> None:
    controller = _controller(sampler_fail_on=(8,))
    controller.tick()
    before = controller.snapshot()
    assert controller.tick() is None
    after = controller.snapshot()
    assert after.channels == before.channels
    assert after.failed_ticks == 1
    assert "Tick descartado" in caplog.text
    controller.tick()
    assert controller.snapshot().ticks == 2


def test_evaluator_failure_does_not_commit_the_new_sample() -> None:
    controller = _controller(evaluator_fail_on=(1,))
    controller.tick()
    snap = controller.snapshot()
    assert snap.populated == 0
    assert snap.ticks == 0
    assert snap.failed_ticks == 1
    controller.tick()
    assert controller.snapshot().populated == 1


def test_listeners_receive_new_alerts_and_failures_are_isolated(caplog) -> None:
    controller = _controller([0.99])
    received = []

    def _broken(entry) -> None:
        raise RuntimeError("listener roto")

    controller.subscribe(_broken)
    controller.subscribe(received.append)
    for _ in range(3):
        controller.tick()
    assert len(received) == 1
    assert received[0].message.startswith("Anomalía detectada")
    assert "Fallo en suscriptor" in caplog.text

    controller.unsubscribe(received.append)
    controller.unsubscribe(_broken)
    controller.reset()
    controller.tick()
    assert len(received) == 1


def test_alert_warning_carries_session_fields(caplog) -> None:
    controller = _controller([0.99])
    with caplog.at_level("WARNING", logger="netwatch_realtime.core.monitor"):
        entry = controller.tick()
        controller.tick()

    records = [r for r in caplog.records if r.name == "netwatch_realtime.core.monitor" and r.levelname == "WARNING"]
    assert len(records) == 1
    record = records[0]
    assert record.getMessage() == f"Alerta: {entry.message}"
    assert record.tick == 1
    assert record.rules == [RULE_RANDOM_TRIGGER]
    assert record.state == "idle"
    assert record.latency_ms == controller.window.values(Channel.LATENCY)[-1]


def test_reset_restores_initial_state() -> None:
    controller = _controller([0.99])
    for _ in range(4):
        controller.tick()
    controller.reset()
    snap = controller.snapshot()
    assert snap.channels[Channel.BANDWIDTH] == (0.0,) * 20
    assert snap.alerts == ()
    assert not snap.is_anomalous
    assert snap.ticks == 0


def test_snapshot_is_not_affected_by_later_ticks() -> None:
    controller = _controller()
    snap = controller.snapshot()
    controller.tick()
    assert snap.channels[Channel.LATENCY] == (0.0,) * 20
    assert snap.state is MonitorState.IDLE


def test_export_of_untouched_session_is_zero_rows() -> None:
    lines = _controller().export().splitlines()
    assert len(lines) == 21
    assert all(line == ",0.00,0.00,0.00,0" for line in lines[1:])


def test_start_without_event_loop_fails() -> None:
    controller = _controller()
    with pytest.raises(MonitorRuntimeError):
        controller.start()
    assert controller.state is MonitorState.IDLE


def test_stop_when_idle_is_noop() -> None:
    controller = _controller()
    controller.stop()
    assert controller.state is MonitorState.IDLE


def test_stop_before_connect_delay_produces_no_ticks() -> None:
    sleep = SteppedSleep()
    controller = _controller(sleep=sleep)

    async def scenario() -> None:
        controller.start()
        assert controller.state is MonitorState.CONNECTING
        controller.stop()
        await controller.wait_closed()
        await sleep.settle()

    asyncio.run(scenario())
    snap = controller.snapshot()
    assert snap.ticks == 0
    assert snap.populated == 0
    assert snap.channels[Channel.LATENCY] == (0.0,) * 20
    assert snap.state is MonitorState.IDLE


def test_stop_while_connecting_cancels_pending_connect() -> None:
    sleep = SteppedSleep()
    controller = _controller(sleep=sleep)

    async def scenario() -> None:
        controller.start()
        await sleep.settle()
        assert sleep.delays == [1.5]
        controller.stop()
        await controller.wait_closed()

    asyncio.run(scenario())
    assert controller.ticks == 0


def test_connects_then_ticks_at_fixed_period() -> None:
    sleep = SteppedSleep()
    controller = _controller(sleep=sleep)

    async def scenario() -> None:
        controller.start()
        await sleep.advance()
        assert controller.state is MonitorState.RUNNING
        assert controller.ticks == 1
        await sleep.advance(2)
        assert controller.ticks == 3
        controller.stop()
        await controller.wait_closed()

    asyncio.run(scenario())
    assert sleep.delays == [1.5, 1.0, 1.0, 1.0]
    assert controller.state is MonitorState.IDLE


def test_no_tick_fires_after_stop_even_if_timer_already_elapsed() -> None:
    sleep = SteppedSleep()
    controller = _controller(sleep=sleep)

    async def scenario() -> None:
        controller.start()
        await sleep.advance()
        sleep.fire_pending()
        controller.stop()
        await controller.wait_closed()
        await sleep.settle()

    asyncio.run(scenario())
    assert controller.ticks == 1
    assert controller.snapshot().populated == 1


def test_start_while_running_is_idempotent() -> None:
    sleep = SteppedSleep()
    controller = _controller(sleep=sleep)

    async def scenario() -> None:
        controller.start()
        controller.start()
        await sleep.advance()
        controller.start()
        await sleep.advance()
        controller.stop()
        await controller.wait_closed()

    asyncio.run(scenario())
    assert controller.ticks == 2
    assert sleep.delays == [1.5, 1.0, 1.0]


def test_session_data_survives_stop_and_restart() -> None:
    sleep = SteppedSleep()
    controller = _controller([0.99], sleep=sleep)

    async def scenario() -> None:
        controller.start()
        await sleep.advance()
        controller.stop()
        await controller.wait_closed()
        controller.start()
        await sleep.advance()
        controller.stop()
        await controller.wait_closed()

    asyncio.run(scenario())
    snap = controller.snapshot()
    assert snap.ticks == 2
    assert snap.populated == 2
    assert len(snap.alerts) == 1
    assert snap.is_anomalous


def test_failed_tick_inside_loop_does_not_stop_ticking() -> None:
    sleep = SteppedSleep()
    controller = _controller(sampler_fail_on=(8,), sleep=sleep)

    async def scenario() -> None:
        controller.start()
        await sleep.advance(3)
        assert controller.state is MonitorState.RUNNING
        controller.stop()
        await controller.wait_closed()

    asyncio.run(scenario())
    assert controller.ticks == 2
    assert controller.failed_ticks == 1


def test_from_settings_with_seed_is_reproducible() -> None:
    settings = AppSettings()
    first = MonitorController.from_settings(settings, seed=1234)
    second = MonitorController.from_settings(settings, seed=1234)
    for _ in range(40):
        first.tick()
        second.tick()
    a, b = first.snapshot(), second.snapshot()
    assert a.channels == b.channels
    assert a.is_anomalous == b.is_anomalous
    assert len(a.alerts) == len(b.alerts)
    assert first.window_capacity == settings.monitor.window_capacity
    assert first.connect_delay_s == settings.monitor.connect_delay_s
