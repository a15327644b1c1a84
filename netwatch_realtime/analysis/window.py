from __future__ import annotations

from collections import deque
from datetime import datetime

from netwatch_realtime.models.metrics import Channel, MetricSample


class SlidingWindow:
    """Ventana FIFO de capacidad fija, un deque por canal.

    Arranca con ``capacity`` ranuras a cero (sin timestamp) para que las
    gráficas se dibujen planas antes del primer tick; cada ``push`` desplaza la
    ranura más antigua, de modo que la longitud es siempre ``capacity``.
    """

    def __init__(self, capacity: int = 20) -> None:
        if capacity <= 0:
            raise ValueError("La capacidad de la ventana debe ser positiva")
        self.capacity = capacity
        self._channels: dict[Channel, deque[float]] = {}
        self._timestamps: deque[datetime | None] = deque(maxlen=capacity)
        self._populated = 0
        self.reset()

    def reset(self) -> None:
        self._channels = {channel: deque([0.0] * self.capacity, maxlen=self.capacity) for channel in Channel}
        self._channels[Channel.CONNECTIONS] = deque([0] * self.capacity, maxlen=self.capacity)
        self._timestamps = deque([None] * self.capacity, maxlen=self.capacity)
        self._populated = 0

    def push(self, sample: MetricSample) -> None:
        for channel, values in self._channels.items():
            values.append(sample.value(channel))
        self._timestamps.append(sample.timestamp)
        self._populated = min(self._populated + 1, self.capacity)

    def last(self, channel: Channel, k: int) -> list[float]:
        if k <= 0 or k > self.capacity:
            raise ValueError(f"k fuera de rango (1..{self.capacity}): {k}")
        values = self._channels[channel]
        return list(values)[-k:]

    def values(self, channel: Channel) -> list[float]:
        return list(self._channels[channel])

    def latest(self, channel: Channel) -> float:
        return self._channels[channel][-1]

    def timestamps(self) -> list[datetime | None]:
        return list(self._timestamps)

    @property
    def populated(self) -> int:
        return self._populated

    def copy(self) -> "SlidingWindow":
        clone = SlidingWindow.__new__(SlidingWindow)
        clone.capacity = self.capacity
        clone._channels = {channel: deque(values, maxlen=self.capacity) for channel, values in self._channels.items()}
        clone._timestamps = deque(self._timestamps, maxlen=self.capacity)
        clone._populated = self._populated
        return clone

    def __len__(self) -> int:
        return len(self._timestamps)
