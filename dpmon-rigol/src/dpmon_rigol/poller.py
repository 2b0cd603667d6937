"""Fixed-interval polling of the DP832 outputs.

The poll loop is a single sequential control flow. On every tick of a
fixed-period timer it queries each configured channel in order and hands
each measurement to a sink as soon as it is read::

    IDLE -> QUERYING(CH1) -> QUERYING(CH2) -> QUERYING(CH3) -> IDLE

There is no terminal state. The loop runs until the process is stopped or a
query fails. A failure is not retried or skipped: it propagates out of the
loop, and the remaining channels of that pass are not queried.

Ticks follow a drop-if-late discipline. When a pass takes longer than the
period, one tick is kept pending and delivered immediately, and any further
elapsed ticks are discarded, so slow I/O never causes a catch-up burst.
"""

from __future__ import annotations

import logging
import math
import time
from enum import Enum
from typing import Callable, Protocol, Sequence

from dpmon_rigol.channel import PHYSICAL_CHANNELS, Channel
from dpmon_rigol.psu import Measurement
from dpmon_rigol.sink import MeasurementSink

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.1
"""Default tick period in seconds."""


class MeasurementSource(Protocol):
    """Anything that can measure a channel (e.g. :class:`~dpmon_rigol.psu.Dp832`)."""

    def measure(self, channel: Channel) -> Measurement:
        """Measure one channel."""
        ...


class Ticker:
    """Fixed-period timer with drop-if-late semantics.

    Ticks are scheduled at ``start + k * period`` where ``start`` is the
    time the ticker was created. :meth:`wait` blocks until the next
    scheduled tick. If one or more ticks have already elapsed, it returns
    at once for the oldest one and drops the rest, so at most one tick is
    ever pending.

    Args:
        period: Tick period in seconds (> 0).
        clock: Monotonic clock returning seconds.
        sleep: Function that blocks for a number of seconds.
    """

    def __init__(
        self,
        period: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not math.isfinite(period) or period <= 0:
            raise ValueError(f"period must be finite and > 0, got {period}")
        self._period = period
        self._clock = clock
        self._sleep = sleep
        self._next = clock() + period
        self._dropped = 0

    @property
    def period(self) -> float:
        """Tick period in seconds."""
        return self._period

    @property
    def dropped(self) -> int:
        """Total number of ticks discarded because the caller was late."""
        return self._dropped

    def wait(self) -> None:
        """Block until the next tick."""
        now = self._clock()
        if now < self._next:
            self._sleep(self._next - now)
            now = self._next
        self._next += self._period
        if self._next <= now:
            # The delivered tick was already pending; anything later is dropped.
            missed = int((now - self._next) // self._period) + 1
            self._next += missed * self._period
            self._dropped += missed
            logger.debug("Dropped %d late tick(s)", missed)


class PollState(Enum):
    """State of the poll loop."""

    IDLE = "idle"
    QUERYING = "querying"


class PollLoop:
    """Drive repeated measurement of a fixed set of channels.

    Args:
        source: Measurement source, usually a connected driver.
        sink: Receives every successful measurement.
        interval: Tick period in seconds.
        channels: Channels to query on each pass, in order.
        ticker: Timer to use instead of a new :class:`Ticker`.

    Example:
        ::

            psu = create_instrument("192.168.0.200:5555")
            loop = PollLoop(psu, LoggingSink())
            loop.run()
    """

    def __init__(
        self,
        source: MeasurementSource,
        sink: MeasurementSink,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        channels: Sequence[Channel] = PHYSICAL_CHANNELS,
        ticker: Ticker | None = None,
    ) -> None:
        if not math.isfinite(interval) or interval <= 0:
            raise ValueError(f"interval must be finite and > 0, got {interval}")
        if not channels:
            raise ValueError("channels must not be empty")
        self._source = source
        self._sink = sink
        self._interval = interval
        self._channels = tuple(channels)
        self._ticker = ticker
        self._state = PollState.IDLE
        self._current: Channel | None = None
        self._passes = 0

    @property
    def state(self) -> PollState:
        """Current loop state."""
        return self._state

    @property
    def current_channel(self) -> Channel | None:
        """Channel being queried, or None while idle."""
        return self._current

    @property
    def channels(self) -> tuple[Channel, ...]:
        """Channels queried on each pass, in order."""
        return self._channels

    @property
    def passes(self) -> int:
        """Number of completed passes."""
        return self._passes

    def poll_once(self) -> list[Measurement]:
        """Query every channel once, in order.

        Returns:
            The measurements of this pass.

        Raises:
            DpmonError: Any failure from the source, unchanged. Channels
                after the failing one are not queried.
        """
        results: list[Measurement] = []
        try:
            for channel in self._channels:
                self._state = PollState.QUERYING
                self._current = channel
                measurement = self._source.measure(channel)
                self._sink.emit(measurement)
                results.append(measurement)
        finally:
            self._state = PollState.IDLE
            self._current = None
        self._passes += 1
        return results

    def run(self, max_passes: int | None = None) -> int:
        """Poll on every tick until a failure or *max_passes* passes.

        Args:
            max_passes: Stop after this many passes. ``None`` runs forever.

        Returns:
            Number of passes completed by this call.
        """
        if self._ticker is None:
            self._ticker = Ticker(self._interval)
        logger.info(
            "Polling %s every %.3fs",
            ", ".join(ch.label for ch in self._channels),
            self._ticker.period,
        )
        completed = 0
        while max_passes is None or completed < max_passes:
            self._ticker.wait()
            self.poll_once()
            completed += 1
        return completed
