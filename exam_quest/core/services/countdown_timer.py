"""Cooperative countdown clock for timed exam sessions."""

from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import Callable, Protocol

from exam_quest.constants.exam_constants import TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with an asyncio-style ``call_later``."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class CountdownTimer:
    """Counts down one second per tick and calls ``on_expire`` once at zero.

    Each tick schedules the next one instead of running on a fixed rate, so a
    suspended event loop never replays a backlog of ticks. Without an explicit
    scheduler the running asyncio loop is used.
    """

    def __init__(
        self,
        on_expire: Callable[[], None],
        on_tick: Callable[[int], None] | None = None,
        scheduler: Scheduler | None = None,
        interval: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        self._on_expire = on_expire
        self._on_tick = on_tick
        self._scheduler = scheduler
        self._interval = interval
        self._state = TimerState.IDLE
        self._remaining = 0
        self._pending: Cancellable | None = None
        self._generation = 0

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    def is_running(self) -> bool:
        return self._state is TimerState.RUNNING

    def start(self, total_seconds: int) -> "CountdownTimer":
        """Start counting down; a second call while running changes nothing."""
        if self._state is TimerState.RUNNING:
            return self
        if self._state is not TimerState.IDLE:
            raise RuntimeError(f"Cannot start a timer that is {self._state.value}.")
        self._remaining = max(0, int(total_seconds))
        self._state = TimerState.RUNNING
        self._generation += 1
        if self._remaining == 0:
            self._expire()
        else:
            self._arm()
        return self

    def cancel(self) -> None:
        """Stop the countdown; a cancelled timer never expires."""
        if self._state is not TimerState.RUNNING:
            return
        self._state = TimerState.CANCELLED
        self._generation += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _arm(self) -> None:
        scheduler = self._scheduler or asyncio.get_running_loop()
        generation = self._generation
        self._pending = scheduler.call_later(self._interval, lambda: self._tick(generation))

    def _tick(self, generation: int) -> None:
        if self._state is not TimerState.RUNNING or generation != self._generation:
            return
        self._pending = None
        self._remaining = max(0, self._remaining - 1)
        if self._on_tick is not None:
            self._on_tick(self._remaining)
            if self._state is not TimerState.RUNNING:
                return
        if self._remaining == 0:
            self._expire()
        else:
            self._arm()

    def _expire(self) -> None:
        if self._state is not TimerState.RUNNING:
            return
        self._state = TimerState.EXPIRED
        self._generation += 1
        logger.info("Countdown reached zero.")
        self._on_expire()
