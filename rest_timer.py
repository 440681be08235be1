from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Callable, Optional


@dataclass(frozen=True)
class TimerState:
    """Snapshot of a rest countdown in whole seconds."""

    duration: int = 0
    remaining: int = 0
    running: bool = False
    expired: bool = False

    @property
    def progress(self) -> float:
        """Fraction of the countdown already elapsed, 0 for a zero duration."""
        if self.duration <= 0:
            return 0.0
        return (self.duration - self.remaining) / self.duration


def start_timer(duration: int) -> TimerState:
    if duration < 0:
        raise ValueError("duration must be non-negative")
    if duration == 0:
        return TimerState(duration=0, remaining=0, running=False, expired=True)
    return TimerState(duration=duration, remaining=duration, running=True)


def toggle_timer(state: TimerState) -> TimerState:
    if state.expired or state.remaining <= 0:
        return state
    return replace(state, running=not state.running)


def reset_timer(state: TimerState, duration: int | None = None) -> TimerState:
    if duration is None:
        duration = state.duration
    if duration < 0:
        raise ValueError("duration must be non-negative")
    return TimerState(duration=duration, remaining=duration, running=False)


def stop_timer(state: TimerState) -> TimerState:
    return replace(state, running=False)


def tick_timer(state: TimerState) -> tuple[TimerState, bool]:
    """Advance one second. Returns the new state and whether it just expired."""
    if not state.running or state.remaining <= 0:
        return state, False
    remaining = state.remaining - 1
    if remaining > 0:
        return replace(state, remaining=remaining), False
    fired = not state.expired
    return replace(state, remaining=0, running=False, expired=True), fired


class ScheduledCall:
    """Handle for a repeating callback registered with a scheduler."""

    def cancel(self) -> None:
        raise NotImplementedError

    @property
    def cancelled(self) -> bool:
        raise NotImplementedError


class Scheduler:
    """Host capability that invokes callbacks at a fixed interval."""

    def call_every(
        self, interval: float, callback: Callable[[], None]
    ) -> ScheduledCall:
        raise NotImplementedError


class _ManualCall(ScheduledCall):
    def __init__(self, interval: float, callback: Callable[[], None], due: float) -> None:
        self.interval = interval
        self.callback = callback
        self.next_due = due
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """Virtual clock advanced explicitly by the caller."""

    def __init__(self) -> None:
        self.now = 0.0
        self._calls: list[_ManualCall] = []

    def call_every(
        self, interval: float, callback: Callable[[], None]
    ) -> ScheduledCall:
        if interval <= 0:
            raise ValueError("interval must be positive")
        call = _ManualCall(interval, callback, self.now + interval)
        self._calls.append(call)
        return call

    @property
    def active_calls(self) -> list[ScheduledCall]:
        return [c for c in self._calls if not c.cancelled]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every callback that falls due."""
        target = self.now + seconds
        while True:
            due = [c for c in self._calls if not c.cancelled and c.next_due <= target]
            if not due:
                break
            call = min(due, key=lambda c: c.next_due)
            self.now = call.next_due
            call.next_due += call.interval
            call.callback()
        self.now = target
        self._calls = [c for c in self._calls if not c.cancelled]


class _ThreadedCall(threading.Thread, ScheduledCall):
    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        threading.Thread.__init__(self, daemon=True)
        self.interval = interval
        self.callback = callback
        self._cancel_event = threading.Event()

    def run(self) -> None:
        while not self._cancel_event.wait(self.interval):
            self.callback()

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()


class ThreadingScheduler(Scheduler):
    """Wall clock scheduler running one daemon thread per repeating call."""

    def call_every(
        self, interval: float, callback: Callable[[], None]
    ) -> ScheduledCall:
        if interval <= 0:
            raise ValueError("interval must be positive")
        call = _ThreadedCall(interval, callback)
        call.start()
        return call


class RestTimer:
    """Countdown engine for the rest phase.

    The timer owns a scheduled once-per-second call exactly while it is
    running. Every state change goes through :meth:`sync`, which registers or
    cancels that call, so a paused, expired or abandoned timer never keeps a
    live tick around.
    """

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        on_tick: Optional[Callable[[], None]] = None,
        on_expired: Optional[Callable[[], None]] = None,
        lock: Optional[threading.RLock] = None,
        interval: float = 1.0,
    ) -> None:
        self.scheduler = scheduler
        self.on_tick = on_tick
        self.on_expired = on_expired
        self.interval = interval
        self._lock = lock or threading.RLock()
        self._call: Optional[ScheduledCall] = None
        self._generation = 0
        self.state = TimerState()

    @property
    def remaining(self) -> int:
        return self.state.remaining

    @property
    def running(self) -> bool:
        return self.state.running

    @property
    def expired(self) -> bool:
        return self.state.expired

    @property
    def progress(self) -> float:
        return self.state.progress

    @property
    def scheduled(self) -> bool:
        return self._call is not None

    def sync(self, state: TimerState) -> None:
        """Adopt ``state`` and bring the scheduled tick in line with it."""
        with self._lock:
            self.state = state
            wanted = state.running and state.remaining > 0
            if wanted and self._call is None and self.scheduler is not None:
                self._generation += 1
                generation = self._generation
                self._call = self.scheduler.call_every(
                    self.interval, lambda: self._scheduled_tick(generation)
                )
            elif not wanted and self._call is not None:
                self._call.cancel()
                self._call = None

    def _scheduled_tick(self, generation: int) -> None:
        with self._lock:
            if self._call is None or generation != self._generation:
                return
            if self.on_tick is not None:
                self.on_tick()
            else:
                self.tick()

    def start(self, duration: int) -> bool:
        state = start_timer(duration)
        self.sync(state)
        if state.expired and self.on_expired is not None:
            self.on_expired()
        return state.expired

    def toggle(self) -> None:
        self.sync(toggle_timer(self.state))

    def reset(self, duration: int | None = None) -> None:
        self.sync(reset_timer(self.state, duration))

    def cancel(self) -> None:
        self.sync(stop_timer(self.state))

    def tick(self) -> bool:
        with self._lock:
            state, fired = tick_timer(self.state)
            self.sync(state)
        if fired and self.on_expired is not None:
            self.on_expired()
        return fired
