from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional, Sequence

from rest_timer import (
    RestTimer,
    Scheduler,
    TimerState,
    reset_timer,
    start_timer,
    tick_timer,
    toggle_timer,
)
from workout_models import DEFAULT_REST_SECONDS, Exercise


class Phase(str, Enum):
    ready = "ready"
    performing = "performing"
    resting = "resting"
    logging = "logging"


class Event(str, Enum):
    start = "start"
    complete_set = "complete_set"
    tick = "tick"
    skip_rest = "skip_rest"
    toggle_timer = "toggle_timer"
    reset_timer = "reset_timer"
    skip_to_logging = "skip_to_logging"


@dataclass(frozen=True)
class SessionState:
    index: int = 0
    set_number: int = 1
    phase: Phase = Phase.ready
    timer: TimerState = field(default_factory=TimerState)

    @property
    def remaining(self) -> int:
        return self.timer.remaining

    @property
    def running(self) -> bool:
        return self.timer.running


def enter(index: int, completed: bool) -> SessionState:
    """State on arrival at an exercise: review completed ones, else start over."""
    return SessionState(
        index=index,
        set_number=1,
        phase=Phase.logging if completed else Phase.ready,
    )


def _finish_rest(state: SessionState, exercise: Exercise) -> SessionState:
    if state.set_number < exercise.total_sets:
        return replace(
            state,
            set_number=state.set_number + 1,
            phase=Phase.ready,
            timer=TimerState(),
        )
    return replace(state, phase=Phase.logging, timer=TimerState())


def transition(
    state: SessionState,
    event: Event | str,
    exercise: Exercise,
    default_rest: int = DEFAULT_REST_SECONDS,
) -> SessionState:
    """Return the state that follows ``event``.

    Events that do not apply to the current phase return ``state`` unchanged.
    """
    event = Event(event)
    phase = state.phase

    if event is Event.start:
        if phase is Phase.ready:
            return replace(state, phase=Phase.performing)
        return state

    if event is Event.complete_set:
        if phase is not Phase.performing:
            return state
        timer = start_timer(exercise.rest_for(default_rest))
        resting = replace(state, phase=Phase.resting, timer=timer)
        if timer.expired:
            return _finish_rest(resting, exercise)
        return resting

    if event is Event.skip_to_logging:
        if phase is Phase.logging:
            return state
        return replace(state, phase=Phase.logging, timer=TimerState())

    if phase is not Phase.resting:
        return state

    if event is Event.tick:
        timer, fired = tick_timer(state.timer)
        if fired:
            return _finish_rest(state, exercise)
        return replace(state, timer=timer)
    if event is Event.skip_rest:
        return _finish_rest(state, exercise)
    if event is Event.toggle_timer:
        return replace(state, timer=toggle_timer(state.timer))
    if event is Event.reset_timer:
        return replace(
            state, timer=reset_timer(state.timer, exercise.rest_for(default_rest))
        )
    return state


class ExerciseStateMachine:
    """Runs the per-exercise phases and keeps the rest timer scheduled.

    The machine holds the only copy of :class:`SessionState`; every change
    goes through :func:`transition` and is then mirrored into the
    :class:`RestTimer`, which cancels its tick whenever the state is no longer
    a running rest.
    """

    def __init__(
        self,
        exercises: Sequence[Exercise],
        scheduler: Optional[Scheduler] = None,
        on_tick: Optional[Callable[[], None]] = None,
        lock: Optional[threading.RLock] = None,
        default_rest_seconds: int = DEFAULT_REST_SECONDS,
    ) -> None:
        if not exercises:
            raise ValueError("workout has no exercises")
        self.exercises = list(exercises)
        self.default_rest_seconds = default_rest_seconds
        self._lock = lock or threading.RLock()
        self.timer = RestTimer(scheduler, on_tick=on_tick or self.tick, lock=self._lock)
        self.state = SessionState()

    @property
    def exercise(self) -> Exercise:
        return self.exercises[self.state.index]

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def rest_seconds(self) -> int:
        return self.exercise.rest_for(self.default_rest_seconds)

    def _apply(self, state: SessionState) -> SessionState:
        self.state = state
        self.timer.sync(state.timer)
        return state

    def dispatch(self, event: Event | str) -> SessionState:
        with self._lock:
            return self._apply(
                transition(
                    self.state, event, self.exercise, self.default_rest_seconds
                )
            )

    def enter(self, index: int, completed: bool = False) -> SessionState:
        if not 0 <= index < len(self.exercises):
            raise IndexError("exercise index out of range")
        with self._lock:
            return self._apply(enter(index, completed))

    def start(self) -> SessionState:
        return self.dispatch(Event.start)

    def complete_set(self) -> SessionState:
        return self.dispatch(Event.complete_set)

    def tick(self) -> SessionState:
        return self.dispatch(Event.tick)

    def skip_rest(self) -> SessionState:
        return self.dispatch(Event.skip_rest)

    def toggle_timer(self) -> SessionState:
        return self.dispatch(Event.toggle_timer)

    def reset_timer(self) -> SessionState:
        return self.dispatch(Event.reset_timer)

    def skip_to_logging(self) -> SessionState:
        return self.dispatch(Event.skip_to_logging)

    def cancel(self) -> None:
        """Stop the rest countdown without changing phase."""
        with self._lock:
            self.timer.cancel()
            self.state = replace(self.state, timer=self.timer.state)
