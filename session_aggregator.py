from __future__ import annotations

import datetime
import threading
from enum import Enum
from typing import Callable, Mapping, Optional, Sequence

from rest_timer import Scheduler
from tools import TimeFormat
from workout_machine import Event, ExerciseStateMachine, Phase
from workout_models import (
    DEFAULT_REST_SECONDS,
    Exercise,
    ExercisePerformanceLog,
    Feeling,
    WorkoutSessionRecord,
)


class AggregatorState(str, Enum):
    in_progress = "in-progress"
    summary = "summary"
    saved = "saved"


class WorkoutSessionAggregator:
    """One attempt at a workout: completion map, logs and the active exercise.

    All mutations, including scheduler ticks, run under a single re-entrant
    lock that covers the completion map and the current index together.
    """

    def __init__(
        self,
        exercises: Sequence[Exercise],
        previous_logs: Optional[Mapping] = None,
        *,
        workout_id: Optional[int] = None,
        scheduler: Optional[Scheduler] = None,
        default_rest_seconds: int = DEFAULT_REST_SECONDS,
    ) -> None:
        ordered = sorted(exercises, key=lambda e: e.order_index)
        if not ordered:
            raise ValueError("workout has no exercises")
        previous_logs = previous_logs or {}
        self.workout_id = workout_id
        self.exercises = ordered
        self.lock = threading.RLock()
        self.completion: dict = {ex.id: bool(ex.completed) for ex in ordered}
        self.logs: dict = {
            ex.id: ExercisePerformanceLog.initial(ex, previous_logs.get(ex.id))
            for ex in ordered
        }
        self.has_changes = False
        self._edited: set = set()
        self._discarded = False
        self.record: Optional[WorkoutSessionRecord] = None
        self.session_id: Optional[int] = None
        self.machine = ExerciseStateMachine(
            ordered,
            scheduler=scheduler,
            on_tick=self.tick,
            lock=self.lock,
            default_rest_seconds=default_rest_seconds,
        )
        self.machine.enter(0, self.completion[ordered[0].id])
        self.state = (
            AggregatorState.summary
            if self.is_workout_complete()
            else AggregatorState.in_progress
        )

    # -- read side -------------------------------------------------------

    @property
    def current_index(self) -> int:
        return self.machine.state.index

    @property
    def current_exercise(self) -> Exercise:
        return self.machine.exercise

    @property
    def phase(self) -> Phase:
        return self.machine.phase

    @property
    def current_set(self) -> int:
        return self.machine.state.set_number

    @property
    def timer(self):
        return self.machine.timer

    def is_workout_complete(self) -> bool:
        with self.lock:
            return all(self.completion.get(ex.id, False) for ex in self.exercises)

    def completed_count(self) -> int:
        with self.lock:
            return sum(1 for ex in self.exercises if self.completion.get(ex.id))

    def pending_exercises(self) -> list:
        """Ids of edited exercises that are not complete and would be dropped."""
        with self.lock:
            return [
                ex.id
                for ex in self.exercises
                if ex.id in self._edited and not self.completion[ex.id]
            ]

    def snapshot(self) -> dict:
        with self.lock:
            exercise = self.current_exercise
            state = self.machine.state
            return {
                "workout_id": self.workout_id,
                "state": self.state.value,
                "current_index": state.index,
                "exercise_count": len(self.exercises),
                "exercise": exercise.to_dict(),
                "phase": state.phase.value,
                "current_set": state.set_number,
                "total_sets": exercise.total_sets,
                "rest_seconds": self.machine.rest_seconds,
                "timer": {
                    "remaining": state.timer.remaining,
                    "running": state.timer.running,
                    "progress": state.timer.progress,
                    "display": TimeFormat.clock(state.timer.remaining),
                },
                "completion": {str(k): v for k, v in self.completion.items()},
                "completed_count": self.completed_count(),
                "workout_complete": self.is_workout_complete(),
                "has_changes": self.has_changes,
                "current_log": self.logs[exercise.id].to_dict(),
                "pending_exercise_ids": self.pending_exercises(),
            }

    # -- write side ------------------------------------------------------

    def _check_open(self) -> None:
        if self._discarded:
            raise ValueError("session discarded")
        if self.state is AggregatorState.saved:
            raise ValueError("session already finalized")

    def _dispatch(self, event: Event) -> Phase:
        with self.lock:
            self._check_open()
            return self.machine.dispatch(event).phase

    def start_set(self) -> Phase:
        return self._dispatch(Event.start)

    def complete_set(self) -> Phase:
        return self._dispatch(Event.complete_set)

    def skip_rest(self) -> Phase:
        return self._dispatch(Event.skip_rest)

    def toggle_timer(self) -> Phase:
        return self._dispatch(Event.toggle_timer)

    def reset_timer(self) -> Phase:
        return self._dispatch(Event.reset_timer)

    def skip_to_logging(self) -> Phase:
        return self._dispatch(Event.skip_to_logging)

    def tick(self) -> Phase:
        with self.lock:
            if self._discarded or self.state is AggregatorState.saved:
                return self.machine.phase
            return self.machine.dispatch(Event.tick).phase

    def update_log(self, field_name: str, value, exercise_id=None) -> ExercisePerformanceLog:
        with self.lock:
            self._check_open()
            if exercise_id is None:
                exercise_id = self.current_exercise.id
            if exercise_id not in self.logs:
                raise ValueError("exercise not found")
            log = self.logs[exercise_id]
            log.update(field_name, value)
            self._edited.add(exercise_id)
            self.has_changes = True
            return log

    def mark_exercise_complete(self, exercise_id) -> None:
        with self.lock:
            self._check_open()
            if exercise_id not in self.completion:
                raise ValueError("exercise not found")
            self.completion[exercise_id] = True
            self.has_changes = True
            if self.is_workout_complete():
                self.machine.cancel()
                self.state = AggregatorState.summary

    def navigate(self, index: int) -> None:
        with self.lock:
            self._check_open()
            if not 0 <= index < len(self.exercises):
                raise IndexError("exercise index out of range")
            self.machine.enter(index, self.completion[self.exercises[index].id])
            self.state = AggregatorState.in_progress

    def previous(self) -> None:
        with self.lock:
            self._check_open()
            if self.current_index > 0:
                self.navigate(self.current_index - 1)

    def advance(self) -> bool:
        """Finish the logging step of the current exercise and move on.

        Returns ``False`` when the current exercise is not being logged.
        """
        with self.lock:
            self._check_open()
            if self.machine.phase is not Phase.logging:
                return False
            index = self.current_index
            self.mark_exercise_complete(self.current_exercise.id)
            if self.state is AggregatorState.summary:
                return True
            if index < len(self.exercises) - 1:
                self.navigate(index + 1)
            else:
                self.machine.cancel()
                self.state = AggregatorState.summary
            return True

    def finalize(
        self,
        feeling: Feeling | str = Feeling.moderate,
        notes: str = "",
        session_date: Optional[str] = None,
        persist: Optional[Callable[[WorkoutSessionRecord], int]] = None,
    ) -> WorkoutSessionRecord:
        """Build the session record and close the attempt.

        ``persist`` receives the record before the attempt closes. If it
        raises, the attempt stays open and can be finalized again.
        """
        with self.lock:
            self._check_open()
            feeling = Feeling.parse(feeling)
            if session_date is None:
                session_date = datetime.date.today().isoformat()
            completed_ids = [ex.id for ex in self.exercises if self.completion[ex.id]]
            record = WorkoutSessionRecord.build(
                self.workout_id,
                session_date,
                feeling,
                notes or "",
                [self.logs[eid] for eid in completed_ids],
                self.is_workout_complete(),
                completed_ids,
            )
            if persist is not None:
                self.session_id = persist(record)
            self.machine.cancel()
            self.record = record
            self.state = AggregatorState.saved
            return record

    def discard(self) -> None:
        """Abandon the attempt; nothing typed so far is kept."""
        with self.lock:
            self.machine.cancel()
            self._discarded = True
