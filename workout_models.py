from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from tools import InputCoercion

DEFAULT_REST_SECONDS = 60


class Feeling(str, Enum):
    easy = "easy"
    moderate = "moderate"
    hard = "hard"
    very_hard = "very_hard"

    @classmethod
    def parse(cls, value: "Feeling | str") -> "Feeling":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(f.value for f in cls)
            raise ValueError(f"overall_feeling must be one of: {allowed}")


@dataclass(frozen=True)
class Exercise:
    """One planned movement of a workout. Read-only during a session."""

    id: int
    exercise_name: str
    sets: Optional[int] = None
    reps: Optional[str] = None
    duration_minutes: Optional[int] = None
    rest_seconds: Optional[int] = None
    notes: Optional[str] = None
    order_index: int = 0
    completed: bool = False

    @property
    def total_sets(self) -> int:
        return self.sets if self.sets and self.sets > 0 else 1

    def rest_for(self, default: int = DEFAULT_REST_SECONDS) -> int:
        if self.rest_seconds and self.rest_seconds > 0:
            return self.rest_seconds
        return default

    @classmethod
    def from_dict(cls, data: dict) -> "Exercise":
        sets = data.get("sets")
        rest = data.get("rest_seconds")
        duration = data.get("duration_minutes")
        reps = data.get("reps")
        return cls(
            id=data["id"],
            exercise_name=data.get("exercise_name") or "",
            sets=None if sets is None else InputCoercion.to_int(sets),
            reps=None if reps is None else str(reps),
            duration_minutes=InputCoercion.to_optional_int(duration),
            rest_seconds=None if rest is None else InputCoercion.to_int(rest),
            notes=data.get("notes"),
            order_index=int(data.get("order_index") or 0),
            completed=bool(data.get("completed", False)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "exercise_name": self.exercise_name,
            "sets": self.sets,
            "reps": self.reps,
            "duration_minutes": self.duration_minutes,
            "rest_seconds": self.rest_seconds,
            "notes": self.notes,
            "order_index": self.order_index,
            "completed": self.completed,
        }


@dataclass
class ExercisePerformanceLog:
    """What the user actually did for one exercise."""

    EDITABLE_FIELDS = (
        "sets_completed",
        "reps_completed",
        "weight_used",
        "duration_minutes",
        "notes",
    )

    exercise_id: int
    exercise_name: str = ""
    sets_completed: int = 0
    reps_completed: str = ""
    weight_used: float = 0.0
    duration_minutes: Optional[int] = None
    notes: str = ""

    @classmethod
    def initial(
        cls, exercise: Exercise, previous: Optional[dict] = None
    ) -> "ExercisePerformanceLog":
        """Seed from the previous attempt when there is one, else the plan."""
        previous = previous or {}
        sets = previous.get("sets_completed")
        if sets is None:
            sets = exercise.sets if exercise.sets is not None else 0
        reps = previous.get("reps_completed")
        if reps is None:
            reps = exercise.reps or ""
        return cls(
            exercise_id=exercise.id,
            exercise_name=exercise.exercise_name,
            sets_completed=InputCoercion.to_int(sets),
            reps_completed=InputCoercion.to_text(reps),
            weight_used=InputCoercion.to_float(previous.get("weight_used") or 0),
            duration_minutes=exercise.duration_minutes,
            notes=InputCoercion.to_text(previous.get("notes")),
        )

    def update(self, field_name: str, value) -> None:
        if field_name not in self.EDITABLE_FIELDS:
            raise ValueError(f"unknown log field: {field_name}")
        if field_name == "sets_completed":
            self.sets_completed = InputCoercion.to_int(value)
        elif field_name == "weight_used":
            self.weight_used = InputCoercion.to_float(value)
        elif field_name == "duration_minutes":
            self.duration_minutes = InputCoercion.to_int(value)
        elif field_name == "reps_completed":
            self.reps_completed = InputCoercion.to_text(value)
        else:
            self.notes = InputCoercion.to_text(value)

    def to_dict(self) -> dict:
        return {
            "exercise_id": self.exercise_id,
            "exercise_name": self.exercise_name,
            "sets_completed": self.sets_completed,
            "reps_completed": self.reps_completed,
            "weight_used": self.weight_used,
            "duration_minutes": self.duration_minutes,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class SessionSideEffects:
    """Storage updates the caller applies after saving a session."""

    mark_workout_completed: bool = False
    completed_exercise_ids: tuple = ()


@dataclass(frozen=True)
class WorkoutSessionRecord:
    workout_id: Optional[int]
    session_date: str
    overall_feeling: Feeling
    notes: str
    per_exercise_logs: tuple = field(default_factory=tuple)
    workout_fully_completed: bool = False
    side_effects: SessionSideEffects = field(default_factory=SessionSideEffects)

    @property
    def all_exercises_completed(self) -> bool:
        return self.workout_fully_completed

    @classmethod
    def build(
        cls,
        workout_id: Optional[int],
        session_date: str,
        feeling: Feeling,
        notes: str,
        logs: list[ExercisePerformanceLog],
        fully_completed: bool,
        completed_ids: list,
    ) -> "WorkoutSessionRecord":
        return cls(
            workout_id=workout_id,
            session_date=session_date,
            overall_feeling=feeling,
            notes=notes,
            per_exercise_logs=tuple(copy.copy(log) for log in logs),
            workout_fully_completed=fully_completed,
            side_effects=SessionSideEffects(
                mark_workout_completed=fully_completed,
                completed_exercise_ids=tuple(completed_ids),
            ),
        )

    def to_dict(self) -> dict:
        return {
            "workout_id": self.workout_id,
            "session_date": self.session_date,
            "overall_feeling": self.overall_feeling.value,
            "notes": self.notes,
            "per_exercise_logs": [log.to_dict() for log in self.per_exercise_logs],
            "workout_fully_completed": self.workout_fully_completed,
        }
