from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from db import (
    ExerciseLogRepository,
    ExerciseRepository,
    SettingsRepository,
    WorkoutRepository,
    WorkoutSessionRepository,
)
from rest_timer import Scheduler
from session_aggregator import WorkoutSessionAggregator
from workout_models import DEFAULT_REST_SECONDS, Exercise, Feeling, WorkoutSessionRecord

logger = logging.getLogger(__name__)


class TrackerService:
    """Connects guided workout sessions to storage."""

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        exercise_repo: ExerciseRepository,
        session_repo: WorkoutSessionRepository,
        log_repo: ExerciseLogRepository,
        settings_repo: SettingsRepository | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.exercises = exercise_repo
        self.sessions = session_repo
        self.logs = log_repo
        self.settings = settings_repo

    def _default_rest(self) -> int:
        if self.settings is None:
            return DEFAULT_REST_SECONDS
        return self.settings.get_int("default_rest_seconds", DEFAULT_REST_SECONDS)

    def load_exercises(self, workout_id: int) -> list[Exercise]:
        self.workouts.fetch_detail(workout_id)
        return [Exercise.from_dict(r) for r in self.exercises.fetch_for_workout(workout_id)]

    def previous_logs(self, workout_id: int) -> dict:
        """Latest stored log per exercise; exercises never logged are absent."""
        self.workouts.fetch_detail(workout_id)
        return self.logs.previous_logs(workout_id)

    def open(
        self, workout_id: int, scheduler: Optional[Scheduler] = None
    ) -> WorkoutSessionAggregator:
        exercises = self.load_exercises(workout_id)
        if not exercises:
            raise ValueError("workout has no exercises")
        return WorkoutSessionAggregator(
            exercises,
            self.previous_logs(workout_id),
            workout_id=workout_id,
            scheduler=scheduler,
            default_rest_seconds=self._default_rest(),
        )

    def save(
        self,
        aggregator: WorkoutSessionAggregator,
        feeling: Feeling | str = Feeling.moderate,
        notes: str = "",
        session_date: str | None = None,
    ) -> int:
        """Finalize ``aggregator`` and persist the result.

        Every save appends a new session; earlier sessions of the same
        workout are kept as history. When storage fails the aggregator
        stays open, so the same attempt can be saved again.
        """
        dropped = aggregator.pending_exercises()
        record = aggregator.finalize(feeling, notes, session_date, persist=self.persist)
        warn = self.settings is None or self.settings.get_bool(
            "warn_on_dropped_exercises", True
        )
        if dropped and warn:
            logger.warning(
                "workout %s saved without incomplete exercises %s",
                record.workout_id,
                dropped,
            )
        return aggregator.session_id

    def persist(self, record: WorkoutSessionRecord) -> int:
        effects = record.side_effects
        try:
            session_id = self.sessions.create_with_logs(
                record.workout_id,
                record.session_date,
                record.overall_feeling.value,
                record.notes,
                [log.to_dict() for log in record.per_exercise_logs],
                fully_completed=record.workout_fully_completed,
                completed_exercise_ids=effects.completed_exercise_ids,
                mark_workout_completed=effects.mark_workout_completed,
            )
        except sqlite3.Error:
            logger.exception("failed to store session for workout %s", record.workout_id)
            raise
        logger.debug("stored session %s for workout %s", session_id, record.workout_id)
        return session_id

    def discard(self, aggregator: WorkoutSessionAggregator) -> None:
        """Leave a workout without saving; nothing is written."""
        aggregator.discard()
        logger.debug("discarded session for workout %s", aggregator.workout_id)
