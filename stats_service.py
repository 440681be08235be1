from __future__ import annotations

import datetime

from db import (
    ExerciseLogRepository,
    SettingsRepository,
    WorkoutRepository,
    WorkoutSessionRepository,
)
from tools import MathTools


class StatisticsService:
    """Progress history built from saved sessions."""

    def __init__(
        self,
        session_repo: WorkoutSessionRepository,
        log_repo: ExerciseLogRepository,
        workout_repo: WorkoutRepository | None = None,
        settings_repo: SettingsRepository | None = None,
    ) -> None:
        self.sessions = session_repo
        self.logs = log_repo
        self.workouts = workout_repo
        self.settings = settings_repo

    def _limit(self, limit: int | None) -> int:
        if limit is not None:
            return limit
        if self.settings is None:
            return 10
        return self.settings.get_int("history_limit", 10)

    def recent_sessions(self, limit: int | None = None) -> list[dict]:
        """Return recent sessions, newest first, each with its exercise logs."""
        sessions = self.sessions.fetch_recent(self._limit(limit))
        logs = self.logs.fetch_for_sessions(s["id"] for s in sessions)
        by_session: dict[int, list[dict]] = {}
        for log in logs:
            by_session.setdefault(log["session_id"], []).append(log)
        result = []
        for s in sessions:
            entry = dict(s)
            entry["exercise_logs"] = by_session.get(s["id"], [])
            entry["exercise_count"] = len(entry["exercise_logs"])
            result.append(entry)
        return result

    def session_detail(self, session_id: int) -> dict:
        session = self.sessions.fetch_detail(session_id)
        session["exercise_logs"] = self.logs.fetch_for_session(session_id)
        session["volume"] = round(
            sum(
                MathTools.log_volume(
                    log["sets_completed"], log["reps_completed"], log["weight_used"]
                )
                for log in session["exercise_logs"]
            ),
            2,
        )
        return session

    def overview(self) -> dict:
        feelings = self.sessions.feeling_counts()
        most_common = max(feelings, key=feelings.get) if feelings else None
        recent = self.sessions.fetch_recent(1)
        return {
            "total_sessions": self.sessions.count(),
            "completed_workouts": self.workouts.completed_count() if self.workouts else 0,
            "feelings": feelings,
            "most_common_feeling": most_common,
            "last_session_date": recent[0]["session_date"] if recent else None,
            "streak": self.session_streak(),
        }

    def exercise_progress(self, exercise_name: str) -> dict:
        history = self.logs.history_for_exercise(exercise_name)
        weights = [h["weight_used"] for h in history]
        return {
            "exercise_name": exercise_name,
            "history": history,
            "best_weight": max(weights) if weights else 0.0,
            "latest_weight": weights[-1] if weights else 0.0,
            "change": round(weights[-1] - weights[0], 2) if len(weights) > 1 else 0.0,
        }

    def session_streak(self, today: datetime.date | None = None) -> dict[str, int]:
        """Return current and record streaks of consecutive training days."""
        rows = self.sessions.fetch_all("SELECT DISTINCT session_date FROM workout_sessions;")
        if not rows:
            return {"current": 0, "record": 0}
        dates = sorted(datetime.date.fromisoformat(r[0]) for r in rows)
        record = 1
        current = 1
        for i in range(1, len(dates)):
            gap = (dates[i] - dates[i - 1]).days
            if gap == 1:
                current += 1
            elif gap > 1:
                record = max(record, current)
                current = 1
        record = max(record, current)
        if ((today or datetime.date.today()) - dates[-1]).days > 1:
            current = 0
        return {"current": current, "record": record}
