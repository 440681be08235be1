import datetime
import os
import sqlite3
import threading
import time
from typing import Callable
from fastapi import (
    FastAPI,
    HTTPException,
    Response,
    Body,
    APIRouter,
    Request,
)
from pydantic import ValidationError

from db import (
    AsyncWorkoutSessionRepository,
    WorkoutPlanRepository,
    WorkoutRepository,
    ExerciseRepository,
    WorkoutSessionRepository,
    ExerciseLogRepository,
    OnboardingRepository,
    GenerationLogRepository,
    SettingsRepository,
)
from planner_service import PlannerService, PlanGenerator, OnboardingProfile
from rest_timer import Scheduler, ThreadingScheduler
from session_aggregator import WorkoutSessionAggregator
from settings_schema import validate_settings
from stats_service import StatisticsService
from tracker_service import TrackerService


class RateLimiter:
    """Simple in-memory rate limiter."""

    def __init__(self, limit: int = 60, window: int = 60) -> None:
        self.limit = limit
        self.window = window
        self.requests: dict[str, list[float]] = {}

    async def __call__(self, request: Request, call_next):
        ip = request.client.host if request.client else "anon"
        now = time.time()
        history = [t for t in self.requests.get(ip, []) if now - t < self.window]
        if len(history) >= self.limit:
            return Response("rate limit exceeded", status_code=429)
        history.append(now)
        self.requests[ip] = history
        return await call_next(request)


class CoachAPI:
    """Provides REST endpoints for plans, guided sessions and progress."""

    SESSION_ACTIONS = {
        "start_set": WorkoutSessionAggregator.start_set,
        "complete_set": WorkoutSessionAggregator.complete_set,
        "skip_rest": WorkoutSessionAggregator.skip_rest,
        "toggle_timer": WorkoutSessionAggregator.toggle_timer,
        "reset_timer": WorkoutSessionAggregator.reset_timer,
        "skip_to_logging": WorkoutSessionAggregator.skip_to_logging,
        "tick": WorkoutSessionAggregator.tick,
        "advance": WorkoutSessionAggregator.advance,
        "previous": WorkoutSessionAggregator.previous,
    }

    def __init__(
        self,
        db_path: str = "coach.db",
        yaml_path: str = "settings.yaml",
        *,
        scheduler_factory: Callable[[], Scheduler] = ThreadingScheduler,
        generator: Callable[[str], dict] | None = None,
        rate_limit: int | None = None,
        rate_window: int = 60,
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.plans = WorkoutPlanRepository(db_path)
        self.workouts = WorkoutRepository(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.sessions = WorkoutSessionRepository(db_path)
        self.async_sessions = AsyncWorkoutSessionRepository(db_path)
        self.exercise_logs = ExerciseLogRepository(db_path)
        self.onboarding = OnboardingRepository(db_path)
        self.generation_logs = GenerationLogRepository(db_path)
        self.scheduler_factory = scheduler_factory
        self.active_sessions: dict[int, WorkoutSessionAggregator] = {}
        self._sessions_lock = threading.Lock()
        self.tracker = TrackerService(
            self.workouts,
            self.exercises,
            self.sessions,
            self.exercise_logs,
            self.settings,
        )
        self.planner = PlannerService(
            self.plans,
            self.workouts,
            self.exercises,
            log_repo=self.generation_logs,
            generator=generator or self._generate,
        )
        self.statistics = StatisticsService(
            self.sessions,
            self.exercise_logs,
            self.workouts,
            self.settings,
        )
        self.app = FastAPI(
            title="Coach API",
            description="REST API for guided workouts and progress tracking",
        )
        if rate_limit is not None:
            limiter = RateLimiter(limit=rate_limit, window=rate_window)
            self.app.middleware("http")(limiter)
        self._setup_routes()

    def _generate(self, prompt: str) -> dict:
        return PlanGenerator.from_settings(self.settings)(prompt)

    def _active(self, workout_id: int) -> WorkoutSessionAggregator:
        with self._sessions_lock:
            agg = self.active_sessions.get(workout_id)
        if agg is None:
            raise HTTPException(status_code=404, detail="no active session")
        return agg

    def _setup_routes(self) -> None:
        plans_router = APIRouter(prefix="/plans", tags=["Plans"])
        session_router = APIRouter(
            prefix="/workouts/{workout_id}/session", tags=["Session"]
        )
        progress_router = APIRouter(prefix="/progress", tags=["Progress"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        async def health():
            """Return API and database connection status."""
            try:
                await self.async_sessions.count()
                return {"status": "ok"}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.put("/onboarding")
        def save_onboarding(profile: dict = Body(...)):
            try:
                data = OnboardingProfile.model_validate(profile)
            except ValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))
            pid = self.onboarding.save(
                data.fitness_level,
                data.primary_goal,
                data.available_days,
                data.session_duration,
                data.equipment_access,
                data.injuries_limitations,
            )
            return {"id": pid}

        @self.app.get("/onboarding")
        def get_onboarding():
            profile = self.onboarding.fetch_latest()
            if profile is None:
                raise HTTPException(status_code=404, detail="onboarding not completed")
            return profile

        @plans_router.post("")
        def create_plan(plan: dict = Body(...), start_date: str = None):
            try:
                pid = self.planner.create_plan(plan, start_date)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": pid}

        @plans_router.post("/generate")
        def generate_plan(start_date: str = None):
            profile = self.onboarding.fetch_latest()
            if profile is None:
                raise HTTPException(status_code=400, detail="onboarding not completed")
            try:
                pid = self.planner.generate_plan(profile, start_date)
            except Exception as e:
                raise HTTPException(status_code=502, detail=str(e))
            return {"id": pid}

        @plans_router.get("")
        def list_plans(active_only: bool = False):
            return self.plans.fetch_all_plans(active_only)

        @plans_router.get("/generation_errors")
        def generation_errors(limit: int = 5):
            return [
                {"timestamp": ts, "message": msg}
                for ts, msg in self.generation_logs.last_errors(limit)
            ]

        @plans_router.get("/{plan_id}/workouts")
        def plan_workouts(plan_id: int):
            try:
                self.plans.fetch_detail(plan_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return self.workouts.fetch_for_plan(plan_id)

        @plans_router.delete("/{plan_id}")
        def delete_plan(plan_id: int):
            try:
                self.plans.delete(plan_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"status": "deleted"}

        @self.app.get("/workouts/{workout_id}")
        def get_workout(workout_id: int):
            try:
                workout = self.workouts.fetch_detail(workout_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            workout["exercises"] = self.exercises.fetch_for_workout(workout_id)
            return workout

        @session_router.post("")
        def open_session(workout_id: int):
            try:
                agg = self.tracker.open(workout_id, self.scheduler_factory())
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            with self._sessions_lock:
                old = self.active_sessions.get(workout_id)
                self.active_sessions[workout_id] = agg
            if old is not None:
                self.tracker.discard(old)
            return agg.snapshot()

        @session_router.get("")
        def get_session(workout_id: int):
            return self._active(workout_id).snapshot()

        @session_router.delete("")
        def discard_session(workout_id: int):
            with self._sessions_lock:
                agg = self.active_sessions.pop(workout_id, None)
            if agg is None:
                raise HTTPException(status_code=404, detail="no active session")
            self.tracker.discard(agg)
            return {"status": "discarded"}

        @session_router.put("/index")
        def navigate(workout_id: int, index: int):
            agg = self._active(workout_id)
            try:
                agg.navigate(index)
            except IndexError as e:
                raise HTTPException(status_code=400, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return agg.snapshot()

        @session_router.put("/logs/{exercise_id}")
        def update_log(workout_id: int, exercise_id: int, field: str, value: str = ""):
            agg = self._active(workout_id)
            try:
                log = agg.update_log(field, value, exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return log.to_dict()

        @session_router.post("/finish")
        def finish_session(
            workout_id: int,
            feeling: str = "moderate",
            notes: str = "",
            session_date: str = None,
        ):
            agg = self._active(workout_id)
            if session_date is not None:
                try:
                    datetime.date.fromisoformat(session_date)
                except ValueError:
                    raise HTTPException(
                        status_code=400,
                        detail="session_date must be in YYYY-MM-DD format",
                    )
            dropped = agg.pending_exercises()
            try:
                session_id = self.tracker.save(agg, feeling, notes, session_date)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            except sqlite3.Error as e:
                raise HTTPException(
                    status_code=500, detail=f"could not store session: {e}"
                )
            with self._sessions_lock:
                if self.active_sessions.get(workout_id) is agg:
                    del self.active_sessions[workout_id]
            return {
                "id": session_id,
                "workout_fully_completed": agg.record.workout_fully_completed,
                "dropped_exercise_ids": dropped,
            }

        @session_router.post("/{action}")
        def session_action(workout_id: int, action: str):
            handler = self.SESSION_ACTIONS.get(action)
            if handler is None:
                raise HTTPException(status_code=404, detail="unknown action")
            agg = self._active(workout_id)
            try:
                handler(agg)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return agg.snapshot()

        @self.app.get("/sessions")
        def list_sessions(limit: int = None):
            return self.statistics.recent_sessions(limit)

        @self.app.get("/sessions/{session_id}")
        def get_session_detail(session_id: int):
            try:
                return self.statistics.session_detail(session_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @progress_router.get("/overview")
        def progress_overview():
            return self.statistics.overview()

        @progress_router.get("/exercises/{name}")
        def exercise_progress(name: str):
            return self.statistics.exercise_progress(name)

        @self.app.get("/settings")
        def get_settings():
            return self.settings.all_settings()

        @self.app.put("/settings/{key}")
        def update_setting(key: str, value: str):
            data = self.settings.all_settings()
            data[key] = value
            try:
                validate_settings(data)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            if key in SettingsRepository._BOOL_KEYS:
                self.settings.set_bool(key, value in {"1", "true", "True"})
            else:
                self.settings.set_text(key, value)
            return {"status": "updated"}

        self.app.include_router(plans_router)
        self.app.include_router(session_router)
        self.app.include_router(progress_router)


api = CoachAPI(db_path=os.environ.get("DB_PATH", "coach.db"))
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
