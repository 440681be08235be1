from __future__ import annotations

import datetime
import json
import logging
import os
import random
import re
import string
import time
from typing import Callable, Literal, Optional

import requests
from pydantic import BaseModel, Field, ValidationError, field_validator

from db import (
    WorkoutPlanRepository,
    WorkoutRepository,
    ExerciseRepository,
    GenerationLogRepository,
    SettingsRepository,
)

logger = logging.getLogger(__name__)


class OnboardingProfile(BaseModel):
    fitness_level: Literal["beginner", "intermediate", "advanced"]
    primary_goal: Literal[
        "lose_weight",
        "build_muscle",
        "improve_endurance",
        "general_fitness",
        "increase_flexibility",
    ]
    available_days: list[str] = Field(min_length=1, max_length=7)
    session_duration: int = Field(gt=0)
    equipment_access: list[str] = Field(default_factory=list)
    injuries_limitations: Optional[str] = None


class GeneratedExercise(BaseModel):
    exercise_name: str = Field(min_length=1)
    sets: Optional[int] = None
    reps: Optional[str] = None
    duration_minutes: Optional[int] = None
    rest_seconds: Optional[int] = None
    notes: Optional[str] = None
    order_index: int = 0

    @field_validator("sets", "duration_minutes", "rest_seconds", mode="before")
    @classmethod
    def _whole_number(cls, value):
        if value is None or value == "":
            return None
        number = int(round(float(value)))
        return max(number, 0)

    @field_validator("reps", mode="before")
    @classmethod
    def _reps_text(cls, value):
        if value is None:
            return None
        return str(value)


class GeneratedWorkout(BaseModel):
    day_number: int = Field(ge=1)
    workout_name: str = Field(min_length=1)
    exercises: list[GeneratedExercise] = Field(default_factory=list)


class GeneratedWorkoutPlan(BaseModel):
    plan_name: str = Field(min_length=1)
    description: str = ""
    workouts: list[GeneratedWorkout] = Field(min_length=1)


def extract_plan_json(text: str) -> dict:
    """Pull the JSON object out of a model response that may carry extra prose."""
    match = re.search(r"\{[\s\S]*\}", text or "")
    if not match:
        raise ValueError("Failed to parse workout plan from AI response")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse workout plan from AI response: {e}")


def build_workout_prompt(profile: OnboardingProfile) -> str:
    days = profile.available_days
    equipment = ", ".join(profile.equipment_access) or "bodyweight_only"
    return (
        f"Create a {len(days)}-day workout plan for a {profile.fitness_level} "
        f"whose primary goal is {profile.primary_goal.replace('_', ' ')}.\n"
        f"Days: {', '.join(days)}. Session duration: {profile.session_duration} minutes.\n"
        f"Equipment: {equipment}. Limitations: {profile.injuries_limitations or 'None'}.\n"
        "Return only a JSON object with keys plan_name, description and workouts; "
        "each workout has day_number, workout_name and exercises with exercise_name, "
        "sets, reps, duration_minutes, rest_seconds, notes and order_index."
    )


class PlanGenerator:
    """Calls an OpenAI-compatible chat completion endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://openrouter.ai/api/v1",
        model: str = "google/gemini-2.0-flash-001",
        temperature: float = 0.9,
        timeout: int = 60,
    ) -> None:
        self.api_key = api_key or os.environ.get("OPENROUTER_API_KEY")
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: SettingsRepository) -> "PlanGenerator":
        key = settings.get_text("openrouter_api_key", "")
        return cls(
            api_key=key if key and key != "True" else None,
            base_url=settings.get_text(
                "generation_base_url", "https://openrouter.ai/api/v1"
            ),
            model=settings.get_text("generation_model", "google/gemini-2.0-flash-001"),
            temperature=settings.get_float("generation_temperature", 0.9),
        )

    def complete(self, prompt: str) -> str:
        if not self.api_key:
            raise ValueError("OPENROUTER_API_KEY is not configured")
        seed = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
        unique = (
            f"{prompt}\n\nGeneration timestamp: {int(time.time() * 1000)}\n"
            f"Variation seed: {seed}"
        )
        resp = requests.post(
            f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": self.model,
                "temperature": self.temperature,
                "messages": [{"role": "user", "content": unique}],
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()["choices"][0]["message"]["content"]

    def __call__(self, prompt: str) -> dict:
        return extract_plan_json(self.complete(prompt))


class PlannerService:
    """Stores generated plans as workouts with ordered exercises."""

    def __init__(
        self,
        plan_repo: WorkoutPlanRepository,
        workout_repo: WorkoutRepository,
        exercise_repo: ExerciseRepository,
        log_repo: GenerationLogRepository | None = None,
        generator: Callable[[str], dict] | None = None,
    ) -> None:
        self.plans = plan_repo
        self.workouts = workout_repo
        self.exercises = exercise_repo
        self.log_repo = log_repo
        self.generator = generator

    def create_plan(self, plan: dict | GeneratedWorkoutPlan, start_date: str | None = None) -> int:
        """Store ``plan`` as the active plan and return its id."""
        try:
            parsed = (
                plan
                if isinstance(plan, GeneratedWorkoutPlan)
                else GeneratedWorkoutPlan.model_validate(plan)
            )
        except ValidationError as e:
            raise ValueError(str(e))
        start = start_date or datetime.date.today().isoformat()
        first_day = datetime.date.fromisoformat(start)
        self.plans.deactivate_all()
        plan_id = self.plans.create(parsed.plan_name, parsed.description, start)
        for workout in sorted(parsed.workouts, key=lambda w: w.day_number):
            scheduled = first_day + datetime.timedelta(days=workout.day_number - 1)
            workout_id = self.workouts.create(
                workout.workout_name,
                plan_id,
                workout.day_number,
                scheduled.isoformat(),
            )
            for position, ex in enumerate(
                sorted(workout.exercises, key=lambda e: e.order_index)
            ):
                self.exercises.add(
                    workout_id,
                    ex.exercise_name,
                    ex.sets,
                    ex.reps,
                    ex.duration_minutes,
                    ex.rest_seconds,
                    ex.notes,
                    ex.order_index if ex.order_index else position,
                )
        return plan_id

    def generate_plan(
        self, profile: OnboardingProfile | dict, start_date: str | None = None
    ) -> int:
        if self.generator is None:
            raise ValueError("plan generator not configured")
        if not isinstance(profile, OnboardingProfile):
            profile = OnboardingProfile.model_validate(profile)
        try:
            data = self.generator(build_workout_prompt(profile))
            plan_id = self.create_plan(data, start_date)
            if self.log_repo is not None:
                self.log_repo.log_success()
            return plan_id
        except Exception as e:
            logger.warning("plan generation failed: %s", e)
            if self.log_repo is not None:
                self.log_repo.log_error(str(e))
            raise
