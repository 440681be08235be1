import requests
from typing import Optional

class CoachClient:
    """Simple REST client for the coaching API."""

    def __init__(self, base_url: str = "http://localhost:8000") -> None:
        self.base_url = base_url.rstrip("/")

    def _session_url(self, workout_id: int, suffix: str = "") -> str:
        return f"{self.base_url}/workouts/{workout_id}/session{suffix}"

    def create_plan(self, plan: dict, start_date: Optional[str] = None) -> int:
        params = {"start_date": start_date} if start_date else {}
        resp = requests.post(f"{self.base_url}/plans", json=plan, params=params)
        resp.raise_for_status()
        return resp.json()["id"]

    def list_plans(self, active_only: bool = False):
        resp = requests.get(
            f"{self.base_url}/plans", params={"active_only": active_only}
        )
        resp.raise_for_status()
        return resp.json()

    def plan_workouts(self, plan_id: int):
        resp = requests.get(f"{self.base_url}/plans/{plan_id}/workouts")
        resp.raise_for_status()
        return resp.json()

    def get_workout(self, workout_id: int) -> dict:
        resp = requests.get(f"{self.base_url}/workouts/{workout_id}")
        resp.raise_for_status()
        return resp.json()

    def open_session(self, workout_id: int) -> dict:
        resp = requests.post(self._session_url(workout_id))
        resp.raise_for_status()
        return resp.json()

    def session(self, workout_id: int) -> dict:
        resp = requests.get(self._session_url(workout_id))
        resp.raise_for_status()
        return resp.json()

    def session_action(self, workout_id: int, action: str) -> dict:
        resp = requests.post(self._session_url(workout_id, f"/{action}"))
        resp.raise_for_status()
        return resp.json()

    def navigate(self, workout_id: int, index: int) -> dict:
        resp = requests.put(
            self._session_url(workout_id, "/index"), params={"index": index}
        )
        resp.raise_for_status()
        return resp.json()

    def update_log(self, workout_id: int, exercise_id: int, field: str, value) -> dict:
        resp = requests.put(
            self._session_url(workout_id, f"/logs/{exercise_id}"),
            params={"field": field, "value": value},
        )
        resp.raise_for_status()
        return resp.json()

    def finish_session(
        self,
        workout_id: int,
        feeling: str = "moderate",
        notes: str = "",
        session_date: Optional[str] = None,
    ) -> dict:
        params = {"feeling": feeling, "notes": notes}
        if session_date:
            params["session_date"] = session_date
        resp = requests.post(self._session_url(workout_id, "/finish"), params=params)
        resp.raise_for_status()
        return resp.json()

    def discard_session(self, workout_id: int) -> None:
        resp = requests.delete(self._session_url(workout_id))
        resp.raise_for_status()

    def recent_sessions(self, limit: Optional[int] = None):
        params = {"limit": limit} if limit else {}
        resp = requests.get(f"{self.base_url}/sessions", params=params)
        resp.raise_for_status()
        return resp.json()

    def overview(self) -> dict:
        resp = requests.get(f"{self.base_url}/progress/overview")
        resp.raise_for_status()
        return resp.json()
