import os
import sys
import pytest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import AsyncWorkoutSessionRepository, WorkoutRepository, WorkoutSessionRepository
from rest_api import CoachAPI


@pytest.mark.asyncio
async def test_async_session_count(tmp_path):
    db_file = str(tmp_path / "coach.db")
    repo = AsyncWorkoutSessionRepository(db_file)
    assert await repo.count() == 0
    wid = WorkoutRepository(db_file).create("Pull")
    sessions = WorkoutSessionRepository(db_file)
    sessions.create_with_logs(wid, "2024-01-01", "easy", None, [], True)
    sessions.create_with_logs(wid, "2024-01-03", "hard", "sore", [], False)
    assert await repo.count() == 2
    rows = await repo.fetch_all(
        "SELECT session_date FROM workout_sessions ORDER BY session_date DESC;"
    )
    assert [r[0] for r in rows] == ["2024-01-03", "2024-01-01"]


def test_health_reads_through_async_repository(tmp_path):
    api = CoachAPI(str(tmp_path / "coach.db"), str(tmp_path / "settings.yaml"))
    client = TestClient(api.app)
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
