import os
import sys
import csv
import json
from unittest import mock

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import cli
from db import (
    ExerciseRepository,
    WorkoutPlanRepository,
    WorkoutRepository,
    WorkoutSessionRepository,
)


def _session(db_path: str) -> None:
    wid = WorkoutRepository(db_path).create("Legs")
    eid = ExerciseRepository(db_path).add(wid, "Squat", 3, "5")
    WorkoutSessionRepository(db_path).create_with_logs(
        wid,
        "2024-04-01",
        "moderate",
        None,
        [
            {
                "exercise_id": eid,
                "exercise_name": "Squat",
                "sets_completed": 3,
                "reps_completed": "5",
                "weight_used": 100.0,
            }
        ],
        True,
    )


def test_export_csv_and_json(tmp_path):
    db = str(tmp_path / "coach.db")
    _session(db)
    out = cli.export_sessions(db, "csv", str(tmp_path))
    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows[0]["exercise_name"] == "Squat"
    assert rows[0]["weight_used"] == "100.0"

    out = cli.export_sessions(db, "json", str(tmp_path))
    with open(out, encoding="utf-8") as f:
        data = json.load(f)
    assert data[0]["session_date"] == "2024-04-01"
    assert data[0]["sets_completed"] == 3


def test_backup_and_restore(tmp_path):
    db = str(tmp_path / "coach.db")
    backup = str(tmp_path / "backup.db")
    _session(db)
    cli.main(["backup", "--db", db, "--out", backup])
    os.remove(db)
    cli.main(["restore", "--in", backup, "--db", db])
    assert WorkoutSessionRepository(db).count() == 1


def test_demo_inserts_once(tmp_path, capsys):
    db = str(tmp_path / "coach.db")
    cli.main(["demo", "--db", db])
    cli.main(["demo", "--db", db])
    out = capsys.readouterr().out
    assert "Demo data inserted" in out
    assert "already contains plans" in out
    plans = WorkoutPlanRepository(db).fetch_all_plans()
    assert len(plans) == 1
    workouts = WorkoutRepository(db).fetch_for_plan(plans[0]["id"])
    assert [w["workout_name"] for w in workouts] == ["Full Body A", "Full Body B"]


def test_import_plan_from_model_response(tmp_path, capsys):
    db = str(tmp_path / "coach.db")
    src = tmp_path / "response.txt"
    src.write_text("Here you go:\n" + json.dumps(cli.DEMO_PLAN) + "\nEnjoy!", encoding="utf-8")
    cli.main(["import_plan", "--file", str(src), "--db", db, "--start", "2024-05-06"])
    assert "Imported plan" in capsys.readouterr().out
    plan = WorkoutPlanRepository(db).fetch_all_plans()[0]
    assert plan["start_date"] == "2024-05-06"


def test_import_plan_rejects_garbage(tmp_path):
    src = tmp_path / "bad.txt"
    src.write_text("nothing useful", encoding="utf-8")
    with pytest.raises(ValueError):
        cli.import_plan(str(src), str(tmp_path / "coach.db"))


def test_serve_runs_uvicorn():
    with mock.patch("uvicorn.run") as run:
        cli.main(["serve", "--port", "9000"])
    run.assert_called_once_with("rest_api:app", host="127.0.0.1", port=9000)


def test_vacuum_keeps_data(tmp_path):
    db = str(tmp_path / "coach.db")
    _session(db)
    cli.main(["vacuum", "--db", db])
    assert WorkoutSessionRepository(db).count() == 1
