import argparse
import csv
import datetime
import io
import json
import os
import shutil
import time

import requests

from db import (
    ExerciseLogRepository,
    ExerciseRepository,
    WorkoutPlanRepository,
    WorkoutRepository,
    WorkoutSessionRepository,
)
from planner_service import PlannerService, extract_plan_json


EXPORT_FIELDS = [
    "session_id",
    "session_date",
    "overall_feeling",
    "exercise_name",
    "sets_completed",
    "reps_completed",
    "weight_used",
    "duration_minutes",
    "notes",
]


def _planner(db_path: str) -> PlannerService:
    return PlannerService(
        WorkoutPlanRepository(db_path),
        WorkoutRepository(db_path),
        ExerciseRepository(db_path),
    )


def session_rows(db_path: str) -> list[dict]:
    sessions = WorkoutSessionRepository(db_path)
    logs = ExerciseLogRepository(db_path)
    rows = []
    for session in sessions.fetch_recent(sessions.count() or 1):
        for log in logs.fetch_for_session(session["id"]):
            rows.append(
                {
                    "session_id": session["id"],
                    "session_date": session["session_date"],
                    "overall_feeling": session["overall_feeling"],
                    "exercise_name": log["exercise_name"],
                    "sets_completed": log["sets_completed"],
                    "reps_completed": log["reps_completed"],
                    "weight_used": log["weight_used"],
                    "duration_minutes": log["duration_minutes"],
                    "notes": log["notes"],
                }
            )
    return rows


def export_sessions(db_path: str, fmt: str, output_dir: str = ".") -> str:
    rows = session_rows(db_path)
    if fmt == "csv":
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=EXPORT_FIELDS)
        writer.writeheader()
        writer.writerows(rows)
        data = buf.getvalue()
        out_path = os.path.join(output_dir, "sessions.csv")
    else:
        data = json.dumps(rows, indent=2)
        out_path = os.path.join(output_dir, "sessions.json")
    with open(out_path, "w", encoding="utf-8", newline="") as f:
        f.write(data)
    return out_path


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def vacuum_db(db_path: str) -> None:
    WorkoutSessionRepository(db_path).vacuum()


def import_plan(path: str, db_path: str, start_date: str | None = None) -> int:
    """Store a plan from a JSON file or a saved model response."""
    with open(path, "r", encoding="utf-8") as f:
        plan = extract_plan_json(f.read())
    return _planner(db_path).create_plan(plan, start_date)


def benchmark(url: str, runs: int = 10) -> None:
    times: list[float] = []
    for _ in range(runs):
        t0 = time.time()
        requests.get(f"{url}/health", timeout=5)
        times.append(time.time() - t0)
    avg = sum(times) / len(times)
    print(f"Average /health response time over {runs} runs: {avg:.4f}s")


DEMO_PLAN = {
    "plan_name": "Demo Strength Plan",
    "description": "Two full body sessions",
    "workouts": [
        {
            "day_number": 1,
            "workout_name": "Full Body A",
            "exercises": [
                {"exercise_name": "Goblet Squat", "sets": 3, "reps": "10", "rest_seconds": 90, "order_index": 0},
                {"exercise_name": "Push Up", "sets": 3, "reps": "8-12", "rest_seconds": 60, "order_index": 1},
                {"exercise_name": "Plank", "duration_minutes": 1, "order_index": 2},
            ],
        },
        {
            "day_number": 3,
            "workout_name": "Full Body B",
            "exercises": [
                {"exercise_name": "Romanian Deadlift", "sets": 3, "reps": "10", "rest_seconds": 90, "order_index": 0},
                {"exercise_name": "Dumbbell Row", "sets": 3, "reps": "12", "order_index": 1},
            ],
        },
    ],
}


def demo_data(db_path: str) -> None:
    """Populate the database with a demo plan if empty."""
    if WorkoutPlanRepository(db_path).fetch_all_plans():
        print("Database already contains plans")
        return
    _planner(db_path).create_plan(DEMO_PLAN, datetime.date.today().isoformat())
    print("Demo data inserted")


def serve(host: str, port: int) -> None:
    import uvicorn

    uvicorn.run("rest_api:app", host=host, port=port)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--db", default="coach.db")
    exp.add_argument("--fmt", choices=["csv", "json"], default="csv")
    exp.add_argument("--out", default=".")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="coach.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="coach.db")

    vac = sub.add_parser("vacuum")
    vac.add_argument("--db", default="coach.db")

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default="coach.db")

    imp = sub.add_parser("import_plan")
    imp.add_argument("--file", required=True)
    imp.add_argument("--db", default="coach.db")
    imp.add_argument("--start")

    bench = sub.add_parser("benchmark")
    bench.add_argument("--url", default="http://localhost:8000")
    bench.add_argument("--runs", type=int, default=10)

    srv = sub.add_parser("serve")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    if args.cmd == "export":
        print(export_sessions(args.db, args.fmt, args.out))
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "vacuum":
        vacuum_db(args.db)
    elif args.cmd == "demo":
        demo_data(args.db)
    elif args.cmd == "import_plan":
        plan_id = import_plan(args.file, args.db, args.start)
        print(f"Imported plan {plan_id}")
    elif args.cmd == "benchmark":
        benchmark(args.url, args.runs)
    elif args.cmd == "serve":
        serve(args.host, args.port)


if __name__ == "__main__":
    main()
