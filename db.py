import sqlite3
import aiosqlite
import datetime
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional, Iterable

from config import YamlConfig
from settings_schema import validate_settings


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workout_plans": (
            """CREATE TABLE workout_plans (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    plan_name TEXT NOT NULL,
                    description TEXT,
                    start_date TEXT NOT NULL,
                    end_date TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                );""",
            [
                "id",
                "plan_name",
                "description",
                "start_date",
                "end_date",
                "is_active",
                "created_at",
            ],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    plan_id INTEGER,
                    day_number INTEGER NOT NULL DEFAULT 1,
                    workout_name TEXT NOT NULL,
                    scheduled_date TEXT,
                    completed INTEGER NOT NULL DEFAULT 0,
                    completed_at TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(plan_id) REFERENCES workout_plans(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "plan_id",
                "day_number",
                "workout_name",
                "scheduled_date",
                "completed",
                "completed_at",
                "created_at",
            ],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    exercise_name TEXT NOT NULL,
                    sets INTEGER,
                    reps TEXT,
                    duration_minutes INTEGER,
                    rest_seconds INTEGER,
                    notes TEXT,
                    order_index INTEGER NOT NULL DEFAULT 0,
                    completed INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "workout_id",
                "exercise_name",
                "sets",
                "reps",
                "duration_minutes",
                "rest_seconds",
                "notes",
                "order_index",
                "completed",
            ],
        ),
        "workout_sessions": (
            """CREATE TABLE workout_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER,
                    session_date TEXT NOT NULL,
                    duration_minutes INTEGER,
                    notes TEXT,
                    overall_feeling TEXT,
                    fully_completed INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE SET NULL
                );""",
            [
                "id",
                "workout_id",
                "session_date",
                "duration_minutes",
                "notes",
                "overall_feeling",
                "fully_completed",
                "created_at",
            ],
        ),
        "exercise_logs": (
            """CREATE TABLE exercise_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL,
                    exercise_id INTEGER,
                    exercise_name TEXT NOT NULL,
                    sets_completed INTEGER NOT NULL DEFAULT 0,
                    reps_completed TEXT,
                    weight_used REAL NOT NULL DEFAULT 0,
                    duration_minutes INTEGER,
                    notes TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(session_id) REFERENCES workout_sessions(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE SET NULL
                );""",
            [
                "id",
                "session_id",
                "exercise_id",
                "exercise_name",
                "sets_completed",
                "reps_completed",
                "weight_used",
                "duration_minutes",
                "notes",
                "created_at",
            ],
        ),
        "onboarding_profiles": (
            """CREATE TABLE onboarding_profiles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    fitness_level TEXT NOT NULL,
                    primary_goal TEXT NOT NULL,
                    available_days TEXT NOT NULL,
                    session_duration INTEGER NOT NULL,
                    equipment_access TEXT NOT NULL,
                    injuries_limitations TEXT,
                    created_at TEXT NOT NULL
                );""",
            [
                "id",
                "fitness_level",
                "primary_goal",
                "available_days",
                "session_duration",
                "equipment_access",
                "injuries_limitations",
                "created_at",
            ],
        ),
        "generation_logs": (
            """CREATE TABLE generation_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    status TEXT NOT NULL,
                    message TEXT
                );""",
            ["id", "timestamp", "status", "message"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    def __init__(self, db_path: str = "coach.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._init_settings()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("completed", "fully_completed", "order_index", "sets_completed", "weight_used"):
                        return "0"
                    if col == "is_active":
                        return "1"
                    if col == "day_number":
                        return "1"
                    if col == "created_at":
                        return "datetime('now')"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def _init_settings(self) -> None:
        defaults = {
            "default_rest_seconds": "60",
            "weight_unit": "kg",
            "history_limit": "10",
            "timezone": "UTC",
            "generation_model": "google/gemini-2.0-flash-001",
            "generation_temperature": "0.9",
            "generation_base_url": "https://openrouter.ai/api/v1",
            "warn_on_dropped_exercises": "1",
        }
        with self._connection() as conn:
            for key, value in defaults.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )

    def vacuum(self) -> None:
        """Run SQLite VACUUM to reduce database size."""
        with self._connection() as conn:
            conn.execute("VACUUM;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows


def _now() -> str:
    return datetime.datetime.now().isoformat(timespec="seconds")


class WorkoutPlanRepository(BaseRepository):
    """Repository for generated workout plans."""

    def create(
        self,
        plan_name: str,
        description: str | None,
        start_date: str,
        end_date: str | None = None,
        is_active: bool = True,
    ) -> int:
        return self.execute(
            "INSERT INTO workout_plans (plan_name, description, start_date, end_date, is_active, created_at) VALUES (?, ?, ?, ?, ?, ?);",
            (plan_name, description, start_date, end_date, int(is_active), _now()),
        )

    def fetch_all_plans(self, active_only: bool = False) -> List[dict]:
        query = "SELECT id, plan_name, description, start_date, end_date, is_active, created_at FROM workout_plans"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY id DESC;"
        rows = self.fetch_all(query)
        return [
            {
                "id": r[0],
                "plan_name": r[1],
                "description": r[2],
                "start_date": r[3],
                "end_date": r[4],
                "is_active": bool(r[5]),
                "created_at": r[6],
            }
            for r in rows
        ]

    def fetch_detail(self, plan_id: int) -> dict:
        for plan in self.fetch_all_plans():
            if plan["id"] == plan_id:
                return plan
        raise ValueError("plan not found")

    def deactivate_all(self) -> None:
        self.execute("UPDATE workout_plans SET is_active = 0;")

    def delete(self, plan_id: int) -> None:
        rows = self.fetch_all("SELECT id FROM workout_plans WHERE id = ?;", (plan_id,))
        if not rows:
            raise ValueError("plan not found")
        self.execute("DELETE FROM workout_plans WHERE id = ?;", (plan_id,))


class WorkoutRepository(BaseRepository):
    """Repository for workout table operations."""

    _COLUMNS = "id, plan_id, day_number, workout_name, scheduled_date, completed, completed_at, created_at"

    @staticmethod
    def _row(r: Tuple) -> dict:
        return {
            "id": r[0],
            "plan_id": r[1],
            "day_number": r[2],
            "workout_name": r[3],
            "scheduled_date": r[4],
            "completed": bool(r[5]),
            "completed_at": r[6],
            "created_at": r[7],
        }

    def create(
        self,
        workout_name: str,
        plan_id: Optional[int] = None,
        day_number: int = 1,
        scheduled_date: str | None = None,
    ) -> int:
        return self.execute(
            "INSERT INTO workouts (plan_id, day_number, workout_name, scheduled_date, completed, created_at) VALUES (?, ?, ?, ?, 0, ?);",
            (plan_id, day_number, workout_name, scheduled_date, _now()),
        )

    def fetch_for_plan(self, plan_id: int) -> List[dict]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workouts WHERE plan_id = ? ORDER BY day_number, id;",
            (plan_id,),
        )
        return [self._row(r) for r in rows]

    def fetch_detail(self, workout_id: int) -> dict:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise ValueError("workout not found")
        return self._row(rows[0])

    def completed_count(self) -> int:
        rows = self.fetch_all("SELECT COUNT(*) FROM workouts WHERE completed = 1;")
        return int(rows[0][0]) if rows else 0


class ExerciseRepository(BaseRepository):
    """Repository for planned exercises of a workout."""

    _COLUMNS = "id, workout_id, exercise_name, sets, reps, duration_minutes, rest_seconds, notes, order_index, completed"

    @staticmethod
    def _row(r: Tuple) -> dict:
        return {
            "id": r[0],
            "workout_id": r[1],
            "exercise_name": r[2],
            "sets": r[3],
            "reps": r[4],
            "duration_minutes": r[5],
            "rest_seconds": r[6],
            "notes": r[7],
            "order_index": r[8],
            "completed": bool(r[9]),
        }

    def add(
        self,
        workout_id: int,
        exercise_name: str,
        sets: Optional[int] = None,
        reps: Optional[str] = None,
        duration_minutes: Optional[int] = None,
        rest_seconds: Optional[int] = None,
        notes: Optional[str] = None,
        order_index: int = 0,
    ) -> int:
        if sets is not None and sets < 0:
            raise ValueError("sets must be non-negative")
        if rest_seconds is not None and rest_seconds < 0:
            raise ValueError("rest_seconds must be non-negative")
        return self.execute(
            "INSERT INTO exercises (workout_id, exercise_name, sets, reps, duration_minutes, rest_seconds, notes, order_index, completed) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0);",
            (
                workout_id,
                exercise_name,
                sets,
                reps,
                duration_minutes,
                rest_seconds,
                notes,
                order_index,
            ),
        )

    def fetch_for_workout(self, workout_id: int) -> List[dict]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises WHERE workout_id = ? ORDER BY order_index, id;",
            (workout_id,),
        )
        return [self._row(r) for r in rows]

    def fetch_detail(self, exercise_id: int) -> dict:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises WHERE id = ?;",
            (exercise_id,),
        )
        if not rows:
            raise ValueError("exercise not found")
        return self._row(rows[0])


class WorkoutSessionRepository(BaseRepository):
    """Repository for performed sessions and their exercise logs."""

    _COLUMNS = "id, workout_id, session_date, duration_minutes, notes, overall_feeling, fully_completed, created_at"

    @staticmethod
    def _row(r: Tuple) -> dict:
        return {
            "id": r[0],
            "workout_id": r[1],
            "session_date": r[2],
            "duration_minutes": r[3],
            "notes": r[4],
            "overall_feeling": r[5],
            "fully_completed": bool(r[6]),
            "created_at": r[7],
        }

    def create_with_logs(
        self,
        workout_id: Optional[int],
        session_date: str,
        overall_feeling: str,
        notes: str | None,
        logs: Iterable[dict],
        fully_completed: bool = False,
        duration_minutes: Optional[int] = None,
        completed_exercise_ids: Iterable[int] = (),
        mark_workout_completed: bool = False,
    ) -> int:
        """Insert a session row and its exercise logs in one transaction.

        Completion flags for the listed exercises, and for the workout when
        ``mark_workout_completed`` is set, are written in the same transaction.
        """
        created = _now()
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT INTO workout_sessions (workout_id, session_date, duration_minutes, notes, overall_feeling, fully_completed, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?);",
                (
                    workout_id,
                    session_date,
                    duration_minutes,
                    notes,
                    overall_feeling,
                    int(fully_completed),
                    created,
                ),
            )
            session_id = cursor.lastrowid
            for log in logs:
                conn.execute(
                    "INSERT INTO exercise_logs (session_id, exercise_id, exercise_name, sets_completed, reps_completed, weight_used, duration_minutes, notes, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);",
                    (
                        session_id,
                        log["exercise_id"],
                        log["exercise_name"],
                        int(log["sets_completed"]),
                        log["reps_completed"],
                        float(log["weight_used"]),
                        log.get("duration_minutes"),
                        log.get("notes"),
                        created,
                    ),
                )
            for exercise_id in completed_exercise_ids:
                conn.execute(
                    "UPDATE exercises SET completed = 1 WHERE id = ?;",
                    (exercise_id,),
                )
            if mark_workout_completed and workout_id is not None:
                conn.execute(
                    "UPDATE workouts SET completed = 1, completed_at = ? WHERE id = ?;",
                    (created, workout_id),
                )
            return session_id

    def fetch_recent(self, limit: int = 10) -> List[dict]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_sessions ORDER BY session_date DESC, id DESC LIMIT ?;",
            (limit,),
        )
        return [self._row(r) for r in rows]

    def fetch_detail(self, session_id: int) -> dict:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM workout_sessions WHERE id = ?;",
            (session_id,),
        )
        if not rows:
            raise ValueError("session not found")
        return self._row(rows[0])

    def count(self) -> int:
        rows = self.fetch_all("SELECT COUNT(*) FROM workout_sessions;")
        return int(rows[0][0]) if rows else 0

    def feeling_counts(self) -> dict[str, int]:
        rows = self.fetch_all(
            "SELECT overall_feeling, COUNT(*) FROM workout_sessions WHERE overall_feeling IS NOT NULL GROUP BY overall_feeling;"
        )
        return {r[0]: int(r[1]) for r in rows}


class ExerciseLogRepository(BaseRepository):
    """Read access to logged exercise performance."""

    _COLUMNS = "id, session_id, exercise_id, exercise_name, sets_completed, reps_completed, weight_used, duration_minutes, notes"

    @staticmethod
    def _row(r: Tuple) -> dict:
        return {
            "id": r[0],
            "session_id": r[1],
            "exercise_id": r[2],
            "exercise_name": r[3],
            "sets_completed": int(r[4] or 0),
            "reps_completed": r[5] or "",
            "weight_used": float(r[6] or 0),
            "duration_minutes": r[7],
            "notes": r[8] or "",
        }

    def fetch_for_session(self, session_id: int) -> List[dict]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_logs WHERE session_id = ? ORDER BY id;",
            (session_id,),
        )
        return [self._row(r) for r in rows]

    def fetch_for_sessions(self, session_ids: Iterable[int]) -> List[dict]:
        ids = list(session_ids)
        if not ids:
            return []
        marks = ", ".join("?" for _ in ids)
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_logs WHERE session_id IN ({marks}) ORDER BY id;",
            tuple(ids),
        )
        return [self._row(r) for r in rows]

    def previous_logs(self, workout_id: int) -> dict:
        """Map exercise id to its most recently logged values for ``workout_id``.

        Exercises logged in older sessions keep their values even when the
        newest session did not include them.
        """
        rows = self.fetch_all(
            "SELECT l.exercise_id, l.weight_used, l.sets_completed, l.reps_completed, l.notes "
            "FROM exercise_logs l JOIN workout_sessions s ON s.id = l.session_id "
            "WHERE s.workout_id = ? AND l.exercise_id IS NOT NULL "
            "ORDER BY s.session_date DESC, s.id DESC, l.id DESC;",
            (workout_id,),
        )
        result = {}
        for exercise_id, weight, sets, reps, notes in rows:
            if exercise_id in result:
                continue
            result[exercise_id] = {
                "weight_used": float(weight or 0),
                "sets_completed": int(sets or 0),
                "reps_completed": reps or "",
                "notes": notes or "",
            }
        return result

    def history_for_exercise(self, exercise_name: str) -> List[dict]:
        rows = self.fetch_all(
            "SELECT s.session_date, l.sets_completed, l.reps_completed, l.weight_used "
            "FROM exercise_logs l JOIN workout_sessions s ON s.id = l.session_id "
            "WHERE lower(l.exercise_name) = ? ORDER BY s.session_date, l.id;",
            (exercise_name.lower(),),
        )
        return [
            {
                "session_date": r[0],
                "sets_completed": int(r[1] or 0),
                "reps_completed": r[2] or "",
                "weight_used": float(r[3] or 0),
            }
            for r in rows
        ]


class OnboardingRepository(BaseRepository):
    """Repository for the onboarding questionnaire answers."""

    def save(
        self,
        fitness_level: str,
        primary_goal: str,
        available_days: list[str],
        session_duration: int,
        equipment_access: list[str],
        injuries_limitations: str | None = None,
    ) -> int:
        return self.execute(
            "INSERT INTO onboarding_profiles (fitness_level, primary_goal, available_days, session_duration, equipment_access, injuries_limitations, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?);",
            (
                fitness_level,
                primary_goal,
                ",".join(available_days),
                session_duration,
                ",".join(equipment_access),
                injuries_limitations,
                _now(),
            ),
        )

    def fetch_latest(self) -> Optional[dict]:
        rows = self.fetch_all(
            "SELECT id, fitness_level, primary_goal, available_days, session_duration, equipment_access, injuries_limitations "
            "FROM onboarding_profiles ORDER BY id DESC LIMIT 1;"
        )
        if not rows:
            return None
        r = rows[0]
        return {
            "id": r[0],
            "fitness_level": r[1],
            "primary_goal": r[2],
            "available_days": [d for d in r[3].split(",") if d],
            "session_duration": int(r[4]),
            "equipment_access": [e for e in r[5].split(",") if e],
            "injuries_limitations": r[6],
        }


class GenerationLogRepository(BaseRepository):
    """Repository for plan generation run logs."""

    def log_success(self) -> int:
        return self.execute(
            "INSERT INTO generation_logs (timestamp, status, message) VALUES (?, 'success', NULL);",
            (datetime.datetime.now().isoformat(),),
        )

    def log_error(self, message: str) -> int:
        return self.execute(
            "INSERT INTO generation_logs (timestamp, status, message) VALUES (?, 'error', ?);",
            (datetime.datetime.now().isoformat(), message),
        )

    def last_errors(self, limit: int = 5) -> list[tuple[str, str]]:
        rows = self.fetch_all(
            "SELECT timestamp, message FROM generation_logs WHERE status='error' ORDER BY id DESC LIMIT ?;",
            (limit,),
        )
        return [(r[0], r[1]) for r in rows]


class SettingsRepository(BaseRepository):
    """Repository for general application settings synchronized with YAML."""

    _BOOL_KEYS = {"warn_on_dropped_exercises"}
    _TEXT_KEYS = {
        "weight_unit",
        "timezone",
        "generation_model",
        "generation_base_url",
        "openrouter_api_key",
    }

    def __init__(
        self, db_path: str = "coach.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | str | bool] = {}
        for k, v in rows:
            if k in self._BOOL_KEYS:
                result[k] = v in {"1", "1.0", "true", "True"}
                continue
            if k in self._TEXT_KEYS:
                result[k] = v
                continue
            try:
                number = float(v)
                result[k] = int(number) if number.is_integer() else number
            except ValueError:
                result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                val = str(value)
                if key in self._BOOL_KEYS:
                    val = "1" if val in {"1", "1.0", "true", "True"} else "0"
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def set_text(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def get_float(self, key: str, default: float) -> float:
        try:
            return float(self.get_text(key, str(default)))
        except ValueError:
            return default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(value))

    def get_bool(self, key: str, default: bool) -> bool:
        return self.get_text(key, "1" if default else "0") in {
            "1",
            "true",
            "True",
            "1.0",
        }

    def set_bool(self, key: str, value: bool) -> None:
        self.set_text(key, "1" if value else "0")

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        data = self._raw_all_settings()
        data.pop("openrouter_api_key", None)
        return data


class AsyncWorkoutSessionRepository(AsyncBaseRepository):
    """Async session reads used by the health check."""

    async def count(self) -> int:
        rows = await self.fetch_all("SELECT COUNT(*) FROM workout_sessions;")
        return int(rows[0][0]) if rows else 0
