import sqlite3
import aiosqlite
import datetime
import uuid
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional

from config import YamlConfig
from settings_schema import validate_settings


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds")


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "students": (
            """CREATE TABLE students (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    personal_id TEXT,
                    created_at TEXT NOT NULL
                );""",
            ["id", "name", "email", "personal_id", "created_at"],
        ),
        "trainings": (
            """CREATE TABLE trainings (
                    id TEXT PRIMARY KEY,
                    student_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    notes TEXT,
                    start_date TEXT NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(student_id) REFERENCES students(id) ON DELETE CASCADE
                );""",
            ["id", "student_id", "name", "notes", "start_date", "active", "created_at"],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id TEXT PRIMARY KEY,
                    training_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    sets INTEGER NOT NULL,
                    reps TEXT NOT NULL,
                    rest TEXT,
                    notes TEXT,
                    demo_video_url TEXT,
                    position INTEGER,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(training_id) REFERENCES trainings(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "training_id",
                "name",
                "sets",
                "reps",
                "rest",
                "notes",
                "demo_video_url",
                "position",
                "created_at",
            ],
        ),
        "videos": (
            """CREATE TABLE videos (
                    id TEXT PRIMARY KEY,
                    student_id TEXT NOT NULL,
                    exercise_id TEXT NOT NULL,
                    video_url TEXT NOT NULL,
                    notes TEXT,
                    submitted_at TEXT NOT NULL,
                    FOREIGN KEY(student_id) REFERENCES students(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE
                );""",
            ["id", "student_id", "exercise_id", "video_url", "notes", "submitted_at"],
        ),
        "corrections": (
            """CREATE TABLE corrections (
                    id TEXT PRIMARY KEY,
                    video_id TEXT NOT NULL,
                    personal_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    content TEXT,
                    file_url TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(video_id) REFERENCES videos(id) ON DELETE CASCADE
                );""",
            ["id", "video_id", "personal_id", "kind", "content", "file_url", "created_at"],
        ),
        "workout_sessions": (
            """CREATE TABLE workout_sessions (
                    id TEXT PRIMARY KEY,
                    training_id TEXT NOT NULL,
                    student_id TEXT NOT NULL,
                    started_at TEXT NOT NULL,
                    ended_at TEXT,
                    duration_minutes INTEGER,
                    finished INTEGER NOT NULL DEFAULT 0,
                    notes TEXT,
                    FOREIGN KEY(training_id) REFERENCES trainings(id) ON DELETE CASCADE,
                    FOREIGN KEY(student_id) REFERENCES students(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "training_id",
                "student_id",
                "started_at",
                "ended_at",
                "duration_minutes",
                "finished",
                "notes",
            ],
        ),
        "workout_sets": (
            """CREATE TABLE workout_sets (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    exercise_id TEXT NOT NULL,
                    set_number INTEGER NOT NULL,
                    reps INTEGER NOT NULL,
                    load REAL NOT NULL DEFAULT 0,
                    note TEXT,
                    created_at TEXT NOT NULL,
                    UNIQUE (session_id, exercise_id, set_number),
                    FOREIGN KEY(session_id) REFERENCES workout_sessions(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "session_id",
                "exercise_id",
                "set_number",
                "reps",
                "load",
                "note",
                "created_at",
            ],
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
                    if col in ("active",):
                        return "1"
                    if col in ("finished", "load"):
                        return "0"
                    if col in ("created_at", "start_date", "submitted_at"):
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
            "weight_unit": "kg",
            "load_increment": "2.5",
            "rep_increment": "1",
            "clock_interval": "1.0",
            "corrections_shown": "3",
            "api_base_url": "http://localhost:8000",
            "request_timeout": "10.0",
            "log_level": "INFO",
        }
        with self._connection() as conn:
            for key, value in defaults.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.rowcount

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
            await conn.execute("PRAGMA foreign_keys=on;")
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.rowcount

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return list(rows)


class StudentRepository(BaseRepository):
    """Repository for students coached by a personal trainer."""

    def add(self, name: str, email: str, personal_id: str | None = None) -> str:
        if not name.strip():
            raise ValueError("name must not be empty")
        if self.find_by_email(email) is not None:
            raise ValueError("student exists")
        student_id = new_id()
        self.execute(
            "INSERT INTO students (id, name, email, personal_id, created_at) VALUES (?, ?, ?, ?, ?);",
            (student_id, name.strip(), email.strip().lower(), personal_id, utc_now()),
        )
        return student_id

    def find_by_email(self, email: str) -> Optional[str]:
        rows = self.fetch_all(
            "SELECT id FROM students WHERE email = ?;", (email.strip().lower(),)
        )
        return rows[0][0] if rows else None

    def fetch_all_students(
        self, personal_id: str | None = None
    ) -> List[Tuple[str, str, str, Optional[str]]]:
        query = "SELECT id, name, email, personal_id FROM students"
        params: tuple = ()
        if personal_id is not None:
            query += " WHERE personal_id = ?"
            params = (personal_id,)
        query += " ORDER BY name;"
        return self.fetch_all(query, params)

    def fetch_detail(self, student_id: str) -> Tuple[str, str, str, Optional[str]]:
        rows = self.fetch_all(
            "SELECT id, name, email, personal_id FROM students WHERE id = ?;",
            (student_id,),
        )
        if not rows:
            raise ValueError("student not found")
        return rows[0]


class TrainingRepository(BaseRepository):
    """Repository for training programs assigned to students.

    A student has at most one active training; creating or activating a
    training deactivates the others.
    """

    def create(
        self,
        student_id: str,
        name: str,
        notes: str | None = None,
        start_date: str | None = None,
        active: bool = True,
    ) -> str:
        rows = self.fetch_all("SELECT id FROM students WHERE id = ?;", (student_id,))
        if not rows:
            raise ValueError("student not found")
        training_id = new_id()
        with self._connection() as conn:
            if active:
                conn.execute(
                    "UPDATE trainings SET active = 0 WHERE student_id = ?;",
                    (student_id,),
                )
            conn.execute(
                "INSERT INTO trainings (id, student_id, name, notes, start_date, active, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?);",
                (
                    training_id,
                    student_id,
                    name,
                    notes,
                    start_date or datetime.date.today().isoformat(),
                    int(active),
                    utc_now(),
                ),
            )
        return training_id

    def activate(self, training_id: str) -> None:
        student_id = self.fetch_detail(training_id)[1]
        with self._connection() as conn:
            conn.execute(
                "UPDATE trainings SET active = 0 WHERE student_id = ?;", (student_id,)
            )
            conn.execute(
                "UPDATE trainings SET active = 1 WHERE id = ?;", (training_id,)
            )

    def fetch_detail(
        self, training_id: str
    ) -> Tuple[str, str, str, Optional[str], str, int, str]:
        rows = self.fetch_all(
            "SELECT id, student_id, name, notes, start_date, active, created_at FROM trainings WHERE id = ?;",
            (training_id,),
        )
        if not rows:
            raise ValueError("training not found")
        return rows[0]

    def fetch_for_student(
        self, student_id: str
    ) -> List[Tuple[str, str, Optional[str], str, int]]:
        return self.fetch_all(
            "SELECT id, name, notes, start_date, active FROM trainings WHERE student_id = ? "
            "ORDER BY created_at DESC, rowid DESC;",
            (student_id,),
        )


class ExerciseRepository(BaseRepository):
    """Repository for exercise prescriptions of a training."""

    def add(
        self,
        training_id: str,
        name: str,
        sets: int,
        reps: str,
        rest: str | None = None,
        notes: str | None = None,
        demo_video_url: str | None = None,
        position: int | None = None,
    ) -> str:
        if sets < 0:
            raise ValueError("sets must be non-negative")
        rows = self.fetch_all("SELECT id FROM trainings WHERE id = ?;", (training_id,))
        if not rows:
            raise ValueError("training not found")
        if position is None:
            rows = self.fetch_all(
                "SELECT COALESCE(MAX(position), 0) + 1 FROM exercises WHERE training_id = ?;",
                (training_id,),
            )
            position = int(rows[0][0]) if rows else 1
        exercise_id = new_id()
        self.execute(
            "INSERT INTO exercises (id, training_id, name, sets, reps, rest, notes, demo_video_url, position, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (
                exercise_id,
                training_id,
                name,
                sets,
                reps,
                rest,
                notes,
                demo_video_url,
                position,
                utc_now(),
            ),
        )
        return exercise_id

    def fetch_for_training(self, training_id: str) -> List[Tuple]:
        return self.fetch_all(
            "SELECT id, name, sets, reps, rest, notes, demo_video_url, position FROM exercises "
            "WHERE training_id = ? ORDER BY position IS NULL, position, rowid;",
            (training_id,),
        )

    def fetch_detail(self, exercise_id: str) -> Tuple:
        rows = self.fetch_all(
            "SELECT id, training_id, name, sets, reps, rest, notes, demo_video_url, position FROM exercises WHERE id = ?;",
            (exercise_id,),
        )
        if not rows:
            raise ValueError("exercise not found")
        return rows[0]


class VideoRepository(BaseRepository):
    """Repository for execution videos submitted by students."""

    def add(
        self,
        student_id: str,
        exercise_id: str,
        video_url: str,
        notes: str | None = None,
    ) -> str:
        if not video_url:
            raise ValueError("video_url must not be empty")
        if not self.fetch_all("SELECT id FROM exercises WHERE id = ?;", (exercise_id,)):
            raise ValueError("exercise not found")
        video_id = new_id()
        self.execute(
            "INSERT INTO videos (id, student_id, exercise_id, video_url, notes, submitted_at) VALUES (?, ?, ?, ?, ?, ?);",
            (video_id, student_id, exercise_id, video_url, notes, utc_now()),
        )
        return video_id


class CorrectionRepository(BaseRepository):
    """Repository for coach corrections attached to execution videos."""

    KINDS = ("text", "photo", "video")

    def add(
        self,
        video_id: str,
        personal_id: str,
        kind: str,
        content: str | None = None,
        file_url: str | None = None,
    ) -> str:
        if kind not in self.KINDS:
            raise ValueError(f"kind must be one of {', '.join(self.KINDS)}")
        if kind == "text" and not content:
            raise ValueError("text corrections need content")
        if kind != "text" and not file_url:
            raise ValueError(f"{kind} corrections need a file_url")
        if not self.fetch_all("SELECT id FROM videos WHERE id = ?;", (video_id,)):
            raise ValueError("video not found")
        correction_id = new_id()
        self.execute(
            "INSERT INTO corrections (id, video_id, personal_id, kind, content, file_url, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?);",
            (correction_id, video_id, personal_id, kind, content, file_url, utc_now()),
        )
        return correction_id

    def fetch_for_exercise(self, exercise_id: str) -> List[Tuple]:
        return self.fetch_all(
            "SELECT c.id, c.kind, c.content, c.file_url, c.created_at FROM corrections c "
            "JOIN videos v ON v.id = c.video_id WHERE v.exercise_id = ? "
            "ORDER BY c.created_at DESC, c.rowid DESC;",
            (exercise_id,),
        )

    def fetch_for_personal(self, personal_id: str) -> List[Tuple]:
        return self.fetch_all(
            "SELECT c.id, c.video_id, v.exercise_id, v.student_id, c.kind, c.content, c.created_at "
            "FROM corrections c JOIN videos v ON v.id = c.video_id "
            "WHERE c.personal_id = ? ORDER BY c.created_at DESC, c.rowid DESC;",
            (personal_id,),
        )


class WorkoutSessionRepository(BaseRepository):
    """Repository for recorded workout sessions."""

    def create(
        self, training_id: str, student_id: str, started_at: str | None = None
    ) -> str:
        session_id = new_id()
        self.execute(
            "INSERT INTO workout_sessions (id, training_id, student_id, started_at, finished) VALUES (?, ?, ?, ?, 0);",
            (session_id, training_id, student_id, started_at or utc_now()),
        )
        return session_id

    def finish(
        self,
        session_id: str,
        duration_minutes: int,
        ended_at: str | None = None,
        notes: str | None = None,
    ) -> None:
        if duration_minutes < 0:
            raise ValueError("duration_minutes must be non-negative")
        updated = self.execute(
            "UPDATE workout_sessions SET ended_at = ?, duration_minutes = ?, finished = 1, "
            "notes = COALESCE(?, notes) WHERE id = ?;",
            (ended_at or utc_now(), duration_minutes, notes, session_id),
        )
        if not updated:
            raise ValueError("workout session not found")

    def fetch_detail(self, session_id: str) -> dict:
        rows = self.fetch_all(
            "SELECT id, training_id, student_id, started_at, ended_at, duration_minutes, finished, notes "
            "FROM workout_sessions WHERE id = ?;",
            (session_id,),
        )
        if not rows:
            raise ValueError("workout session not found")
        (
            sid,
            training_id,
            student_id,
            started_at,
            ended_at,
            duration,
            finished,
            notes,
        ) = rows[0]
        return {
            "id": sid,
            "training_id": training_id,
            "performer_id": student_id,
            "started_at": started_at,
            "ended_at": ended_at,
            "duration_minutes": duration,
            "finished": bool(finished),
            "notes": notes,
        }

    def fetch_for_student(
        self, student_id: str, limit: int | None = None
    ) -> List[Tuple[str, str, str, Optional[str], Optional[int], int]]:
        query = (
            "SELECT s.id, t.name, s.started_at, s.ended_at, s.duration_minutes, s.finished "
            "FROM workout_sessions s JOIN trainings t ON t.id = s.training_id "
            "WHERE s.student_id = ? ORDER BY s.started_at DESC, s.rowid DESC"
        )
        params: list = [student_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return self.fetch_all(query + ";", tuple(params))


class WorkoutSetRepository(BaseRepository):
    """Repository for sets logged during a workout session."""

    def fetch_for_session(self, session_id: str) -> List[Tuple]:
        return self.fetch_all(
            "SELECT ws.id, ws.exercise_id, e.name, ws.set_number, ws.reps, ws.load, ws.note "
            "FROM workout_sets ws JOIN exercises e ON e.id = ws.exercise_id "
            "WHERE ws.session_id = ? ORDER BY e.position IS NULL, e.position, ws.exercise_id, ws.set_number;",
            (session_id,),
        )

    def count_for_exercise(self, session_id: str, exercise_id: str) -> int:
        rows = self.fetch_all(
            "SELECT COUNT(*) FROM workout_sets WHERE session_id = ? AND exercise_id = ?;",
            (session_id, exercise_id),
        )
        return int(rows[0][0])


class AsyncTrainingRepository(AsyncBaseRepository):
    """Async reads of a student's active training with its exercises."""

    async def fetch_active(
        self, student_id: str, training_id: str | None = None
    ) -> Optional[Tuple[str, str, Optional[str]]]:
        query = "SELECT id, name, notes FROM trainings WHERE student_id = ? AND active = 1"
        params: list = [student_id]
        if training_id is not None:
            query += " AND id = ?"
            params.append(training_id)
        query += " ORDER BY created_at DESC, rowid DESC LIMIT 1;"
        rows = await self.fetch_all(query, tuple(params))
        return rows[0] if rows else None

    async def fetch_exercises(self, training_id: str) -> List[Tuple]:
        return await self.fetch_all(
            "SELECT id, name, sets, reps, rest, notes, demo_video_url, position FROM exercises "
            "WHERE training_id = ? ORDER BY position IS NULL, position, rowid;",
            (training_id,),
        )

    async def fetch_corrections(self, training_id: str) -> List[Tuple]:
        return await self.fetch_all(
            "SELECT v.exercise_id, c.id, c.kind, c.content, c.file_url, c.created_at "
            "FROM corrections c JOIN videos v ON v.id = c.video_id "
            "JOIN exercises e ON e.id = v.exercise_id WHERE e.training_id = ? "
            "ORDER BY c.created_at DESC, c.rowid DESC;",
            (training_id,),
        )


class AsyncWorkoutSessionRepository(AsyncBaseRepository):
    """Async repository for creating and finishing workout sessions."""

    async def create(self, training_id: str, student_id: str, started_at: str) -> str:
        session_id = new_id()
        await self.execute(
            "INSERT INTO workout_sessions (id, training_id, student_id, started_at, finished) VALUES (?, ?, ?, ?, 0);",
            (session_id, training_id, student_id, started_at),
        )
        return session_id

    async def finish(
        self,
        session_id: str,
        duration_minutes: int,
        ended_at: str,
        notes: str | None = None,
    ) -> None:
        updated = await self.execute(
            "UPDATE workout_sessions SET ended_at = ?, duration_minutes = ?, finished = 1, "
            "notes = COALESCE(?, notes) WHERE id = ?;",
            (ended_at, duration_minutes, notes, session_id),
        )
        if not updated:
            raise ValueError("workout session not found")


class AsyncWorkoutSetRepository(AsyncBaseRepository):
    """Async repository for appending logged sets."""

    async def add(
        self,
        session_id: str,
        exercise_id: str,
        set_number: int,
        reps: int,
        load: float,
        note: str | None = None,
    ) -> str:
        if reps < 0:
            raise ValueError("reps must be non-negative")
        if load < 0:
            raise ValueError("load must be non-negative")
        set_id = new_id()
        await self.execute(
            "INSERT INTO workout_sets (id, session_id, exercise_id, set_number, reps, load, note, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
            (set_id, session_id, exercise_id, set_number, reps, load, note, utc_now()),
        )
        return set_id

    async def fetch_for_exercise(self, session_id: str, exercise_id: str) -> List[Tuple]:
        return await self.fetch_all(
            "SELECT id, set_number, reps, load, note FROM workout_sets "
            "WHERE session_id = ? AND exercise_id = ? ORDER BY set_number;",
            (session_id, exercise_id),
        )


class SettingsRepository(BaseRepository):
    """Repository for general application settings synchronized with YAML."""

    FLOAT_KEYS = {"load_increment", "clock_interval", "request_timeout"}
    INT_KEYS = {"rep_increment", "corrections_shown"}

    def __init__(
        self, db_path: str = "coach.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | int | str] = {}
        for k, v in rows:
            try:
                if k in self.FLOAT_KEYS:
                    result[k] = float(v)
                    continue
                if k in self.INT_KEYS:
                    result[k] = int(float(v))
                    continue
            except ValueError:
                pass
            result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, str(value)),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

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

    def set_text(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()
