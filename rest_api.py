import contextlib
import datetime
import logging
import sqlite3
import uuid
from fastapi import FastAPI, HTTPException

from config import APP_VERSION
from db import (
    StudentRepository,
    TrainingRepository,
    ExerciseRepository,
    VideoRepository,
    CorrectionRepository,
    WorkoutSessionRepository,
    WorkoutSetRepository,
    SettingsRepository,
)
from errors import InvalidState, LoadError, NotFound, PersistenceError
from session_clock import SessionClock
from set_ledger import SetLedger
from settings_schema import validate_settings
from snapshot_loader import TrainingSnapshotLoader
from workout_engine import ProgressionStateMachine
from workout_schema import SetDraft
from workout_store import SQLiteWorkoutStore

logger = logging.getLogger(__name__)


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidState):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, LoadError):
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, PersistenceError):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, ValueError) and "not found" in str(e):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


class CoachAPI:
    """Provides REST endpoints for coaching and live workouts."""

    def __init__(
        self,
        db_path: str = "coach.db",
        yaml_path: str = "settings.yaml",
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.students = StudentRepository(db_path)
        self.trainings = TrainingRepository(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.videos = VideoRepository(db_path)
        self.corrections = CorrectionRepository(db_path)
        self.sessions = WorkoutSessionRepository(db_path)
        self.sets = WorkoutSetRepository(db_path)
        self.store = SQLiteWorkoutStore(db_path)
        self.loader = TrainingSnapshotLoader(self.store)
        self.views: dict[str, ProgressionStateMachine] = {}
        self.app = FastAPI(
            title="Coach API",
            version=APP_VERSION,
            description="REST API for training prescriptions and live workouts",
            lifespan=self._lifespan,
        )
        self._setup_routes()

    @contextlib.asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        yield
        await self.close_views()

    async def close_views(self) -> None:
        """Tear down every open workout view."""
        for view_id in list(self.views):
            view = self.views.pop(view_id)
            await view.aclose()
        logger.debug("all workout views closed")

    def _view(self, view_id: str) -> ProgressionStateMachine:
        view = self.views.get(view_id)
        if view is None:
            raise HTTPException(status_code=404, detail="workout view not found")
        return view

    def _view_state(self, view_id: str, view: ProgressionStateMachine) -> dict:
        return {
            "id": view_id,
            "training": view.snapshot.model_dump(mode="json"),
            "progress": view.progress().model_dump(mode="json"),
            "sets": {
                ex.id: [s.model_dump(mode="json") for s in view.logged_sets(ex.id)]
                for ex in view.snapshot.exercises
            },
        }

    def _setup_routes(self) -> None:

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.students.fetch_all_students()
                return {
                    "status": "ok",
                    "version": APP_VERSION,
                    "open_workouts": len(self.views),
                }
            except sqlite3.Error as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.post("/students", summary="Create student")
        def create_student(name: str, email: str, personal_id: str | None = None):
            try:
                return {"id": self.students.add(name, email, personal_id)}
            except ValueError as e:
                raise _http_error(e)

        @self.app.get("/students")
        def list_students(personal_id: str | None = None):
            rows = self.students.fetch_all_students(personal_id)
            return [
                {"id": sid, "name": name, "email": email, "personal_id": pid}
                for sid, name, email, pid in rows
            ]

        @self.app.get("/students/{student_id}")
        def get_student(student_id: str):
            try:
                sid, name, email, pid = self.students.fetch_detail(student_id)
            except ValueError as e:
                raise _http_error(e)
            return {"id": sid, "name": name, "email": email, "personal_id": pid}

        @self.app.post(
            "/students/{student_id}/trainings",
            summary="Create training",
            description="Create a training program; an active one replaces the previous active training.",
        )
        def create_training(
            student_id: str,
            name: str,
            notes: str | None = None,
            start_date: str | None = None,
            active: bool = True,
        ):
            if start_date is not None:
                try:
                    datetime.date.fromisoformat(start_date)
                except ValueError:
                    raise HTTPException(
                        status_code=400, detail="start_date must be in YYYY-MM-DD format"
                    )
            try:
                tid = self.trainings.create(student_id, name, notes, start_date, active)
            except ValueError as e:
                raise _http_error(e)
            return {"id": tid}

        @self.app.get("/students/{student_id}/trainings")
        def list_trainings(student_id: str):
            rows = self.trainings.fetch_for_student(student_id)
            return [
                {
                    "id": tid,
                    "name": name,
                    "notes": notes,
                    "start_date": start,
                    "active": bool(active),
                }
                for tid, name, notes, start, active in rows
            ]

        @self.app.get(
            "/students/{student_id}/trainings/active",
            summary="Active training snapshot",
            description="Active training with ordered exercises and their corrections.",
        )
        async def active_training(student_id: str, training_id: str | None = None):
            try:
                snapshot = await self.loader.load(student_id, training_id)
            except (NotFound, LoadError) as e:
                raise _http_error(e)
            return snapshot.model_dump(mode="json")

        @self.app.post("/trainings/{training_id}/activate")
        def activate_training(training_id: str):
            try:
                self.trainings.activate(training_id)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "active"}

        @self.app.post("/trainings/{training_id}/exercises", summary="Add exercise")
        def add_exercise(
            training_id: str,
            name: str,
            sets: int,
            reps: str,
            rest: str | None = None,
            notes: str | None = None,
            demo_video_url: str | None = None,
            position: int | None = None,
        ):
            try:
                eid = self.exercises.add(
                    training_id, name, sets, reps, rest, notes, demo_video_url, position
                )
            except ValueError as e:
                raise _http_error(e)
            return {"id": eid}

        @self.app.get("/trainings/{training_id}/exercises")
        def list_exercises(training_id: str):
            rows = self.exercises.fetch_for_training(training_id)
            return [
                {
                    "id": eid,
                    "name": name,
                    "sets": sets,
                    "reps": reps,
                    "rest": rest,
                    "notes": notes,
                    "demo_video_url": url,
                    "position": position,
                }
                for eid, name, sets, reps, rest, notes, url, position in rows
            ]

        @self.app.post("/exercises/{exercise_id}/videos", summary="Submit execution video")
        def submit_video(
            exercise_id: str, student_id: str, video_url: str, notes: str | None = None
        ):
            try:
                vid = self.videos.add(student_id, exercise_id, video_url, notes)
            except ValueError as e:
                raise _http_error(e)
            return {"id": vid}

        @self.app.post("/videos/{video_id}/corrections", summary="Correct a video")
        def add_correction(
            video_id: str,
            personal_id: str,
            kind: str,
            content: str | None = None,
            file_url: str | None = None,
        ):
            try:
                cid = self.corrections.add(video_id, personal_id, kind, content, file_url)
            except ValueError as e:
                raise _http_error(e)
            return {"id": cid}

        @self.app.get("/exercises/{exercise_id}/corrections")
        def exercise_corrections(exercise_id: str, limit: int | None = None):
            rows = self.corrections.fetch_for_exercise(exercise_id)
            if limit is not None:
                rows = rows[:limit]
            return [
                {
                    "id": cid,
                    "kind": kind,
                    "content": content,
                    "file_url": file_url,
                    "created_at": created,
                }
                for cid, kind, content, file_url, created in rows
            ]

        @self.app.get("/personals/{personal_id}/corrections")
        def correction_inbox(personal_id: str):
            rows = self.corrections.fetch_for_personal(personal_id)
            return [
                {
                    "id": cid,
                    "video_id": vid,
                    "exercise_id": eid,
                    "student_id": sid,
                    "kind": kind,
                    "content": content,
                    "created_at": created,
                }
                for cid, vid, eid, sid, kind, content, created in rows
            ]

        @self.app.post(
            "/workout_sessions",
            summary="Create workout session",
            description="Record the start of a workout session.",
        )
        def create_session(
            training_id: str, student_id: str, started_at: str | None = None
        ):
            try:
                training = self.trainings.fetch_detail(training_id)
            except ValueError as e:
                raise _http_error(e)
            if training[1] != student_id:
                raise HTTPException(
                    status_code=400, detail="training belongs to another student"
                )
            sid = self.sessions.create(training_id, student_id, started_at)
            return {"id": sid}

        @self.app.post(
            "/workout_sessions/{session_id}/sets",
            summary="Log set",
            description="Append the next set of an exercise to a running session.",
        )
        async def log_set(
            session_id: str,
            exercise_id: str,
            set_number: int,
            reps: int,
            load: float = 0.0,
            note: str | None = None,
        ):
            try:
                detail = self.sessions.fetch_detail(session_id)
            except ValueError as e:
                raise _http_error(e)
            if detail["finished"]:
                raise HTTPException(status_code=409, detail="workout session finished")
            try:
                exercise = self.exercises.fetch_detail(exercise_id)
            except ValueError as e:
                raise _http_error(e)
            if exercise[1] != detail["training_id"]:
                raise HTTPException(
                    status_code=409, detail="exercise is not part of the session's training"
                )
            expected = self.sets.count_for_exercise(session_id, exercise_id) + 1
            if set_number != expected:
                raise HTTPException(
                    status_code=409, detail=f"expected set number {expected}"
                )
            try:
                set_id = await self.store.append_logged_set(
                    session_id, exercise_id, set_number, reps, load, note
                )
            except ValueError as e:
                raise _http_error(e)
            except sqlite3.IntegrityError as e:
                raise HTTPException(status_code=409, detail=str(e))
            return {"id": set_id}

        @self.app.put("/workout_sessions/{session_id}/finish")
        def finish_session(
            session_id: str,
            duration_minutes: int,
            ended_at: str | None = None,
            notes: str | None = None,
        ):
            try:
                self.sessions.finish(session_id, duration_minutes, ended_at, notes)
            except ValueError as e:
                raise _http_error(e)
            return {"status": "finished"}

        @self.app.get("/workout_sessions/{session_id}")
        def get_session(session_id: str):
            try:
                detail = self.sessions.fetch_detail(session_id)
            except ValueError as e:
                raise _http_error(e)
            detail["sets"] = [
                {
                    "id": set_id,
                    "exercise_id": eid,
                    "exercise": name,
                    "set_number": number,
                    "reps": reps,
                    "load": load,
                    "note": note,
                }
                for set_id, eid, name, number, reps, load, note in self.sets.fetch_for_session(
                    session_id
                )
            ]
            return detail

        @self.app.get(
            "/students/{student_id}/workout_sessions",
            summary="Workout history",
        )
        def session_history(student_id: str, limit: int | None = None):
            rows = self.sessions.fetch_for_student(student_id, limit)
            return [
                {
                    "id": sid,
                    "training": name,
                    "started_at": started,
                    "ended_at": ended,
                    "duration_minutes": duration,
                    "finished": bool(finished),
                }
                for sid, name, started, ended, duration, finished in rows
            ]

        @self.app.post(
            "/active_workouts",
            summary="Open workout view",
            description="Load the active training of a student into a live workout view.",
        )
        async def open_workout(student_id: str, training_id: str | None = None):
            try:
                clock = SessionClock(self.settings.get_float("clock_interval", 1.0))
                ledger = SetLedger(
                    self.store,
                    self.settings.get_int("rep_increment", 1),
                    self.settings.get_float("load_increment", 2.5),
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=f"invalid settings: {e}")
            try:
                view = await ProgressionStateMachine.load(
                    self.store, student_id, training_id, clock=clock, ledger=ledger
                )
            except (NotFound, LoadError) as e:
                raise _http_error(e)
            view_id = uuid.uuid4().hex
            self.views[view_id] = view
            return self._view_state(view_id, view)

        @self.app.get("/active_workouts/{view_id}")
        def get_workout(view_id: str):
            return self._view_state(view_id, self._view(view_id))

        @self.app.post("/active_workouts/{view_id}/start")
        async def start_workout(view_id: str):
            view = self._view(view_id)
            try:
                await view.start()
            except (InvalidState, PersistenceError) as e:
                raise _http_error(e)
            return view.progress().model_dump(mode="json")

        @self.app.put("/active_workouts/{view_id}/draft")
        def update_draft(
            view_id: str,
            reps: int | None = None,
            load: float | None = None,
            note: str | None = None,
            reps_steps: int = 0,
            load_steps: int = 0,
        ):
            view = self._view(view_id)
            try:
                view.update_draft(reps, load, note)
                draft = view.adjust_draft(reps_steps, load_steps)
            except (InvalidState, ValueError) as e:
                raise _http_error(e)
            return draft.model_dump(mode="json")

        @self.app.post("/active_workouts/{view_id}/sets", summary="Confirm set")
        async def confirm_set(
            view_id: str,
            exercise_id: str,
            reps: int | None = None,
            load: float | None = None,
            note: str | None = None,
        ):
            view = self._view(view_id)
            try:
                draft = None
                if reps is not None or load is not None or note is not None:
                    draft = view.draft.model_copy()
                    if reps is not None:
                        draft.reps = reps
                    if load is not None:
                        draft.load = load
                    if note is not None:
                        draft.note = note
                logged = await view.confirm_set(exercise_id, draft)
            except (InvalidState, PersistenceError, ValueError) as e:
                raise _http_error(e)
            return logged.model_dump(mode="json")

        @self.app.post("/active_workouts/{view_id}/advance")
        async def advance_workout(view_id: str):
            view = self._view(view_id)
            try:
                await view.advance()
            except InvalidState as e:
                raise _http_error(e)
            return view.progress().model_dump(mode="json")

        @self.app.post("/active_workouts/{view_id}/pause")
        def pause_workout(view_id: str):
            view = self._view(view_id)
            try:
                view.pause()
            except InvalidState as e:
                raise _http_error(e)
            return view.progress().model_dump(mode="json")

        @self.app.post("/active_workouts/{view_id}/resume")
        def resume_workout(view_id: str):
            view = self._view(view_id)
            try:
                view.resume()
            except InvalidState as e:
                raise _http_error(e)
            return view.progress().model_dump(mode="json")

        @self.app.post("/active_workouts/{view_id}/finish")
        async def finish_workout(view_id: str, notes: str | None = None):
            view = self._view(view_id)
            try:
                session = await view.finish(notes)
            except (InvalidState, PersistenceError) as e:
                raise _http_error(e)
            return session.model_dump(mode="json")

        @self.app.delete("/active_workouts/{view_id}")
        async def close_workout(view_id: str):
            view = self._view(view_id)
            self.views.pop(view_id, None)
            await view.aclose()
            return {"status": "closed"}

        @self.app.get("/settings/general")
        def get_general_settings():
            return self.settings.all_settings()

        @self.app.post("/settings/general")
        def update_general_settings(
            weight_unit: str = None,
            load_increment: float = None,
            rep_increment: int = None,
            clock_interval: float = None,
            corrections_shown: int = None,
            api_base_url: str = None,
            request_timeout: float = None,
            log_level: str = None,
        ):
            updates = {
                k: v
                for k, v in {
                    "weight_unit": weight_unit,
                    "load_increment": load_increment,
                    "rep_increment": rep_increment,
                    "clock_interval": clock_interval,
                    "corrections_shown": corrections_shown,
                    "api_base_url": api_base_url,
                    "request_timeout": request_timeout,
                    "log_level": log_level,
                }.items()
                if v is not None
            }
            try:
                validate_settings(updates)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            for key, value in updates.items():
                self.settings.set_text(key, str(value))
            return {"status": "updated"}


if __name__ == "__main__":
    import uvicorn

    api = CoachAPI()
    logging.basicConfig(level=api.settings.get_text("log_level", "INFO").upper())
    uvicorn.run(api.app)
