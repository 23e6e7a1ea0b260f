import datetime
import logging
from typing import Optional

from errors import InvalidState, PersistenceError
from workout_schema import WorkoutSession
from workout_store import WorkoutStore

logger = logging.getLogger(__name__)


class SessionRecorder:
    """Creates the session record at start and finalizes it at finish."""

    def __init__(self, store: WorkoutStore) -> None:
        self.store = store
        self.session: Optional[WorkoutSession] = None

    async def create_session(self, training_id: str, performer_id: str) -> str:
        started_at = datetime.datetime.now(datetime.timezone.utc)
        try:
            session_id = await self.store.create_workout_session(
                training_id, performer_id, started_at
            )
        except Exception as e:
            logger.warning("creating session for training %s failed: %s", training_id, e)
            raise PersistenceError(str(e)) from e
        self.session = WorkoutSession(
            id=session_id,
            training_id=training_id,
            performer_id=performer_id,
            started_at=started_at,
        )
        logger.info("session %s started for performer %s", session_id, performer_id)
        return session_id

    async def finalize_session(
        self, session_id: str, elapsed_seconds: int, notes: Optional[str] = None
    ) -> WorkoutSession:
        if elapsed_seconds < 0:
            raise ValueError("elapsed_seconds must be non-negative")
        if self.session is None:
            raise InvalidState("no session has been created")
        if self.session.id != session_id:
            raise InvalidState(f"recorder holds session {self.session.id}, not {session_id}")
        duration_minutes = int(elapsed_seconds) // 60
        ended_at = datetime.datetime.now(datetime.timezone.utc)
        try:
            await self.store.finalize_workout_session(
                session_id, duration_minutes, ended_at, notes
            )
        except Exception as e:
            logger.warning("finalizing session %s failed: %s", session_id, e)
            raise PersistenceError(str(e)) from e
        self.session = self.session.model_copy(
            update={
                "ended_at": ended_at,
                "duration_minutes": duration_minutes,
                "finished": True,
                "notes": notes if notes is not None else self.session.notes,
            }
        )
        logger.info("session %s finished after %d min", session_id, duration_minutes)
        return self.session
