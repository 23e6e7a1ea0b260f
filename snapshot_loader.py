import logging
from typing import Optional

from errors import LoadError, NotFound
from workout_schema import CorrectionEntry, ExercisePrescription, TrainingSnapshot
from workout_store import WorkoutStore

logger = logging.getLogger(__name__)


def recent_corrections(
    exercise: ExercisePrescription, limit: int = 3
) -> list[CorrectionEntry]:
    """Return the newest ``limit`` corrections of ``exercise``."""
    ordered = sorted(exercise.corrections, key=lambda c: c.created_at, reverse=True)
    return ordered[: max(limit, 0)]


class TrainingSnapshotLoader:
    """Fetches a performer's active training and freezes it for a session."""

    def __init__(self, store: WorkoutStore) -> None:
        self.store = store

    async def load(
        self, performer_id: str, training_id: Optional[str] = None
    ) -> TrainingSnapshot:
        try:
            snapshot = await self.store.load_active_training(performer_id, training_id)
        except NotFound:
            logger.info("no active training for performer %s", performer_id)
            raise
        except Exception as e:
            logger.warning("loading training for %s failed: %s", performer_id, e)
            raise LoadError(str(e)) from e
        if snapshot is None:
            raise NotFound(f"no active training for performer {performer_id}")
        ordered = sorted(
            snapshot.exercises,
            key=lambda ex: (ex.position is None, ex.position or 0),
        )
        logger.info(
            "loaded training %s with %d exercises", snapshot.id, len(ordered)
        )
        return snapshot.model_copy(update={"exercises": tuple(ordered)})
