from __future__ import annotations

import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

CORRECTION_KINDS = ("text", "photo", "video")


class CorrectionEntry(BaseModel):
    """Coach feedback previously attached to an exercise."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: str
    content: Optional[str] = None
    file_url: Optional[str] = None
    created_at: datetime.datetime

    @field_validator("kind")
    @classmethod
    def _known_kind(cls, value: str) -> str:
        if value not in CORRECTION_KINDS:
            raise ValueError(f"kind must be one of {', '.join(CORRECTION_KINDS)}")
        return value


class ExercisePrescription(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    target_sets: int = Field(ge=0)
    target_reps: str
    rest: Optional[str] = None
    notes: Optional[str] = None
    demo_video_url: Optional[str] = None
    position: Optional[int] = None
    corrections: Tuple[CorrectionEntry, ...] = ()


class TrainingSnapshot(BaseModel):
    """Frozen copy of a training program for the duration of one session."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    notes: Optional[str] = None
    exercises: Tuple[ExercisePrescription, ...] = ()

    def exercise(self, exercise_id: str) -> ExercisePrescription:
        for ex in self.exercises:
            if ex.id == exercise_id:
                return ex
        raise KeyError(exercise_id)


class WorkoutSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    training_id: str
    performer_id: str
    started_at: datetime.datetime
    ended_at: Optional[datetime.datetime] = None
    duration_minutes: Optional[int] = None
    finished: bool = False
    notes: Optional[str] = None


class LoggedSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    session_id: str
    exercise_id: str
    set_number: int = Field(ge=1)
    reps: int = Field(ge=0)
    load: float = Field(ge=0)
    note: Optional[str] = None


class SetDraft(BaseModel):
    """The set currently being entered; ``set_number`` is for display only."""

    model_config = ConfigDict(validate_assignment=True)

    set_number: int = 1
    reps: int = 0
    load: float = 0.0
    note: Optional[str] = None

    @field_validator("reps")
    @classmethod
    def _reps_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("reps must be non-negative")
        return value

    @field_validator("load")
    @classmethod
    def _load_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("load must be non-negative")
        return value


class SessionProgress(BaseModel):
    status: str
    cursor: int
    exercise_count: int
    current_exercise_id: Optional[str] = None
    logged_counts: dict[str, int] = {}
    elapsed_seconds: int = 0
    formatted_time: str = "00:00"
    paused: bool = False
    draft: Optional[SetDraft] = None
    session_id: Optional[str] = None
    can_advance: bool = False
    can_finish: bool = False
    progress: float = 0.0
