class WorkoutError(Exception):
    """Base class for failures raised by the active workout engine."""


class NotFound(WorkoutError):
    """No active training or session exists to act on."""


class LoadError(WorkoutError):
    """The training snapshot could not be fetched from the store."""


class InvalidState(WorkoutError):
    """An operation was attempted out of sequence."""


class PersistenceError(WorkoutError):
    """A write to the store failed; in-memory state was left unchanged."""
