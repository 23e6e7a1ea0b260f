import asyncio
import contextlib
import logging

from errors import InvalidState

logger = logging.getLogger(__name__)


def format_elapsed(seconds: int) -> str:
    """Return ``seconds`` as ``MM:SS``."""
    mins, secs = divmod(int(seconds), 60)
    return f"{mins:02d}:{secs:02d}"


class SessionClock:
    """Elapsed-time counter for an active workout.

    A single background task calls :meth:`tick` once per ``interval`` while
    the clock exists. Pausing only makes ticks no-ops; the task keeps running
    until :meth:`stop` or :meth:`close` tears it down. Use the clock as an
    async context manager so the task is cancelled on every exit path.
    """

    def __init__(self, interval: float = 1.0) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self._elapsed = 0
        self._running = False
        self._started = False
        self._stopped = False
        self._task: asyncio.Task | None = None

    @property
    def started(self) -> bool:
        return self._started

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def running(self) -> bool:
        return self._running

    @property
    def paused(self) -> bool:
        return self._started and not self._stopped and not self._running

    def elapsed(self) -> int:
        return self._elapsed

    def start(self) -> None:
        if self._started:
            raise InvalidState("clock already started")
        loop = asyncio.get_running_loop()
        self._elapsed = 0
        self._running = True
        self._started = True
        self._task = loop.create_task(self._run())
        logger.debug("clock started with %.2fs interval", self.interval)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.tick()

    def tick(self) -> None:
        if self._running:
            self._elapsed += 1

    def pause(self) -> None:
        self._require_live()
        self._running = False

    def resume(self) -> None:
        self._require_live()
        self._running = True

    def _require_live(self) -> None:
        if not self._started:
            raise InvalidState("clock not started")
        if self._stopped:
            raise InvalidState("clock stopped")

    async def stop(self) -> None:
        """Stop counting and wait for the tick task to finish."""
        task = self._halt()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def close(self) -> None:
        """Cancel the tick task without waiting for it."""
        self._halt()

    def _halt(self) -> asyncio.Task | None:
        self._running = False
        if self._started:
            self._stopped = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("clock stopped at %ss", self._elapsed)
            return task
        return None

    async def __aenter__(self) -> "SessionClock":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
