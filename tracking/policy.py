import asyncio
import time
from enum import Enum
from typing import Any, Callable, Coroutine, Optional

from common.logger import get_logger
from tracking.models import JobRecord, JobStatus, Notification
from tracking.settings import TrackerSettings
from tracking.stream import NotificationStream, event_name

Clock = Callable[[], float]

TERMINAL_STATUSES = frozenset({JobStatus.FINISHED.value, JobStatus.ERROR.value})


class SessionState(str, Enum):
    ACTIVE = "active"
    TERMINAL = "terminal"


def is_terminal(status: Any) -> bool:
    return event_name(status) in TERMINAL_STATUSES


def notification_for(status: Any) -> str:
    status = event_name(status)
    if status == JobStatus.ERROR.value:
        return Notification.FAILED.value

    return status


class TrackerSession:
    """One run of polling for a single request or a batch.

    The session owns the stream it feeds. Once it turns TERMINAL nothing
    else is emitted, the stream is closed and the polling tasks are
    cancelled.
    """

    def __init__(
            self,
            stream: NotificationStream,
            settings: TrackerSettings,
            clock: Clock = time.monotonic,
    ) -> None:
        self._logger = get_logger(__name__)
        self.stream = stream
        self.settings = settings
        self._clock = clock
        self.started_at = clock()
        self.state = SessionState.ACTIVE
        self.records: list[JobRecord] = []
        self._tasks: set[asyncio.Task] = set()

        stream.bind_cancel(self.abandon)

    @property
    def active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def elapsed_ms(self) -> float:
        return (self._clock() - self.started_at) * 1000

    def timed_out(self) -> bool:
        return self.elapsed_ms() >= self.settings.timeout * 1000

    def add_record(self, record: JobRecord) -> int:
        """Track a record and return its position in the collection."""
        self.records.append(record)
        return len(self.records) - 1

    def merge_record(self, update: JobRecord) -> Optional[JobRecord]:
        """Merge a polled record into every tracked record with the same id."""
        merged = None
        for index, record in enumerate(self.records):
            if record.id == update.id:
                merged = self.records[index] = record.merge(update)

        return merged

    def notify(self, name: Any, payload: Any) -> bool:
        if not self.active:
            return False

        self.stream.emit(name, payload)
        return True

    def finish(self, name: Any, payload: Any) -> bool:
        """Emit the terminal notification. Only the first call has an effect."""
        if not self.active:
            return False

        self.state = SessionState.TERMINAL
        self.stream.emit(name, payload)
        self._terminate(name, payload)

        return True

    def abandon(self) -> bool:
        if not self.active:
            return False

        self.state = SessionState.TERMINAL
        self._logger.info("Tracking session abandoned after %.0f ms", self.elapsed_ms())
        self._terminate(None, None)

        return True

    def track(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

        return task

    def _terminate(self, name: Any, payload: Any) -> None:
        self.stream.close(name, payload)

        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)

        if not task.cancelled() and task.exception() is not None:
            self._logger.error("Screenshot polling stopped on error", exc_info=task.exception())

        # nothing left that could emit a terminal notification
        if self.active and not self._tasks:
            self._logger.warning("No screenshot left to poll")
            self.abandon()
