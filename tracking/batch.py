import asyncio
import time
from typing import Any, Iterable, Mapping, Optional, Union

from common.logger import get_logger
from tracking.api import ScreenshotApi
from tracking.models import JobRecord, JobRequest, Notification
from tracking.policy import Clock, TrackerSession, is_terminal, notification_for
from tracking.settings import TrackerSettings
from tracking.stream import NotificationStream


class BatchTracker:
    """Submits several screenshots at once and polls each of them.

    Every request is a separate job, so requests may carry different
    settings. Per-job notifications are the same as for `JobTracker`;
    in addition the batch emits, at most once, either `complete` with all
    records when every job is done, or `timeout` with the current records
    when the first job outlives the timeout.
    """

    def __init__(
            self,
            api: ScreenshotApi,
            settings: TrackerSettings,
            clock: Clock = time.monotonic,
    ) -> None:
        self._logger = get_logger(__name__)
        self._api = api
        self._settings = settings
        self._clock = clock

    def create_multiple(
            self,
            requests: Iterable[Union[JobRequest, Mapping[str, Any]]],
            common: Optional[Mapping[str, Any]] = None,
    ) -> NotificationStream:
        common = dict(common or {})
        prepared = [JobRequest.merged_over(common, request) for request in requests]

        details = max(
            [int(common.get("details") or 0)] + [request.detail_level for request in prepared]
        )

        stream = NotificationStream()
        session = TrackerSession(stream, self._settings, self._clock)

        self._logger.info("Requesting %d screenshots", len(prepared))
        for request in prepared:
            session.track(self._run(session, request, details, len(prepared)))

        return stream

    async def _run(
            self,
            session: TrackerSession,
            request: JobRequest,
            details: int,
            expected: int,
    ) -> None:
        record = await self._api.create_job(request)
        if not session.active:
            return

        # requests may share a job id; each task reads its own entry
        index = session.add_record(record.tagged(request.correlation_tag))
        record = session.records[index]

        while True:
            if self._handle(session, record, expected):
                return

            await asyncio.sleep(session.settings.interval)
            if not session.active:
                return

            update = await self._api.get_job_status(record.id, details=details)
            if not session.active:
                return

            session.merge_record(update)
            record = session.records[index]

    def _handle(self, session: TrackerSession, record: JobRecord, expected: int) -> bool:
        self._logger.debug("Screenshot %s: %s", record.id, record.status)
        session.notify(notification_for(record.status), record)

        if is_terminal(record.status):
            self._check_completed(session, expected)
            return True

        if session.timed_out():
            self._logger.info(
                "Screenshot %s timed out after %.0f ms, abandoning the batch",
                record.id, session.elapsed_ms(),
            )
            session.finish(Notification.TIMEOUT, list(session.records))
            return True

        return False

    def _check_completed(self, session: TrackerSession, expected: int) -> bool:
        complete = True
        for record in session.records:
            if not is_terminal(record.status):
                complete = False
                self._logger.debug("Screenshot %s is not finished: %s", record.id, record.status)

        # all submissions must have answered, some may still be in flight
        if complete and len(session.records) == expected:
            self._logger.info("All %d screenshots are complete", expected)
            session.finish(Notification.COMPLETE, list(session.records))

        return complete
