import asyncio
import time
from typing import Any, Mapping, Union

from common.logger import get_logger
from tracking.api import ScreenshotApi
from tracking.models import JobRecord, JobRequest, Notification
from tracking.policy import Clock, TrackerSession, is_terminal, notification_for
from tracking.settings import TrackerSettings
from tracking.stream import NotificationStream


class JobTracker:
    """Submits one screenshot and polls it until it is done.

    Notifications: the provider status of every response (`queued`,
    `processing`, `finished`, ...), `failed` instead of `error`, and
    `timeout` when the job outlives the configured timeout.
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

    def create(self, request: Union[JobRequest, Mapping[str, Any]]) -> NotificationStream:
        if not isinstance(request, JobRequest):
            request = JobRequest.model_validate(request)

        stream = NotificationStream()
        session = TrackerSession(stream, self._settings, self._clock)
        session.track(self._run(session, request))

        return stream

    async def _run(self, session: TrackerSession, request: JobRequest) -> None:
        self._logger.info("Requesting screenshot of %s", request.url)

        record = await self._api.create_job(request)
        record = record.tagged(request.correlation_tag)

        while session.active:
            if self._handle(session, record):
                return

            await asyncio.sleep(session.settings.interval)
            if not session.active:
                return

            update = await self._api.get_job_status(record.id, details=request.detail_level)
            record = record.merge(update)

    def _handle(self, session: TrackerSession, record: JobRecord) -> bool:
        name = notification_for(record.status)
        self._logger.debug("Screenshot %s: %s", record.id, record.status)

        if is_terminal(record.status):
            self._logger.info("Screenshot %s is %s", record.id, name)
            session.finish(name, record)
            return True

        session.notify(name, record)

        if session.timed_out():
            self._logger.info(
                "Screenshot %s timed out after %.0f ms", record.id, session.elapsed_ms()
            )
            session.finish(Notification.TIMEOUT, record)
            return True

        return False
