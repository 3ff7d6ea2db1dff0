import time
from typing import Any, Iterable, Mapping, Optional, Union

from common.logger import get_logger
from tracking.api import ScreenshotApi
from tracking.batch import BatchTracker
from tracking.errors import ThumbnailError
from tracking.models import JobId, JobRequest
from tracking.policy import Clock
from tracking.settings import TrackerSettings
from tracking.stream import NotificationStream
from tracking.tracker import JobTracker


class ScreenshotEvents:
    """Event-driven access to a screenshot service.

    Each `create`/`create_multiple` call starts an independent tracking
    session that uses the settings current at the time of the call.
    """

    def __init__(
            self,
            api: ScreenshotApi,
            settings: Optional[TrackerSettings] = None,
            clock: Clock = time.monotonic,
    ) -> None:
        self._logger = get_logger(__name__)
        self.api = api
        self.settings = settings or TrackerSettings()
        self._clock = clock

    def set_defaults(
            self,
            timeout: Optional[float] = None,
            interval: Optional[float] = None,
    ) -> TrackerSettings:
        self.settings = self.settings.updated(timeout=timeout, interval=interval)
        self._logger.debug(
            "Tracking defaults: timeout=%ss interval=%ss",
            self.settings.timeout, self.settings.interval,
        )

        return self.settings

    def create(self, request: Union[JobRequest, Mapping[str, Any]]) -> NotificationStream:
        return JobTracker(self.api, self.settings, self._clock).create(request)

    def create_multiple(
            self,
            requests: Iterable[Union[JobRequest, Mapping[str, Any]]],
            common: Optional[Mapping[str, Any]] = None,
    ) -> NotificationStream:
        return BatchTracker(self.api, self.settings, self._clock).create_multiple(requests, common)

    async def save_thumbnail(
            self,
            job_id: JobId,
            file_path: str,
            options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        filename = await self.api.fetch_thumbnail_to_file(job_id, file_path, dict(options or {}))
        if filename == "":
            raise ThumbnailError(file_path, job_id=job_id)

        return filename

    async def thumbnail(
            self,
            job_id: JobId,
            options: Optional[Mapping[str, Any]] = None,
    ) -> bytes:
        image = await self.api.fetch_thumbnail(job_id, dict(options or {}))
        if not image:
            raise ThumbnailError(image, job_id=job_id)

        return image
