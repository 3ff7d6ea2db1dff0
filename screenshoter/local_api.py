import asyncio
import itertools
import time
from typing import Any, Mapping, Optional, Protocol

from common.logger import get_logger
from storage.filesystem import Storage
from tracking.models import JobId, JobRecord, JobRequest, JobStatus

_DETAIL_FIELDS = {
    0: ("id", "status", "original_url"),
    1: ("url", "error"),
    2: ("created", "started", "finished", "size"),
}


class Capture(Protocol):
    async def take(self, url: str, options: Optional[Mapping[str, Any]] = None) -> bytes:
        ...


class LocalScreenshotApi:
    """In-process screenshot service.

    Jobs are queued on creation and captured in background tasks, so they
    go through `queued` and `processing` before `finished` or `error` just
    like jobs of a remote provider.
    """

    def __init__(self, capture: Capture, storage: Storage) -> None:
        self._logger = get_logger(__name__)
        self._capture = capture
        self._storage = storage
        self._ids = itertools.count(1)
        self._jobs: dict[int, JobRecord] = {}
        self._tasks: set[asyncio.Task] = set()

    async def create_job(self, request: JobRequest) -> JobRecord:
        if request.options.get("cache"):
            cached = self._find_finished(request.url)
            if cached is not None:
                self._logger.info("Serving screenshot %s of %s from cache", cached.id, request.url)
                return self._view(cached, request.detail_level)

        job_id = next(self._ids)
        record = JobRecord(
            id=job_id,
            status=JobStatus.QUEUED.value,
            url=request.url,
            created=time.time(),
        )
        self._jobs[job_id] = record

        task = asyncio.ensure_future(self._run_job(job_id, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        self._logger.info("Screenshot %s of %s queued", job_id, request.url)
        return self._view(record, request.detail_level)

    async def get_job_status(self, job_id: JobId, details: int = 0) -> JobRecord:
        record = self._jobs.get(self._key(job_id))
        if record is None:
            return JobRecord(id=job_id, status=JobStatus.ERROR.value, error="Screenshot not found")

        return self._view(record, details)

    async def fetch_thumbnail_to_file(
            self,
            job_id: JobId,
            file_path: str,
            options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        if not self._is_finished(job_id):
            return ""

        return await asyncio.to_thread(self._storage.copy_to, str(job_id), file_path)

    async def fetch_thumbnail(
            self,
            job_id: JobId,
            options: Optional[Mapping[str, Any]] = None,
    ) -> bytes:
        if not self._is_finished(job_id):
            return b""

        return await asyncio.to_thread(self._storage.load, str(job_id))

    async def close(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_job(self, job_id: int, request: JobRequest) -> None:
        self._update(job_id, status=JobStatus.PROCESSING.value, started=time.time())

        try:
            image = await self._capture.take(request.url, request.options)
            await asyncio.to_thread(self._storage.save, str(job_id), image)
        except Exception as exc:
            error_msg = f"{type(exc).__name__}: {exc}"
            self._logger.exception("Exception during screenshot capture: %s", error_msg)
            self._update(job_id, status=JobStatus.ERROR.value, error=error_msg, finished=time.time())
            return

        self._update(job_id, status=JobStatus.FINISHED.value, finished=time.time(), size=len(image))
        self._logger.info("Screenshot %s finished", job_id)

    def _update(self, job_id: int, **changes: Any) -> None:
        self._jobs[job_id] = JobRecord.model_validate({**self._jobs[job_id].model_dump(), **changes})

    def _find_finished(self, url: str) -> Optional[JobRecord]:
        for record in reversed(list(self._jobs.values())):
            if record.status == JobStatus.FINISHED.value and getattr(record, "url", None) == url:
                return record

        return None

    def _is_finished(self, job_id: JobId) -> bool:
        record = self._jobs.get(self._key(job_id))
        return record is not None and record.status == JobStatus.FINISHED.value

    @staticmethod
    def _key(job_id: JobId) -> Any:
        try:
            return int(job_id)
        except (TypeError, ValueError):
            return job_id

    @staticmethod
    def _view(record: JobRecord, details: int) -> JobRecord:
        data = record.model_dump()
        fields = set()
        for level, names in _DETAIL_FIELDS.items():
            if level <= details:
                fields.update(names)

        return JobRecord.model_validate(
            {key: value for key, value in data.items() if key in fields}
        )
