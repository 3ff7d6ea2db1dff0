"""Pytest configuration and shared fixtures."""

import asyncio
from typing import Any, Mapping, Optional

import pytest

from tracking.models import JobRecord, JobRequest


class TickingClock:
    """Monotonic clock advancing by `step` seconds on every reading."""

    def __init__(self, step: float = 0.0) -> None:
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        now = self.now
        self.now += self.step
        return now


class FakeScreenshotApi:
    """Scripted screenshot service.

    `scripts` maps a URL to the statuses returned by the creation call and
    then by each poll; the last status repeats forever.
    """

    def __init__(
            self,
            scripts: Mapping[str, list[str]],
            create_delays: Optional[Mapping[str, float]] = None,
            job_ids: Optional[Mapping[str, int]] = None,
    ) -> None:
        self.scripts = {url: list(statuses) for url, statuses in scripts.items()}
        self.create_delays = dict(create_delays or {})
        self.job_ids = dict(job_ids or {})
        self.created: list[JobRequest] = []
        self.polls: list[tuple[Any, int]] = []
        self.files: dict[Any, str] = {}
        self.images: dict[Any, bytes] = {}
        self._statuses: dict[int, list[str]] = {}

    async def create_job(self, request: JobRequest) -> JobRecord:
        self.created.append(request)
        job_id = self.job_ids.get(request.url, len(self.created))
        self._statuses[job_id] = list(self.scripts[request.url])

        delay = self.create_delays.get(request.url)
        if delay:
            await asyncio.sleep(delay)

        return JobRecord(id=job_id, status=self._next(job_id), url=request.url)

    async def get_job_status(self, job_id: Any, details: int = 0) -> JobRecord:
        self.polls.append((job_id, details))
        return JobRecord(id=job_id, status=self._next(job_id))

    async def fetch_thumbnail_to_file(self, job_id, file_path, options=None) -> str:
        return self.files.get(job_id, "")

    async def fetch_thumbnail(self, job_id, options=None) -> bytes:
        return self.images.get(job_id, b"")

    def _next(self, job_id: int) -> str:
        statuses = self._statuses[job_id]
        return statuses.pop(0) if len(statuses) > 1 else statuses[0]


class Recorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def __call__(self, name: str, payload: Any) -> None:
        self.events.append((name, payload))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()
