from typing import Any, Mapping, Optional, Protocol

from tracking.models import JobId, JobRecord, JobRequest


class ScreenshotApi(Protocol):
    """Client of the remote screenshot service consumed by the trackers.

    Communication failures are the implementation's concern; every call is
    expected to resolve with a well-formed value.
    """

    async def create_job(self, request: JobRequest) -> JobRecord:
        ...

    async def get_job_status(self, job_id: JobId, details: int = 0) -> JobRecord:
        ...

    async def fetch_thumbnail_to_file(
            self,
            job_id: JobId,
            file_path: str,
            options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Return the written file name, or an empty string on failure."""
        ...

    async def fetch_thumbnail(
            self,
            job_id: JobId,
            options: Optional[Mapping[str, Any]] = None,
    ) -> bytes:
        """Return the image, or empty bytes on failure."""
        ...
