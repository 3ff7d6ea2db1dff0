from typing import Optional, Union

from tracking.models import JobId


class ScreenshotEventsError(Exception):
    pass


class ThumbnailError(ScreenshotEventsError):
    """A thumbnail could not be fetched.

    `value` identifies the failed request: the target file name for a
    save-to-file fetch, the (empty) image payload for an in-memory fetch.
    """

    def __init__(self, value: Union[str, bytes], job_id: Optional[JobId] = None) -> None:
        self.value = value
        self.job_id = job_id
        super().__init__(f"Failed to fetch thumbnail of screenshot {job_id}: {value!r}")
