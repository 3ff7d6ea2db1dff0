from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

JobId = Union[int, str]


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    FINISHED = "finished"
    ERROR = "error"


class Notification(str, Enum):
    FINISHED = "finished"
    FAILED = "failed"
    TIMEOUT = "timeout"
    COMPLETE = "complete"


class JobRequest(BaseModel):
    """Parameters of one screenshot.

    Any field besides the declared ones is a provider option and is passed
    through to the collaborator untouched.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    url: str
    details: Optional[int] = None
    original_url: Optional[str] = None

    @property
    def detail_level(self) -> int:
        return self.details or 0

    @property
    def correlation_tag(self) -> str:
        return self.original_url or self.url

    @property
    def options(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    @classmethod
    def merged_over(
            cls,
            common: Mapping[str, Any],
            request: Union["JobRequest", Mapping[str, Any]],
    ) -> "JobRequest":
        if isinstance(request, JobRequest):
            request = request.model_dump(exclude_none=True)

        return cls.model_validate({**common, **request})


class JobRecord(BaseModel):
    """The provider's view of a job."""

    model_config = ConfigDict(extra="allow")

    id: JobId
    status: str
    original_url: Optional[str] = None

    def merge(self, update: "JobRecord") -> "JobRecord":
        """Overlay the non-null fields of `update` on this record.

        A null in `update` never clears a known value: polled records may
        omit fields such as the correlation tag, which must survive.
        """
        data = self.model_dump()
        data.update(update.model_dump(exclude_none=True))

        return JobRecord.model_validate(data)

    def tagged(self, tag: Optional[str]) -> "JobRecord":
        if tag is None or self.original_url is not None:
            return self

        return self.model_copy(update={"original_url": tag})
