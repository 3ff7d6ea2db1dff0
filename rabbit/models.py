from pydantic import BaseModel
from typing import Any, Optional

from tracking.models import JobId, JobRecord


class NotificationMessage(BaseModel):
    event: str
    job_id: Optional[JobId] = None
    status: Optional[str] = None
    records: list[dict[str, Any]] = []

    @classmethod
    def from_notification(cls, event: str, payload: Any) -> "NotificationMessage":
        if isinstance(payload, JobRecord):
            return cls(
                event=event,
                job_id=payload.id,
                status=payload.status,
                records=[payload.model_dump(mode="json")],
            )

        return cls(
            event=event,
            records=[record.model_dump(mode="json") for record in payload or []],
        )
