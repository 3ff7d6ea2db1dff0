from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TIMEOUT_S = 60 * 5
DEFAULT_INTERVAL_S = 1


class TrackerSettings(BaseModel):
    """Polling defaults captured by every tracking session at creation.

    timeout: seconds before a session gives up waiting
    interval: seconds between two status polls of the same job
    """

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=DEFAULT_TIMEOUT_S, ge=0)
    interval: float = Field(default=DEFAULT_INTERVAL_S, ge=0)

    def updated(
            self,
            timeout: Optional[float] = None,
            interval: Optional[float] = None,
    ) -> "TrackerSettings":
        changes = {
            key: value
            for key, value in (("timeout", timeout), ("interval", interval))
            if value is not None
        }

        return TrackerSettings.model_validate({**self.model_dump(), **changes})
