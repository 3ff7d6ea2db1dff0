from typing import Any

from common.logger import get_logger
from rabbit.broker import RabbitMQClient, QUEUE_SCREENSHOT_NOTIFICATIONS
from rabbit.models import NotificationMessage
from tracking.stream import NotificationStream


class NotificationRelay:
    """Forwards the notifications of tracking sessions to a RabbitMQ queue."""

    def __init__(
            self,
            rabbit: RabbitMQClient,
            queue_name: str = QUEUE_SCREENSHOT_NOTIFICATIONS,
    ) -> None:
        self._logger = get_logger(__name__)
        self._rabbit = rabbit
        self._queue_name = queue_name

    def attach(self, stream: NotificationStream) -> NotificationStream:
        stream.on_any(self._forward)
        return stream

    async def _forward(self, event: str, payload: Any) -> None:
        message = NotificationMessage.from_notification(event, payload)
        try:
            await self._rabbit.publish_notification(message, self._queue_name)
        except Exception:
            self._logger.exception(
                "Exception during the publication of '%s' to the broker", event
            )
            return

        self._logger.debug("Notification '%s' relayed to %s", event, self._queue_name)
