import logging
from abc import ABC, abstractmethod

from app.schemas.notification import FriendEvent

logger = logging.getLogger(__name__)


class NotificationPublisher(ABC):
    """
    Receives friend events produced by the request mutator. Delivery to the
    user happens elsewhere; implementations must not raise on publish failure.
    """

    @abstractmethod
    async def publish(self, event: FriendEvent) -> None:
        ...


class LoggingNotificationPublisher(NotificationPublisher):
    """Development publisher that only records events in the log."""

    async def publish(self, event: FriendEvent) -> None:
        logger.info(
            f"Friend event {event.event_type.value}: actor={event.actor_id} "
            f"counterparty={event.counterparty_id} request={event.request_id}"
        )
