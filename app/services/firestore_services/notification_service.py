import os
import asyncio
import logging
from google.cloud import pubsub_v1
from google.api_core import exceptions as google_api_exceptions
from app.schemas.notification import FriendEvent
from app.core.config import settings # Import settings
from app.services.notification_publisher import NotificationPublisher

logger = logging.getLogger(__name__)


class PubSubNotificationPublisher(NotificationPublisher):
    """Publishes friend events to a Pub/Sub topic consumed by the notification workers."""

    def __init__(self, project_id: str = None, topic_name: str = None, publisher=None):
        # For live deployment, ensure PUBSUB_EMULATOR_HOST environment variable is NOT set.
        if settings.PUBSUB_EMULATOR_HOST:
            os.environ["PUBSUB_EMULATOR_HOST"] = settings.PUBSUB_EMULATOR_HOST
            logger.info(f"Using Pub/Sub emulator at {settings.PUBSUB_EMULATOR_HOST}")

        self.publisher = publisher or pubsub_v1.PublisherClient()
        self.project_id = project_id or os.getenv("PUBSUB_PROJECT_ID", settings.GCP_PROJECT_ID)
        self.topic_name = topic_name or settings.NOTIFICATION_TOPIC_NAME
        self.topic_path = self.publisher.topic_path(self.project_id, self.topic_name)

    def ensure_topic(self) -> None:
        """Creates the friend events topic if it does not exist yet."""
        try:
            self.publisher.create_topic(request={"name": self.topic_path})
            logger.info(f"Pub/Sub topic {self.topic_name} created.")
        except google_api_exceptions.AlreadyExists:
            logger.info(f"Pub/Sub topic {self.topic_name} already exists.")
        except Exception as e:
            logger.error(f"Error ensuring Pub/Sub topic {self.topic_name} exists: {e}")

    async def publish(self, event: FriendEvent) -> None:
        try:
            message_data = event.model_dump_json().encode("utf-8")
            future = self.publisher.publish(
                self.topic_path,
                message_data,
                event_type=event.event_type.value,
                recipient_id=event.counterparty_id,
            )
            await asyncio.wrap_future(future)
            logger.info(
                f"Published {event.event_type.value} to Pub/Sub topic {self.topic_name} "
                f"for recipient {event.counterparty_id}."
            )
        except Exception as e:
            # Delivery is best effort; the relationship change has already been committed
            logger.error(f"Error publishing friend event to Pub/Sub: {e}")
