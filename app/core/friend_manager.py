import logging
from typing import Optional

from app.core.config import settings
from app.core.status_cache import StatusCache
from app.services.friend_service import FriendService
from app.services.memory_relationship_store import InMemoryRelationshipStore
from app.services.notification_publisher import LoggingNotificationPublisher, NotificationPublisher
from app.services.relationship_store import RelationshipStore

logger = logging.getLogger(__name__)


def build_store(backend: str) -> RelationshipStore:
    if backend == "memory":
        logger.info("Using the in-memory relationship store")
        return InMemoryRelationshipStore()
    if backend == "firestore":
        # Imported here so the memory backend runs without Google client libraries configured
        from app.services.firestore_services.relationship_store_service import FirestoreRelationshipStore
        logger.info("Using the Firestore relationship store")
        return FirestoreRelationshipStore()
    raise ValueError(f"Unknown RELATIONSHIP_STORE_BACKEND: {backend}")


def build_notifier(backend: str) -> NotificationPublisher:
    if backend == "log":
        return LoggingNotificationPublisher()
    if backend == "pubsub":
        from app.services.firestore_services.notification_service import PubSubNotificationPublisher
        publisher = PubSubNotificationPublisher()
        publisher.ensure_topic()
        return publisher
    raise ValueError(f"Unknown NOTIFICATION_BACKEND: {backend}")


class FriendManager:
    """Holds the process-wide FriendService; its status cache is shared by all requests."""

    def __init__(self):
        self._service: Optional[FriendService] = None

    def start(self) -> FriendService:
        if self._service is None:
            self._service = FriendService(
                store=build_store(settings.RELATIONSHIP_STORE_BACKEND),
                notifier=build_notifier(settings.NOTIFICATION_BACKEND),
                cache=StatusCache(ttl_seconds=settings.STATUS_CACHE_TTL_SECONDS),
                list_limit=settings.FRIEND_LIST_LIMIT,
            )
        return self._service

    @property
    def service(self) -> FriendService:
        return self.start()

    def reset(self, service: Optional[FriendService] = None) -> None:
        """Replaces the running service, e.g. with one built around another store."""
        self._service = service


manager = FriendManager()
