"""
Shared fixtures for the friend-connection tests.

Everything runs against the in-memory relationship store. The store
subclasses below simulate what concurrent processes do to the same pair.
"""

import os

# Must be set before app.core.config is imported anywhere
os.environ["RELATIONSHIP_STORE_BACKEND"] = "memory"
os.environ["NOTIFICATION_BACKEND"] = "log"

import asyncio
from typing import List

import pytest

from app.core.exceptions import ConflictError, StoreUnavailableError
from app.core.status_cache import StatusCache
from app.schemas.enums import FriendRequestStatusEnum
from app.schemas.notification import FriendEvent
from app.services.friend_service import FriendService
from app.services.memory_relationship_store import InMemoryRelationshipStore
from app.services.notification_publisher import NotificationPublisher


class RecordingNotificationPublisher(NotificationPublisher):
    def __init__(self):
        self.events: List[FriendEvent] = []

    async def publish(self, event: FriendEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type) -> List[FriendEvent]:
        return [e for e in self.events if e.event_type == event_type]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class YieldingStore(InMemoryRelationshipStore):
    """Suspends before every call so concurrent tasks interleave at each store round trip."""

    async def get_friendship(self, user_a, user_b):
        await asyncio.sleep(0)
        return await super().get_friendship(user_a, user_b)

    async def get_request(self, sender_id, receiver_id):
        await asyncio.sleep(0)
        return await super().get_request(sender_id, receiver_id)

    async def insert_pending_request(self, sender_id, receiver_id):
        await asyncio.sleep(0)
        return await super().insert_pending_request(sender_id, receiver_id)

    async def accept_request(self, request_id):
        await asyncio.sleep(0)
        return await super().accept_request(request_id)

    async def delete_request(self, request_id):
        await asyncio.sleep(0)
        return await super().delete_request(request_id)


class ConcurrentInsertStore(InMemoryRelationshipStore):
    """The first insert loses to another process that writes the same pair just before it."""

    def __init__(self):
        super().__init__()
        self.insert_attempts = 0

    async def insert_pending_request(self, sender_id, receiver_id):
        self.insert_attempts += 1
        if self.insert_attempts == 1:
            await super().insert_pending_request(sender_id, receiver_id)
        return await super().insert_pending_request(sender_id, receiver_id)


class AlwaysConflictStore(InMemoryRelationshipStore):
    def __init__(self):
        super().__init__()
        self.insert_attempts = 0

    async def insert_pending_request(self, sender_id, receiver_id):
        self.insert_attempts += 1
        raise ConflictError()


class UnavailableStore(InMemoryRelationshipStore):
    """Reads work, every write fails as if the backend went away."""

    async def insert_pending_request(self, sender_id, receiver_id):
        raise StoreUnavailableError()

    async def delete_friendship(self, user_a, user_b):
        raise StoreUnavailableError()


class ReadFailsAfterDeleteStore(InMemoryRelationshipStore):
    """The backend goes away right after a friendship delete has committed."""

    def __init__(self):
        super().__init__()
        self.deleted = False

    async def delete_friendship(self, user_a, user_b):
        removed = await super().delete_friendship(user_a, user_b)
        self.deleted = True
        return removed

    async def get_pending_request_between(self, user_a, user_b):
        if self.deleted:
            raise StoreUnavailableError()
        return await super().get_pending_request_between(user_a, user_b)

    async def get_friendship(self, user_a, user_b):
        if self.deleted:
            raise StoreUnavailableError()
        return await super().get_friendship(user_a, user_b)


class SlowStatusReadStore(InMemoryRelationshipStore):
    """Holds the first friendship lookup of a status read until the test releases it."""

    def __init__(self):
        super().__init__()
        self.hold_next_read = False
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def get_friendship(self, user_a, user_b):
        if self.hold_next_read:
            self.hold_next_read = False
            self.entered.set()
            await self.release.wait()
        return await super().get_friendship(user_a, user_b)


def pending_between(store: InMemoryRelationshipStore, user_a: str, user_b: str):
    return [
        data for key, data in store.requests.items()
        if set(key) == {user_a, user_b} and data["status"] == FriendRequestStatusEnum.PENDING
    ]


def assert_no_coexistence(store: InMemoryRelationshipStore, user_a: str, user_b: str) -> None:
    friendship_exists = any(set(pair) == {user_a, user_b} for pair in store.friendships)
    assert not (friendship_exists and pending_between(store, user_a, user_b)), \
        "a pending request and a friendship exist for the same pair"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return StatusCache(ttl_seconds=15.0, clock=clock)


@pytest.fixture
def store():
    return InMemoryRelationshipStore()


@pytest.fixture
def notifier():
    return RecordingNotificationPublisher()


@pytest.fixture
def friend_service(store, notifier, cache):
    return FriendService(store=store, notifier=notifier, cache=cache)
