import time
import logging
from typing import Callable, Dict, Hashable, Optional, Set, Tuple

from app.schemas.enums import RelationshipStatusEnum
from app.schemas.friendship import ordered_pair

logger = logging.getLogger(__name__)

# Marker returned by snapshot() for a key with no live entry
MISSING = object()


class _TTLStore:
    """Dict with per-entry expiry. Writes replace whole values (last write wins)."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float]):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, object]] = {}

    def get(self, key: Hashable):
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: Hashable, value) -> None:
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def pop(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


class StatusCache:
    """
    Local cache consulted by the status resolver.

    Holds the relationship status per (viewer, target) pair, plus per-user sets
    of friend ids, outgoing pending ids and incoming pending ids filled from the
    list queries. Every entry expires after ttl_seconds.
    """

    def __init__(self, ttl_seconds: float = 15.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._statuses = _TTLStore(ttl_seconds, clock)
        self._friends = _TTLStore(ttl_seconds, clock)
        self._outgoing = _TTLStore(ttl_seconds, clock)
        self._incoming = _TTLStore(ttl_seconds, clock)
        # Bumped by invalidate_pair; never expires
        self._generations: Dict[Tuple[str, str], int] = {}

    # --- pair statuses ---

    def get_status(self, viewer_id: str, target_id: str) -> Optional[RelationshipStatusEnum]:
        return self._statuses.get((viewer_id, target_id))

    def set_status(self, viewer_id: str, target_id: str, status: RelationshipStatusEnum) -> None:
        self._statuses.set((viewer_id, target_id), status)

    def snapshot(self, viewer_id: str, target_id: str):
        """The live cached status, or MISSING when nothing is cached."""
        status = self._statuses.get((viewer_id, target_id))
        return MISSING if status is None else status

    def restore(self, viewer_id: str, target_id: str, snapshot) -> None:
        if snapshot is MISSING:
            self._statuses.pop((viewer_id, target_id))
        else:
            self._statuses.set((viewer_id, target_id), snapshot)

    # --- per-user id sets ---

    def get_friend_ids(self, user_id: str) -> Optional[Set[str]]:
        return self._friends.get(user_id)

    def set_friend_ids(self, user_id: str, friend_ids: Set[str]) -> None:
        self._friends.set(user_id, frozenset(friend_ids))

    def get_outgoing_ids(self, user_id: str) -> Optional[Set[str]]:
        return self._outgoing.get(user_id)

    def set_outgoing_ids(self, user_id: str, receiver_ids: Set[str]) -> None:
        self._outgoing.set(user_id, frozenset(receiver_ids))

    def get_incoming_ids(self, user_id: str) -> Optional[Set[str]]:
        return self._incoming.get(user_id)

    def set_incoming_ids(self, user_id: str, sender_ids: Set[str]) -> None:
        self._incoming.set(user_id, frozenset(sender_ids))

    # --- invalidation ---

    def generation(self, user_a: str, user_b: str) -> int:
        """Counter for the unordered pair. A read that saw a different value must not be cached."""
        return self._generations.get(ordered_pair(user_a, user_b), 0)

    def invalidate_pair(self, user_a: str, user_b: str) -> None:
        """Drops everything that could describe the relationship between the two users."""
        pair = ordered_pair(user_a, user_b)
        self._generations[pair] = self._generations.get(pair, 0) + 1
        self._statuses.pop((user_a, user_b))
        self._statuses.pop((user_b, user_a))
        for user_id in (user_a, user_b):
            self._friends.pop(user_id)
            self._outgoing.pop(user_id)
            self._incoming.pop(user_id)
        logger.debug(f"Invalidated cached relationship for pair ({user_a}, {user_b})")

    def clear(self) -> None:
        for store in (self._statuses, self._friends, self._outgoing, self._incoming):
            store.clear()
