import logging
from typing import List, Optional

from app.core.exceptions import InconsistentDataError, SelfReferenceError
from app.core.status_cache import StatusCache
from app.schemas.enums import RelationshipStatusEnum
from app.schemas.friend_request import FriendRequestRead
from app.schemas.friendship import FriendshipRead
from app.services.relationship_store import RelationshipStore

logger = logging.getLogger(__name__)

_DUALS = {
    RelationshipStatusEnum.NONE: RelationshipStatusEnum.NONE,
    RelationshipStatusEnum.SENT: RelationshipStatusEnum.RECEIVED,
    RelationshipStatusEnum.RECEIVED: RelationshipStatusEnum.SENT,
    RelationshipStatusEnum.FRIENDS: RelationshipStatusEnum.FRIENDS,
}


def dual_status(status: RelationshipStatusEnum) -> RelationshipStatusEnum:
    """The same relationship seen from the other end."""
    return _DUALS[status]


def status_from_rows(
    viewer_id: str,
    friendship: Optional[FriendshipRead],
    pending_request: Optional[FriendRequestRead],
) -> RelationshipStatusEnum:
    if friendship is not None:
        return RelationshipStatusEnum.FRIENDS
    if pending_request is not None:
        if pending_request.sender_id == viewer_id:
            return RelationshipStatusEnum.SENT
        return RelationshipStatusEnum.RECEIVED
    return RelationshipStatusEnum.NONE


class StatusResolver:
    """Computes the canonical relationship status of a (viewer, target) pair."""

    def __init__(self, store: RelationshipStore, cache: StatusCache):
        self.store = store
        self.cache = cache

    def _from_cache(self, viewer_id: str, target_id: str) -> Optional[RelationshipStatusEnum]:
        status = self.cache.get_status(viewer_id, target_id)
        if status is not None:
            return status

        friend_ids = self.cache.get_friend_ids(viewer_id)
        if friend_ids is not None and target_id in friend_ids:
            return RelationshipStatusEnum.FRIENDS
        outgoing_ids = self.cache.get_outgoing_ids(viewer_id)
        if outgoing_ids is not None and target_id in outgoing_ids:
            return RelationshipStatusEnum.SENT
        incoming_ids = self.cache.get_incoming_ids(viewer_id)
        if incoming_ids is not None and target_id in incoming_ids:
            return RelationshipStatusEnum.RECEIVED
        # Absence from the lists proves nothing since they are paginated
        return None

    async def resolve(self, viewer_id: str, target_id: str) -> RelationshipStatusEnum:
        if viewer_id == target_id:
            raise SelfReferenceError("A relationship status has no meaning for a user and themselves.")

        cached = self._from_cache(viewer_id, target_id)
        if cached is not None:
            return cached

        generation = self.cache.generation(viewer_id, target_id)
        pending_request = await self.store.get_pending_request_between(viewer_id, target_id)
        friendship = await self.store.get_friendship(viewer_id, target_id)
        if friendship is not None and pending_request is not None:
            issue = InconsistentDataError(
                f"Friendship {friendship.id} coexists with pending request {pending_request.id}."
            )
            logger.warning(issue.detail)
        status = status_from_rows(viewer_id, friendship, pending_request)

        # A mutation on the pair landed while we were reading; our rows may predate it
        if self.cache.generation(viewer_id, target_id) != generation:
            logger.debug(f"Skipping cache write for ({viewer_id}, {target_id}): pair changed during read")
            return status
        self.remember(viewer_id, target_id, status)
        return status

    def remember(self, viewer_id: str, target_id: str, status: RelationshipStatusEnum) -> None:
        """Caches a status for the pair and its dual for the other user."""
        self.cache.set_status(viewer_id, target_id, status)
        self.cache.set_status(target_id, viewer_id, dual_status(status))

    def invalidate(self, user_a: str, user_b: str) -> None:
        self.cache.invalidate_pair(user_a, user_b)

    def prime_lists(
        self,
        user_id: str,
        friendships: Optional[List[FriendshipRead]] = None,
        sent: Optional[List[FriendRequestRead]] = None,
        received: Optional[List[FriendRequestRead]] = None,
    ) -> None:
        """Fills the per-user id sets from list queries the caller already made."""
        if friendships is not None:
            self.cache.set_friend_ids(user_id, {f.other(user_id) for f in friendships})
        if sent is not None:
            self.cache.set_outgoing_ids(user_id, {r.receiver_id for r in sent})
        if received is not None:
            self.cache.set_incoming_ids(user_id, {r.sender_id for r in received})
