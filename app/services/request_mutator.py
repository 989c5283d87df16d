import logging
from typing import Optional
from pydantic import BaseModel

from app.core.exceptions import (
    ConflictError,
    NotAuthorizedError,
    RequestNotFoundError,
    SelfReferenceError,
    StaleStateError,
)
from app.schemas.enums import (
    FriendEventTypeEnum,
    FriendRequestStatusEnum,
    RelationshipStatusEnum,
    SendOutcomeEnum,
)
from app.schemas.friend_request import FriendRequestRead
from app.schemas.notification import FriendEvent
from app.services.notification_publisher import NotificationPublisher
from app.services.relationship_store import RelationshipStore
from app.services.status_resolver import StatusResolver

logger = logging.getLogger(__name__)


class MutationResult(BaseModel):
    # Canonical status from the acting user's point of view
    status: RelationshipStatusEnum
    outcome: Optional[SendOutcomeEnum] = None
    request: Optional[FriendRequestRead] = None


class RequestMutator:
    """
    State transitions of the friend-connection state machine.

    Every transition re-reads the authoritative rows it depends on. Concurrent
    writes to the same pair surface from the store as ConflictError or
    StaleStateError; the decision is then re-run once against fresh state and a
    second failure is raised to the caller.
    """

    def __init__(self, store: RelationshipStore, resolver: StatusResolver, notifier: NotificationPublisher):
        self.store = store
        self.resolver = resolver
        self.notifier = notifier

    # --- send ---

    async def send(self, sender_id: str, receiver_id: str) -> MutationResult:
        if sender_id == receiver_id:
            raise SelfReferenceError()

        try:
            result = await self._send_once(sender_id, receiver_id)
        except ConflictError:
            result = await self._recover_from_conflict(sender_id, receiver_id)

        self.resolver.invalidate(sender_id, receiver_id)
        if result.outcome in (SendOutcomeEnum.CREATED, SendOutcomeEnum.RESENT):
            await self._emit(FriendEventTypeEnum.FRIEND_REQUEST_RECEIVED, sender_id, receiver_id, result.request)
        logger.info(f"Friend request {sender_id} -> {receiver_id}: {result.outcome.value}, status {result.status.value}")
        return result

    async def _recover_from_conflict(self, sender_id: str, receiver_id: str) -> MutationResult:
        """Re-runs the send decision once after a concurrent write to the same pair."""
        logger.warning(f"Concurrent write on friend request {sender_id} -> {receiver_id}; re-reading and retrying once")
        try:
            return await self._send_once(sender_id, receiver_id)
        except ConflictError as e:
            logger.error(f"Friend request {sender_id} -> {receiver_id} still conflicts after retry")
            raise ConflictError(
                "The friend request kept conflicting with concurrent changes. Try again later."
            ) from e

    async def _send_once(self, sender_id: str, receiver_id: str) -> MutationResult:
        friendship = await self.store.get_friendship(sender_id, receiver_id)
        if friendship is not None:
            return MutationResult(status=RelationshipStatusEnum.FRIENDS, outcome=SendOutcomeEnum.ALREADY_FRIENDS)

        # The receiver already asked us: answer that request instead of opening a second one
        reversed_request = await self.store.get_request(receiver_id, sender_id)
        if reversed_request is not None and reversed_request.status == FriendRequestStatusEnum.PENDING:
            return await self._implicit_accept(reversed_request)

        outcome = SendOutcomeEnum.CREATED
        existing = await self.store.get_request(sender_id, receiver_id)
        if existing is not None:
            if existing.status == FriendRequestStatusEnum.PENDING:
                return MutationResult(
                    status=RelationshipStatusEnum.SENT,
                    outcome=SendOutcomeEnum.ALREADY_SENT,
                    request=existing,
                )
            if existing.status == FriendRequestStatusEnum.REJECTED:
                # A rejection never blocks future requests
                await self.store.delete_request(existing.id)
            else:
                repaired = await self._repair_stale_accepted(existing)
                if repaired is not None:
                    return repaired
            outcome = SendOutcomeEnum.RESENT

        request = await self.store.insert_pending_request(sender_id, receiver_id)
        return await self._settle_reversed_race(request, outcome)

    async def _repair_stale_accepted(self, existing: FriendRequestRead) -> Optional[MutationResult]:
        """
        Removing a friend keeps the accepted request as history, and that row
        blocks the unique pair. Drops it unless a friendship really exists.
        """
        friendship = await self.store.get_friendship(existing.sender_id, existing.receiver_id)
        if friendship is not None:
            return MutationResult(status=RelationshipStatusEnum.FRIENDS, outcome=SendOutcomeEnum.ALREADY_FRIENDS)

        logger.info(
            f"Replacing accepted friend request {existing.id} ({existing.sender_id} -> {existing.receiver_id}) "
            f"left over from a removed friendship"
        )
        await self.store.delete_request(existing.id)
        return None

    async def _implicit_accept(self, request: FriendRequestRead) -> MutationResult:
        try:
            accepted, _ = await self.store.accept_request(request.id)
        except (StaleStateError, RequestNotFoundError) as e:
            # Someone resolved the reversed request first; only a friendship counts as done
            if await self.store.get_friendship(request.sender_id, request.receiver_id) is not None:
                return MutationResult(status=RelationshipStatusEnum.FRIENDS, outcome=SendOutcomeEnum.IMPLICIT_ACCEPT)
            raise ConflictError(f"Friend request {request.id} changed while being accepted.") from e

        await self._emit(FriendEventTypeEnum.CONNECTION_ACCEPTED, request.receiver_id, request.sender_id, accepted)
        return MutationResult(
            status=RelationshipStatusEnum.FRIENDS,
            outcome=SendOutcomeEnum.IMPLICIT_ACCEPT,
            request=accepted,
        )

    async def _settle_reversed_race(self, own: FriendRequestRead, outcome: SendOutcomeEnum) -> MutationResult:
        """
        Two users who send to each other at the same time both pass the reversed
        check before either row exists. Whoever sees both rows collapses them:
        the older request is accepted and the younger one deleted. Both sides
        pick the same winner, so the pair ends with exactly one friendship.
        """
        reversed_request = await self.store.get_request(own.receiver_id, own.sender_id)
        if reversed_request is not None and reversed_request.status == FriendRequestStatusEnum.PENDING:
            winner, loser = sorted([own, reversed_request], key=lambda r: r.sort_key())
            logger.warning(
                f"Reversed friend requests {own.id} and {reversed_request.id} raced; "
                f"accepting {winner.id} and dropping {loser.id}"
            )
            result = await self._implicit_accept(winner)
            await self.store.delete_request(loser.id)
            return result

        # The racing side may already have collapsed the pair into a friendship
        if await self.store.get_friendship(own.sender_id, own.receiver_id) is not None:
            await self._drop_if_pending(own)
            return MutationResult(status=RelationshipStatusEnum.FRIENDS, outcome=SendOutcomeEnum.IMPLICIT_ACCEPT)

        return MutationResult(status=RelationshipStatusEnum.SENT, outcome=outcome, request=own)

    async def _drop_if_pending(self, request: FriendRequestRead) -> None:
        """A pending row must not outlive the friendship that superseded it."""
        current = await self.store.get_request(request.sender_id, request.receiver_id)
        if current is not None and current.id == request.id and current.status == FriendRequestStatusEnum.PENDING:
            await self.store.delete_request(request.id)

    # --- accept / reject / cancel ---

    async def _load_request(self, request_id: str) -> FriendRequestRead:
        request = await self.store.get_request_by_id(request_id)
        if request is None:
            raise RequestNotFoundError()
        return request

    async def accept(self, request_id: str, actor_id: str) -> MutationResult:
        request = await self._load_request(request_id)
        if request.receiver_id != actor_id:
            raise NotAuthorizedError()

        # The store re-verifies the pending status inside the atomic section
        accepted, friendship = await self.store.accept_request(request_id)
        self.resolver.invalidate(request.sender_id, request.receiver_id)
        await self._emit(FriendEventTypeEnum.CONNECTION_ACCEPTED, actor_id, request.sender_id, accepted)
        logger.info(f"Friend request {request_id} accepted; friendship {friendship.id}")
        return MutationResult(status=RelationshipStatusEnum.FRIENDS, request=accepted)

    async def reject(self, request_id: str, actor_id: str) -> MutationResult:
        request = await self._load_request(request_id)
        if request.receiver_id != actor_id:
            raise NotAuthorizedError()

        rejected = await self.store.update_request_status(
            request_id,
            FriendRequestStatusEnum.REJECTED,
            expected_status=FriendRequestStatusEnum.PENDING,
        )
        self.resolver.invalidate(request.sender_id, request.receiver_id)
        await self._emit(FriendEventTypeEnum.CONNECTION_REJECTED, actor_id, request.sender_id, rejected)
        logger.info(f"Friend request {request_id} rejected")
        return MutationResult(status=RelationshipStatusEnum.NONE, request=rejected)

    async def cancel(self, request_id: str, actor_id: str) -> MutationResult:
        request = await self._load_request(request_id)
        if request.sender_id != actor_id:
            raise NotAuthorizedError("Only the sender can cancel this request.")

        cancelled = await self.store.update_request_status(
            request_id,
            FriendRequestStatusEnum.REJECTED,
            expected_status=FriendRequestStatusEnum.PENDING,
        )
        self.resolver.invalidate(request.sender_id, request.receiver_id)
        logger.info(f"Friend request {request_id} cancelled by sender")
        return MutationResult(status=RelationshipStatusEnum.NONE, request=cancelled)

    # --- remove ---

    async def remove(self, user_id: str, friend_id: str) -> MutationResult:
        if user_id == friend_id:
            raise SelfReferenceError("You cannot remove yourself as a friend.")

        removed = await self.store.delete_friendship(user_id, friend_id)
        self.resolver.invalidate(user_id, friend_id)
        if removed:
            # No pending request coexisted with the friendship, so the pair is now unrelated
            logger.info(f"Friendship between {user_id} and {friend_id} removed")
            return MutationResult(status=RelationshipStatusEnum.NONE)

        logger.info(f"No friendship between {user_id} and {friend_id} to remove")
        status = await self.resolver.resolve(user_id, friend_id)
        return MutationResult(status=status)

    # --- events ---

    async def _emit(
        self,
        event_type: FriendEventTypeEnum,
        actor_id: str,
        counterparty_id: str,
        request: Optional[FriendRequestRead],
    ) -> None:
        await self.notifier.publish(FriendEvent(
            event_type=event_type,
            actor_id=actor_id,
            counterparty_id=counterparty_id,
            request_id=request.id if request else None,
        ))
