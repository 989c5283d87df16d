import logging
from typing import Awaitable, Callable, List

from app.core.exceptions import FriendshipError
from app.core.status_cache import StatusCache
from app.schemas.enums import FriendErrorCodeEnum
from app.schemas.friend_action import FriendActionResult
from app.schemas.friend_request import FriendRequestRead
from app.schemas.friendship import FriendRead
from app.services.notification_publisher import NotificationPublisher
from app.services.optimistic_coordinator import OptimisticCoordinator
from app.services.relationship_store import RelationshipStore
from app.services.request_mutator import MutationResult, RequestMutator
from app.services.status_resolver import StatusResolver

logger = logging.getLogger(__name__)


class FriendService:
    """
    Caller-facing friend API. Every operation returns a FriendActionResult;
    failures of the state machine come back as typed error codes instead of
    exceptions.
    """

    def __init__(
        self,
        store: RelationshipStore,
        notifier: NotificationPublisher,
        cache: StatusCache = None,
        list_limit: int = 100,
    ):
        self.store = store
        self.cache = cache or StatusCache()
        self.list_limit = list_limit
        self.resolver = StatusResolver(store, self.cache)
        self.mutator = RequestMutator(store, self.resolver, notifier)
        self.coordinator = OptimisticCoordinator(self.mutator, self.cache)

    async def _run(self, action: str, operation: Callable[[], Awaitable[MutationResult]]) -> FriendActionResult:
        try:
            result = await operation()
        except FriendshipError as e:
            if e.code in (FriendErrorCodeEnum.STORE_UNAVAILABLE, FriendErrorCodeEnum.CONFLICT):
                logger.error(f"{action} failed: {e.detail}")
            else:
                logger.info(f"{action} refused ({e.code.value}): {e.detail}")
            return FriendActionResult(success=False, error=e.code, detail=e.detail)
        return FriendActionResult(
            success=True,
            status=result.status,
            outcome=result.outcome,
            request=result.request,
        )

    async def send_request(self, current_user_id: str, target_user_id: str) -> FriendActionResult:
        return await self._run(
            "send_request",
            lambda: self.coordinator.send(current_user_id, target_user_id),
        )

    async def accept_request(self, current_user_id: str, request_id: str) -> FriendActionResult:
        return await self._run(
            "accept_request",
            lambda: self.mutator.accept(request_id, current_user_id),
        )

    async def reject_request(self, current_user_id: str, request_id: str) -> FriendActionResult:
        return await self._run(
            "reject_request",
            lambda: self.mutator.reject(request_id, current_user_id),
        )

    async def cancel_request(self, current_user_id: str, request_id: str) -> FriendActionResult:
        return await self._run(
            "cancel_request",
            lambda: self.mutator.cancel(request_id, current_user_id),
        )

    async def remove_friend(self, current_user_id: str, target_user_id: str) -> FriendActionResult:
        return await self._run(
            "remove_friend",
            lambda: self.coordinator.remove(current_user_id, target_user_id),
        )

    async def get_status(self, current_user_id: str, target_user_id: str) -> FriendActionResult:
        async def resolve() -> MutationResult:
            status = await self.resolver.resolve(current_user_id, target_user_id)
            return MutationResult(status=status)

        return await self._run("get_status", resolve)

    # --- listing ---
    # These return data directly and raise StoreUnavailableError on backend failure.

    async def list_friends(self, current_user_id: str) -> List[FriendRead]:
        friendships = await self.store.list_friendships(current_user_id, limit=self.list_limit)
        self.resolver.prime_lists(current_user_id, friendships=friendships)
        return [
            FriendRead(
                user_id=f.other(current_user_id),
                friendship_id=f.id,
                friendship_created_at=f.created_at,
            )
            for f in friendships
        ]

    async def list_received_requests(self, current_user_id: str) -> List[FriendRequestRead]:
        received = await self.store.list_pending_requests(receiver_id=current_user_id, limit=self.list_limit)
        self.resolver.prime_lists(current_user_id, received=received)
        return received

    async def list_sent_requests(self, current_user_id: str) -> List[FriendRequestRead]:
        sent = await self.store.list_pending_requests(sender_id=current_user_id, limit=self.list_limit)
        self.resolver.prime_lists(current_user_id, sent=sent)
        return sent
