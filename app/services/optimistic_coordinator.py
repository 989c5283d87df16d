import logging
from typing import Awaitable, Callable

from app.core.status_cache import StatusCache
from app.schemas.enums import RelationshipStatusEnum
from app.services.request_mutator import MutationResult, RequestMutator
from app.services.status_resolver import dual_status

logger = logging.getLogger(__name__)


class OptimisticCoordinator:
    """
    Wraps the latency-sensitive mutations (send and remove) so the cached
    status changes immediately: snapshot, write a speculative status, then
    either reconcile with the authoritative result or restore the snapshot.
    Knows nothing about the store.
    """

    def __init__(self, mutator: RequestMutator, cache: StatusCache):
        self.mutator = mutator
        self.cache = cache

    async def send(self, sender_id: str, receiver_id: str) -> MutationResult:
        return await self._run(
            sender_id,
            receiver_id,
            RelationshipStatusEnum.SENT,
            lambda: self.mutator.send(sender_id, receiver_id),
        )

    async def remove(self, user_id: str, friend_id: str) -> MutationResult:
        return await self._run(
            user_id,
            friend_id,
            RelationshipStatusEnum.NONE,
            lambda: self.mutator.remove(user_id, friend_id),
        )

    async def _run(
        self,
        viewer_id: str,
        target_id: str,
        speculative: RelationshipStatusEnum,
        mutation: Callable[[], Awaitable[MutationResult]],
    ) -> MutationResult:
        forward = self.cache.snapshot(viewer_id, target_id)
        backward = self.cache.snapshot(target_id, viewer_id)

        self.cache.set_status(viewer_id, target_id, speculative)
        self.cache.set_status(target_id, viewer_id, dual_status(speculative))

        try:
            result = await mutation()
        except Exception:
            self.cache.restore(viewer_id, target_id, forward)
            self.cache.restore(target_id, viewer_id, backward)
            logger.info(f"Rolled back optimistic {speculative.value} status for ({viewer_id}, {target_id})")
            raise

        # The authoritative result may differ from the guess, e.g. a send that
        # turned into an implicit accept ends as friends
        self.cache.set_status(viewer_id, target_id, result.status)
        self.cache.set_status(target_id, viewer_id, dual_status(result.status))
        return result
