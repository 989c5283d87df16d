from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from app.schemas.enums import FriendRequestStatusEnum
from app.schemas.friend_request import FriendRequestRead
from app.schemas.friendship import FriendshipRead


class RelationshipStore(ABC):
    """
    Durable record of friend requests and friendships.

    Backends must enforce uniqueness of requests per ordered (sender, receiver)
    pair and raise ConflictError when an insert collides with an existing row.
    Backend failures are raised as StoreUnavailableError.
    """

    # --- Friend requests ---

    @abstractmethod
    async def insert_pending_request(self, sender_id: str, receiver_id: str) -> FriendRequestRead:
        """Insert a new pending request. Raises ConflictError if a row for the pair exists."""

    @abstractmethod
    async def get_request(self, sender_id: str, receiver_id: str) -> Optional[FriendRequestRead]:
        """The request row from sender to receiver in any status."""

    @abstractmethod
    async def get_request_by_id(self, request_id: str) -> Optional[FriendRequestRead]:
        ...

    @abstractmethod
    async def get_pending_request_between(self, user_a: str, user_b: str) -> Optional[FriendRequestRead]:
        """The most recent pending request between the two users, in either direction."""

    @abstractmethod
    async def update_request_status(
        self,
        request_id: str,
        status: FriendRequestStatusEnum,
        expected_status: Optional[FriendRequestStatusEnum] = None,
    ) -> FriendRequestRead:
        """
        Sets the status of a request. When expected_status is given the current
        status is re-checked atomically and StaleStateError is raised on mismatch.
        Raises RequestNotFoundError if the request does not exist.
        """

    @abstractmethod
    async def accept_request(self, request_id: str) -> Tuple[FriendRequestRead, FriendshipRead]:
        """
        Atomically marks a pending request accepted and creates the friendship
        for its pair (an existing friendship is reused). Either both writes
        happen or neither does. Raises StaleStateError if the request is no
        longer pending and RequestNotFoundError if it does not exist.
        """

    @abstractmethod
    async def delete_request(self, request_id: str) -> bool:
        ...

    @abstractmethod
    async def list_pending_requests(
        self,
        *,
        sender_id: Optional[str] = None,
        receiver_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[FriendRequestRead]:
        """Pending requests filtered by sender and/or receiver, newest first."""

    # --- Friendships ---

    @abstractmethod
    async def get_friendship(self, user_a: str, user_b: str) -> Optional[FriendshipRead]:
        """The friendship between the two users regardless of argument order."""

    @abstractmethod
    async def delete_friendship(self, user_a: str, user_b: str) -> bool:
        ...

    @abstractmethod
    async def list_friendships(self, user_id: str, limit: int = 100) -> List[FriendshipRead]:
        """Friendships the user takes part in, newest first."""
