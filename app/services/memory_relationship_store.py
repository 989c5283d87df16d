import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from app.core.exceptions import ConflictError, RequestNotFoundError, StaleStateError
from app.schemas.enums import FriendRequestStatusEnum
from app.schemas.friend_request import FriendRequestRead
from app.schemas.friendship import FriendshipRead, ordered_pair
from app.services.relationship_store import RelationshipStore


class InMemoryRelationshipStore(RelationshipStore):
    """
    Process-local store used for local development and tests.

    Each method body runs without awaiting anything, so on a single event loop
    every call is atomic, which is what accept_request and the compare-and-set
    in update_request_status rely on.
    """

    def __init__(self):
        # Keyed by the ordered (sender_id, receiver_id) pair, mirroring the
        # uniqueness constraint of the Firestore backend.
        self.requests: Dict[Tuple[str, str], dict] = {}
        # Keyed by ordered_pair(user_a, user_b)
        self.friendships: Dict[Tuple[str, str], dict] = {}

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _find_request(self, request_id: str) -> Optional[dict]:
        for data in self.requests.values():
            if data["id"] == request_id:
                return data
        return None

    async def insert_pending_request(self, sender_id: str, receiver_id: str) -> FriendRequestRead:
        key = (sender_id, receiver_id)
        if key in self.requests:
            raise ConflictError(f"A friend request from {sender_id} to {receiver_id} already exists.")
        now = self._now()
        data = {
            "id": str(uuid.uuid4()),
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "status": FriendRequestStatusEnum.PENDING,
            "created_at": now,
            "updated_at": now,
        }
        self.requests[key] = data
        return FriendRequestRead(**data)

    async def get_request(self, sender_id: str, receiver_id: str) -> Optional[FriendRequestRead]:
        data = self.requests.get((sender_id, receiver_id))
        return FriendRequestRead(**data) if data else None

    async def get_request_by_id(self, request_id: str) -> Optional[FriendRequestRead]:
        data = self._find_request(request_id)
        return FriendRequestRead(**data) if data else None

    async def get_pending_request_between(self, user_a: str, user_b: str) -> Optional[FriendRequestRead]:
        candidates = []
        for key in ((user_a, user_b), (user_b, user_a)):
            data = self.requests.get(key)
            if data and data["status"] == FriendRequestStatusEnum.PENDING:
                candidates.append(FriendRequestRead(**data))
        if not candidates:
            return None
        return max(candidates, key=lambda r: r.created_at)

    async def update_request_status(
        self,
        request_id: str,
        status: FriendRequestStatusEnum,
        expected_status: Optional[FriendRequestStatusEnum] = None,
    ) -> FriendRequestRead:
        data = self._find_request(request_id)
        if not data:
            raise RequestNotFoundError()
        if expected_status is not None and data["status"] != expected_status:
            raise StaleStateError(f"Friend request is {data['status'].value}, expected {expected_status.value}.")
        data["status"] = status
        data["updated_at"] = self._now()
        return FriendRequestRead(**data)

    async def accept_request(self, request_id: str) -> Tuple[FriendRequestRead, FriendshipRead]:
        data = self._find_request(request_id)
        if not data:
            raise RequestNotFoundError()
        if data["status"] != FriendRequestStatusEnum.PENDING:
            raise StaleStateError(f"Friend request is {data['status'].value}, expected pending.")

        pair = ordered_pair(data["sender_id"], data["receiver_id"])
        friendship = self.friendships.get(pair)
        if friendship is None:
            friendship = {
                "id": str(uuid.uuid4()),
                "user1_id": pair[0],
                "user2_id": pair[1],
                "created_at": self._now(),
            }
            self.friendships[pair] = friendship
        data["status"] = FriendRequestStatusEnum.ACCEPTED
        data["updated_at"] = self._now()
        return FriendRequestRead(**data), FriendshipRead(**friendship)

    async def delete_request(self, request_id: str) -> bool:
        for key, data in list(self.requests.items()):
            if data["id"] == request_id:
                del self.requests[key]
                return True
        return False

    async def list_pending_requests(
        self,
        *,
        sender_id: Optional[str] = None,
        receiver_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[FriendRequestRead]:
        matches = [
            FriendRequestRead(**data)
            for data in self.requests.values()
            if data["status"] == FriendRequestStatusEnum.PENDING
            and (sender_id is None or data["sender_id"] == sender_id)
            and (receiver_id is None or data["receiver_id"] == receiver_id)
        ]
        matches.sort(key=lambda r: r.created_at, reverse=True)
        return matches[:limit]

    async def get_friendship(self, user_a: str, user_b: str) -> Optional[FriendshipRead]:
        data = self.friendships.get(ordered_pair(user_a, user_b))
        return FriendshipRead(**data) if data else None

    async def delete_friendship(self, user_a: str, user_b: str) -> bool:
        return self.friendships.pop(ordered_pair(user_a, user_b), None) is not None

    async def list_friendships(self, user_id: str, limit: int = 100) -> List[FriendshipRead]:
        matches = [
            FriendshipRead(**data)
            for pair, data in self.friendships.items()
            if user_id in pair
        ]
        matches.sort(key=lambda f: f.created_at, reverse=True)
        return matches[:limit]
