import uuid
import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Tuple
from firebase_admin import firestore, firestore_async
from google.api_core import exceptions as google_api_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter
from app.core.exceptions import ConflictError, RequestNotFoundError, StaleStateError, StoreUnavailableError
from app.schemas.enums import FriendRequestStatusEnum
from app.schemas.friend_request import FriendRequestRead
from app.schemas.friendship import FriendshipRead, ordered_pair
from app.services.relationship_store import RelationshipStore

logger = logging.getLogger(__name__)

# Firestore implementation of the relationship store. Uniqueness of requests per
# ordered (sender, receiver) pair comes from the composite document ID plus
# create(), which fails with AlreadyExists instead of overwriting.


def _escape_id(user_id: str) -> str:
    # After escaping, "_" only ever appears as the separator
    return user_id.replace("%", "%25").replace("_", "%5F")


def _request_doc_id(sender_id: str, receiver_id: str) -> str:
    return f"{_escape_id(sender_id)}_{_escape_id(receiver_id)}"


def _friendship_doc_id(user_a: str, user_b: str) -> str:
    user1_id, user2_id = ordered_pair(user_a, user_b)
    return f"{_escape_id(user1_id)}_{_escape_id(user2_id)}"


def _format_request_document(doc) -> Optional[FriendRequestRead]:
    """Turns a friend_requests snapshot into the read schema."""
    if not doc.exists:
        return None
    data = doc.to_dict()
    if not data:
        return None
    return FriendRequestRead(
        id=data["id"],
        sender_id=data["sender_id"],
        receiver_id=data["receiver_id"],
        status=FriendRequestStatusEnum(data["status"]),
        created_at=data["created_at"],
        updated_at=data.get("updated_at"),
    )


def _format_friendship_document(doc) -> Optional[FriendshipRead]:
    if not doc.exists:
        return None
    data = doc.to_dict()
    if not data:
        return None
    return FriendshipRead(**data)


@asynccontextmanager
async def _store_errors(operation: str):
    """Translates Google API failures into the relationship store error taxonomy."""
    try:
        yield
    except google_api_exceptions.AlreadyExists as e:
        logger.info(f"{operation}: document already exists: {e}")
        raise ConflictError() from e
    except (google_api_exceptions.GoogleAPICallError, google_api_exceptions.RetryError) as e:
        logger.error(f"{operation}: Firestore call failed: {e}")
        raise StoreUnavailableError() from e


class FirestoreRelationshipStore(RelationshipStore):
    def __init__(self, client=None):
        # The async client is requested lazily so the store can be built before
        # firebase_admin.initialize_app() has run.
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = firestore_async.client()
        return self._client

    def get_requests_collection(self):
        """Returns the 'friend_requests' collection reference."""
        return self.client.collection("friend_requests")

    def get_friendships_collection(self):
        """Returns the 'friendships' collection reference."""
        return self.client.collection("friendships")

    async def _get_request_ref_by_id(self, request_id: str):
        query = self.get_requests_collection().where(filter=FieldFilter("id", "==", request_id)).limit(1)
        async for doc in query.stream():
            return doc.reference
        return None

    async def insert_pending_request(self, sender_id: str, receiver_id: str) -> FriendRequestRead:
        doc_ref = self.get_requests_collection().document(_request_doc_id(sender_id, receiver_id))
        request_data = {
            "id": str(uuid.uuid4()),
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "status": FriendRequestStatusEnum.PENDING.value,
            "created_at": firestore.SERVER_TIMESTAMP,
            "updated_at": firestore.SERVER_TIMESTAMP,
        }
        async with _store_errors("insert_pending_request"):
            await doc_ref.create(request_data)
            # Fetch the new document to resolve the server-generated timestamps
            created = _format_request_document(await doc_ref.get())
        if created is None:
            raise StoreUnavailableError("Failed to read back the newly created friend request.")
        return created

    async def get_request(self, sender_id: str, receiver_id: str) -> Optional[FriendRequestRead]:
        doc_ref = self.get_requests_collection().document(_request_doc_id(sender_id, receiver_id))
        async with _store_errors("get_request"):
            return _format_request_document(await doc_ref.get())

    async def get_request_by_id(self, request_id: str) -> Optional[FriendRequestRead]:
        async with _store_errors("get_request_by_id"):
            doc_ref = await self._get_request_ref_by_id(request_id)
            if doc_ref is None:
                return None
            return _format_request_document(await doc_ref.get())

    async def get_pending_request_between(self, user_a: str, user_b: str) -> Optional[FriendRequestRead]:
        collection = self.get_requests_collection()
        refs = [
            collection.document(_request_doc_id(user_a, user_b)),
            collection.document(_request_doc_id(user_b, user_a)),
        ]
        pending = []
        async with _store_errors("get_pending_request_between"):
            async for doc in self.client.get_all(refs):
                request = _format_request_document(doc)
                if request and request.status == FriendRequestStatusEnum.PENDING:
                    pending.append(request)
        if not pending:
            return None
        return max(pending, key=lambda r: r.created_at)

    async def update_request_status(
        self,
        request_id: str,
        status: FriendRequestStatusEnum,
        expected_status: Optional[FriendRequestStatusEnum] = None,
    ) -> FriendRequestRead:
        async with _store_errors("update_request_status"):
            doc_ref = await self._get_request_ref_by_id(request_id)
            if doc_ref is None:
                raise RequestNotFoundError()

            @firestore.async_transactional
            async def update_in_transaction(transaction):
                snapshot = await doc_ref.get(transaction=transaction)
                current = _format_request_document(snapshot)
                # The document may have been replaced by a fresh send with a new id
                if current is None or current.id != request_id:
                    raise RequestNotFoundError()
                if expected_status is not None and current.status != expected_status:
                    raise StaleStateError(
                        f"Friend request is {current.status.value}, expected {expected_status.value}."
                    )
                transaction.update(doc_ref, {
                    "status": status.value,
                    "updated_at": firestore.SERVER_TIMESTAMP,
                })

            await update_in_transaction(self.client.transaction())
            return _format_request_document(await doc_ref.get())

    async def accept_request(self, request_id: str) -> Tuple[FriendRequestRead, FriendshipRead]:
        async with _store_errors("accept_request"):
            request_ref = await self._get_request_ref_by_id(request_id)
            if request_ref is None:
                raise RequestNotFoundError()

            @firestore.async_transactional
            async def accept_in_transaction(transaction):
                current = _format_request_document(await request_ref.get(transaction=transaction))
                if current is None or current.id != request_id:
                    raise RequestNotFoundError()
                if current.status != FriendRequestStatusEnum.PENDING:
                    raise StaleStateError(f"Friend request is {current.status.value}, expected pending.")

                friendship_ref = self.get_friendships_collection().document(
                    _friendship_doc_id(current.sender_id, current.receiver_id)
                )
                friendship_doc = await friendship_ref.get(transaction=transaction)
                # Reads must happen before writes in a Firestore transaction
                transaction.update(request_ref, {
                    "status": FriendRequestStatusEnum.ACCEPTED.value,
                    "updated_at": firestore.SERVER_TIMESTAMP,
                })
                if not friendship_doc.exists:
                    user1_id, user2_id = ordered_pair(current.sender_id, current.receiver_id)
                    transaction.set(friendship_ref, {
                        "id": str(uuid.uuid4()),
                        "user1_id": user1_id,
                        "user2_id": user2_id,
                        "created_at": firestore.SERVER_TIMESTAMP,
                    })
                return friendship_ref

            friendship_ref = await accept_in_transaction(self.client.transaction())
            accepted = _format_request_document(await request_ref.get())
            friendship = _format_friendship_document(await friendship_ref.get())
        if accepted is None or friendship is None:
            raise StoreUnavailableError("Failed to read back the accepted friend request.")
        return accepted, friendship

    async def delete_request(self, request_id: str) -> bool:
        async with _store_errors("delete_request"):
            doc_ref = await self._get_request_ref_by_id(request_id)
            if doc_ref is None:
                return False
            await doc_ref.delete()
            return True

    async def list_pending_requests(
        self,
        *,
        sender_id: Optional[str] = None,
        receiver_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[FriendRequestRead]:
        query = self.get_requests_collection().where(
            filter=FieldFilter("status", "==", FriendRequestStatusEnum.PENDING.value)
        )
        if sender_id is not None:
            query = query.where(filter=FieldFilter("sender_id", "==", sender_id))
        if receiver_id is not None:
            query = query.where(filter=FieldFilter("receiver_id", "==", receiver_id))
        query = query.order_by("created_at", direction="DESCENDING").limit(limit)

        requests = []
        async with _store_errors("list_pending_requests"):
            async for doc in query.stream():
                request = _format_request_document(doc)
                if request:
                    requests.append(request)
        return requests

    async def get_friendship(self, user_a: str, user_b: str) -> Optional[FriendshipRead]:
        doc_ref = self.get_friendships_collection().document(_friendship_doc_id(user_a, user_b))
        async with _store_errors("get_friendship"):
            return _format_friendship_document(await doc_ref.get())

    async def delete_friendship(self, user_a: str, user_b: str) -> bool:
        doc_ref = self.get_friendships_collection().document(_friendship_doc_id(user_a, user_b))
        async with _store_errors("delete_friendship"):
            doc = await doc_ref.get()
            if not doc.exists:
                return False
            await doc_ref.delete()
            return True

    async def list_friendships(self, user_id: str, limit: int = 100) -> List[FriendshipRead]:
        collection = self.get_friendships_collection()
        friendships = {}
        async with _store_errors("list_friendships"):
            # Firestore has no OR across fields here, so query each side of the pair
            for field in ("user1_id", "user2_id"):
                query = collection.where(filter=FieldFilter(field, "==", user_id)) \
                                  .order_by("created_at", direction="DESCENDING") \
                                  .limit(limit)
                async for doc in query.stream():
                    friendship = _format_friendship_document(doc)
                    if friendship:
                        friendships[friendship.id] = friendship
        ordered = sorted(friendships.values(), key=lambda f: f.created_at, reverse=True)
        return ordered[:limit]
