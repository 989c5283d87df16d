from typing import Optional
from app.schemas.enums import FriendErrorCodeEnum


class FriendshipError(Exception):
    """Base class for failures of the friend-connection state machine."""
    code: FriendErrorCodeEnum = FriendErrorCodeEnum.STORE_UNAVAILABLE
    default_detail: str = "Friend operation failed."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class SelfReferenceError(FriendshipError):
    code = FriendErrorCodeEnum.SELF_REFERENCE
    default_detail = "You cannot send a friend request to yourself."


class ConflictError(FriendshipError):
    """A uniqueness violation on (sender_id, receiver_id), i.e. a concurrent send."""
    code = FriendErrorCodeEnum.CONFLICT
    default_detail = "A conflicting friend request was written concurrently. Try again later."


class StaleStateError(FriendshipError):
    """The request is no longer in the status the transition expected."""
    code = FriendErrorCodeEnum.STALE_STATE
    default_detail = "This friend request is no longer pending."


class StoreUnavailableError(FriendshipError):
    code = FriendErrorCodeEnum.STORE_UNAVAILABLE
    default_detail = "The relationship store is unavailable. Try again later."


class InconsistentDataError(FriendshipError):
    """A pending request exists next to the friendship that should have superseded it."""
    code = FriendErrorCodeEnum.INCONSISTENT_DATA
    default_detail = "Relationship data is inconsistent."


class RequestNotFoundError(FriendshipError):
    code = FriendErrorCodeEnum.NOT_FOUND
    default_detail = "Friend request not found."


class NotAuthorizedError(FriendshipError):
    code = FriendErrorCodeEnum.NOT_AUTHORIZED
    default_detail = "You are not authorized to respond to this request."
