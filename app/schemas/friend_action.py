from pydantic import BaseModel
from typing import Optional

from .enums import RelationshipStatusEnum, SendOutcomeEnum, FriendErrorCodeEnum
from .friend_request import FriendRequestRead


class FriendActionResult(BaseModel):
    """
    Explicit result of a caller-facing friend operation.
    On success `status` is the resulting canonical relationship status;
    on failure `error` carries the typed reason.
    """
    success: bool
    status: Optional[RelationshipStatusEnum] = None
    outcome: Optional[SendOutcomeEnum] = None
    error: Optional[FriendErrorCodeEnum] = None
    detail: Optional[str] = None
    request: Optional[FriendRequestRead] = None


class FriendStatusRead(BaseModel):
    target_user_id: str
    status: RelationshipStatusEnum
