from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from .enums import FriendRequestStatusEnum

# --- FriendRequest Schemas ---

class FriendRequestCreate(BaseModel):
    target_user_id: str = Field(..., min_length=1)

class FriendRequestRead(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    status: FriendRequestStatusEnum
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    def sort_key(self) -> tuple:
        """Total order used to pick a winner when two reversed requests race."""
        return (self.created_at, self.id)
