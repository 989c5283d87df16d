from pydantic import BaseModel
from datetime import datetime
from typing import Tuple


def ordered_pair(user_a: str, user_b: str) -> Tuple[str, str]:
    """Friendships are stored with user1_id < user2_id but queried unordered."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class FriendshipRead(BaseModel):
    id: str
    user1_id: str
    user2_id: str
    created_at: datetime

    class Config:
        from_attributes = True

    def other(self, user_id: str) -> str:
        return self.user2_id if self.user1_id == user_id else self.user1_id


class FriendRead(BaseModel):
    # One entry of a user's friend list, as seen from that user
    user_id: str
    friendship_id: str
    friendship_created_at: datetime
