from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone
from app.schemas.enums import FriendEventTypeEnum

class FriendEvent(BaseModel):
    event_type: FriendEventTypeEnum
    actor_id: str          # the user whose action produced the event
    counterparty_id: str   # the user the notification is for
    request_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
