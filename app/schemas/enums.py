import enum

class FriendRequestStatusEnum(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

class RelationshipStatusEnum(str, enum.Enum):
    NONE = "none"
    SENT = "sent"           # viewer sent a pending request to target
    RECEIVED = "received"   # target sent a pending request to viewer
    FRIENDS = "friends"

class SendOutcomeEnum(str, enum.Enum):
    CREATED = "created"
    RESENT = "resent"                   # a rejected or stale row was replaced
    ALREADY_SENT = "already_sent"
    ALREADY_FRIENDS = "already_friends"
    IMPLICIT_ACCEPT = "implicit_accept" # the target had already asked us

class FriendErrorCodeEnum(str, enum.Enum):
    SELF_REFERENCE = "self_reference"
    CONFLICT = "conflict"
    STALE_STATE = "stale_state"
    STORE_UNAVAILABLE = "store_unavailable"
    INCONSISTENT_DATA = "inconsistent_data"
    NOT_FOUND = "not_found"
    NOT_AUTHORIZED = "not_authorized"

class FriendEventTypeEnum(str, enum.Enum):
    FRIEND_REQUEST_RECEIVED = "friend_request_received"
    CONNECTION_ACCEPTED = "connection_accepted"
    CONNECTION_REJECTED = "connection_rejected"
