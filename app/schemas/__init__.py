from .enums import ( # Relationship state machine enums
    FriendRequestStatusEnum,
    RelationshipStatusEnum,
    SendOutcomeEnum,
    FriendErrorCodeEnum,
    FriendEventTypeEnum,
)
from .friend_request import FriendRequestCreate, FriendRequestRead
from .friendship import FriendshipRead, FriendRead, ordered_pair
from .friend_action import FriendActionResult, FriendStatusRead
from .notification import FriendEvent
from .token import TokenPayload
