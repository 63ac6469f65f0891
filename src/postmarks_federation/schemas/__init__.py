from .bookmarks import (
    Bookmark,
    BookmarkPermissions,
    BroadcastRequest,
    FollowerRequest,
    FollowRequest,
)

__all__ = [
    "Bookmark",
    "BookmarkPermissions",
    "BroadcastRequest",
    "FollowerRequest",
    "FollowRequest",
]
