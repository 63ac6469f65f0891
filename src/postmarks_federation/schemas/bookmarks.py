from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class Bookmark(BaseModel):
    """Schema for a bookmark, the unit of content published as a Note."""

    id: int = Field(ge=1)
    url: str = Field(min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[str] = Field(
        default=None, description="Space-separated tags, each with its sigil (e.g. '#a #b')."
    )


class BookmarkPermissions(BaseModel):
    """Schema for the allow/block lists attached to a bookmark (0 = global)."""

    bookmark_id: int = Field(ge=0)
    allowed: Optional[str] = None
    blocked: Optional[str] = None


class BroadcastRequest(BaseModel):
    """Schema for a request to federate a bookmark lifecycle event."""

    bookmark: Bookmark
    action: str = Field(description="One of 'create', 'update' or 'delete'.")


class FollowRequest(BaseModel):
    """Schema for a request to follow or unfollow a remote actor by handle."""

    handle: str = Field(pattern=r"^@?[^@\s]+@[^@\s]+$", examples=["@alice@social.example"])


class FollowerRequest(BaseModel):
    """Schema for adding or removing a follower by actor URI."""

    actor: str = Field(pattern=r"^https?://[^\s/]+/\S*$", examples=["https://social.example/users/bob"])
