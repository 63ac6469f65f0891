from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from postmarks_federation.db.repository import FederationRepository
from postmarks_federation.services.activitypub import ActivityBuilder, synthesize_activity

OUTBOX_PAGE_SIZE = 20
COLLECTION_CONTEXT = ["https://www.w3.org/ns/activitystreams"]


def ordered_collection(
    collection_id: str,
    items: List[Any],
    *,
    total_items: int,
    page: int = 1,
    next_page: Optional[int] = None,
) -> Dict[str, Any]:
    """An OrderedCollection whose ``first`` page holds ``items``."""
    first: Dict[str, Any] = {
        "type": "OrderedCollectionPage",
        "totalItems": total_items,
        "partOf": collection_id,
        "orderedItems": items,
        "id": f"{collection_id}?page={page}",
    }
    if next_page is not None:
        first["next"] = f"{collection_id}?page={next_page}"
    return {
        "type": "OrderedCollection",
        "totalItems": total_items,
        "id": collection_id,
        "first": first,
        "@context": COLLECTION_CONTEXT,
    }


@dataclass
class CollectionRenderer:
    """Render the local actor's followers, following and outbox collections."""

    builder: ActivityBuilder
    repository: FederationRepository

    def followers(self) -> Dict[str, Any]:
        followers = self.repository.get_followers() or []
        return ordered_collection(
            f"{self.builder.actor_uri}/followers", followers, total_items=len(followers)
        )

    def following(self) -> Dict[str, Any]:
        following = self.repository.get_following() or []
        return ordered_collection(
            f"{self.builder.actor_uri}/following", following, total_items=len(following)
        )

    def outbox(self, page: int = 1) -> Dict[str, Any]:
        """One page of the outbox.

        ``next`` is always present, including on the last page.
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        total = self.repository.get_bookmark_count()
        bookmarks = self.repository.get_bookmarks(
            OUTBOX_PAGE_SIZE, (page - 1) * OUTBOX_PAGE_SIZE
        )
        items = [synthesize_activity(self._note_for(bookmark)) for bookmark in bookmarks]
        return ordered_collection(
            f"{self.builder.actor_uri}/outbox",
            items,
            total_items=total,
            page=page,
            next_page=page + 1,
        )

    def _note_for(self, bookmark) -> Dict[str, Any]:
        guid = self.repository.get_guid_for_bookmark_id(bookmark.id)
        stored = self.repository.get_message(guid) if guid else None
        return stored or self.builder.create_note(bookmark)
