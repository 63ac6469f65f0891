from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from postmarks_federation.schemas import Bookmark, BookmarkPermissions

from .base import DatabaseSessionManager
from .models import AccountRecord, BookmarkRecord, MessageRecord, PermissionRecord

logger = logging.getLogger(__name__)

GLOBAL_PERMISSIONS_ID = 0


def _dedupe(items: List[str]) -> List[str]:
    """Drop repeated entries, keeping the first occurrence of each."""
    return list(dict.fromkeys(items))


class FederationRepository:
    """Persistence primitives backed by SQLAlchemy for the local actor's federation data.

    Reads return None when no record exists rather than raising.
    """

    def __init__(self, db: DatabaseSessionManager) -> None:
        """Initializes the FederationRepository with a database session manager.

        Args:
            db: The DatabaseSessionManager instance.
        """
        self._db = db

    # Account ----------------------------------------------------------------

    def _account(self, session: Session) -> Optional[AccountRecord]:
        return session.scalars(select(AccountRecord).limit(1)).first()

    def has_account(self) -> bool:
        with self._db.session() as session:
            return self._account(session) is not None

    def create_account(
        self,
        *,
        name: str,
        actor: Dict[str, Any],
        webfinger: Dict[str, Any],
        public_key: str,
        private_key: str,
    ) -> None:
        """Inserts or replaces the local account with a fresh key pair.

        Args:
            name: The account name in ``user@domain`` form.
            actor: The actor document to publish.
            webfinger: The WebFinger document to publish.
            public_key: SPKI PEM public key.
            private_key: PKCS8 PEM private key.
        """
        with self._db.session() as session:
            record = session.get(AccountRecord, name)
            if record is None:
                record = AccountRecord(name=name)
                session.add(record)
            record.actor = json.dumps(actor)
            record.webfinger = json.dumps(webfinger)
            record.pubkey = public_key
            record.privkey = private_key

    def update_actor(self, name: str, actor: Dict[str, Any]) -> None:
        """Rewrites the actor document of the local account."""
        with self._db.session() as session:
            record = self._account(session)
            if record is None:
                logger.warning("No account record to update for %s", name)
                return
            record.actor = json.dumps(actor)

    def get_actor(self) -> Optional[Dict[str, Any]]:
        with self._db.session() as session:
            record = self._account(session)
            if record is None or not record.actor:
                return None
            return json.loads(record.actor)

    def get_webfinger(self) -> Optional[Dict[str, Any]]:
        with self._db.session() as session:
            record = self._account(session)
            if record is None or not record.webfinger:
                return None
            return json.loads(record.webfinger)

    def get_public_key(self) -> Optional[str]:
        with self._db.session() as session:
            record = self._account(session)
            return record.pubkey if record else None

    def get_private_key(self) -> Optional[str]:
        with self._db.session() as session:
            record = self._account(session)
            return record.privkey if record else None

    # Social graph -------------------------------------------------------------

    def _get_list(self, column: str) -> Optional[List[str]]:
        with self._db.session() as session:
            record = self._account(session)
            raw = getattr(record, column) if record else None
            if not raw:
                return None
            return json.loads(raw)

    def _set_list(self, column: str, items: List[str]) -> None:
        with self._db.session() as session:
            record = self._account(session)
            if record is None:
                logger.warning("No account record; cannot store %s", column)
                return
            setattr(record, column, json.dumps(_dedupe(items)))

    def get_followers(self) -> Optional[List[str]]:
        return self._get_list("followers")

    def set_followers(self, followers: List[str]) -> None:
        self._set_list("followers", followers)

    def add_follower(self, actor_uri: str) -> None:
        self.set_followers((self.get_followers() or []) + [actor_uri])

    def remove_follower(self, actor_uri: str) -> None:
        followers = self.get_followers() or []
        self.set_followers([actor for actor in followers if actor != actor_uri])

    def get_following(self) -> Optional[List[str]]:
        return self._get_list("following")

    def set_following(self, following: List[str]) -> None:
        self._set_list("following", following)

    def add_following(self, actor_uri: str) -> None:
        self.set_following((self.get_following() or []) + [actor_uri])

    def remove_following(self, actor_uri: str) -> None:
        following = self.get_following() or []
        self.set_following([actor for actor in following if actor != actor_uri])

    def get_blocks(self) -> Optional[List[str]]:
        return self._get_list("blocks")

    def set_blocks(self, blocks: List[str]) -> None:
        self._set_list("blocks", blocks)

    # Messages -----------------------------------------------------------------

    def insert_message(
        self, guid: str, bookmark_id: Optional[int], message: Dict[str, Any]
    ) -> None:
        """Inserts a message, replacing any existing record with the same guid.

        A message tied to a bookmark also replaces every earlier message for that
        bookmark, so each bookmark has at most one live message.
        """
        with self._db.session() as session:
            stale = MessageRecord.guid == guid
            if bookmark_id is not None:
                stale = or_(stale, MessageRecord.bookmark_id == bookmark_id)
            session.execute(delete(MessageRecord).where(stale))
            session.add(
                MessageRecord(
                    guid=guid,
                    bookmark_id=bookmark_id,
                    message=json.dumps(message, ensure_ascii=False),
                )
            )

    def get_message(self, guid: str) -> Optional[Dict[str, Any]]:
        with self._db.session() as session:
            record = session.scalars(
                select(MessageRecord).where(MessageRecord.guid == guid)
            ).first()
            return json.loads(record.message) if record else None

    def get_guid_for_bookmark_id(self, bookmark_id: int) -> Optional[str]:
        with self._db.session() as session:
            return session.scalars(
                select(MessageRecord.guid)
                .where(MessageRecord.bookmark_id == bookmark_id)
                .order_by(MessageRecord.seq)
            ).first()

    # Delete flows look the guid up under this name.
    find_message_guid = get_guid_for_bookmark_id

    def get_bookmark_id_from_message_guid(self, guid: str) -> Optional[int]:
        with self._db.session() as session:
            return session.scalars(
                select(MessageRecord.bookmark_id).where(MessageRecord.guid == guid)
            ).first()

    def delete_message(self, guid: str) -> None:
        with self._db.session() as session:
            session.execute(delete(MessageRecord).where(MessageRecord.guid == guid))

    def delete_messages_for_bookmark(self, bookmark_id: int) -> int:
        """Removes every message stored for ``bookmark_id``; returns how many."""
        with self._db.session() as session:
            result = session.execute(
                delete(MessageRecord).where(MessageRecord.bookmark_id == bookmark_id)
            )
            return result.rowcount or 0

    def find_message(self, fragment: str) -> List[Dict[str, Any]]:
        """Messages whose JSON contains ``fragment``, oldest first.

        Returns:
            A list of ``{"guid", "bookmark_id", "message"}`` rows, where ``message``
            is the raw JSON text.
        """
        with self._db.session() as session:
            records = session.scalars(
                select(MessageRecord)
                .where(MessageRecord.message.contains(fragment, autoescape=True))
                .order_by(MessageRecord.seq)
            ).all()
            return [
                {"guid": r.guid, "bookmark_id": r.bookmark_id, "message": r.message}
                for r in records
            ]

    # Permissions --------------------------------------------------------------

    def get_permissions_for_bookmark(
        self, bookmark_id: int
    ) -> Optional[BookmarkPermissions]:
        with self._db.session() as session:
            record = session.get(PermissionRecord, bookmark_id)
            if record is None:
                return None
            return BookmarkPermissions(
                bookmark_id=record.bookmark_id,
                allowed=record.allowed,
                blocked=record.blocked,
            )

    def set_permissions_for_bookmark(
        self, bookmark_id: int, allowed: Optional[str], blocked: Optional[str]
    ) -> None:
        """Inserts or replaces the allow/block lists for a bookmark."""
        with self._db.session() as session:
            record = session.get(PermissionRecord, bookmark_id)
            if record is None:
                record = PermissionRecord(bookmark_id=bookmark_id)
                session.add(record)
            record.allowed = allowed
            record.blocked = blocked

    def get_global_permissions(self) -> Optional[BookmarkPermissions]:
        return self.get_permissions_for_bookmark(GLOBAL_PERMISSIONS_ID)

    def set_global_permissions(
        self, allowed: Optional[str], blocked: Optional[str]
    ) -> None:
        self.set_permissions_for_bookmark(GLOBAL_PERMISSIONS_ID, allowed, blocked)

    # Bookmarks ----------------------------------------------------------------

    def add_bookmark(self, bookmark: Bookmark) -> None:
        with self._db.session() as session:
            record = session.get(BookmarkRecord, bookmark.id)
            if record is None:
                record = BookmarkRecord(id=bookmark.id, created_at=int(time.time()))
                session.add(record)
            record.url = bookmark.url
            record.title = bookmark.title
            record.description = bookmark.description
            record.tags = bookmark.tags

    def delete_bookmark(self, bookmark_id: int) -> None:
        with self._db.session() as session:
            session.execute(delete(BookmarkRecord).where(BookmarkRecord.id == bookmark_id))

    def get_bookmark(self, bookmark_id: int) -> Optional[Bookmark]:
        with self._db.session() as session:
            record = session.get(BookmarkRecord, bookmark_id)
            return self._to_bookmark(record) if record else None

    def get_bookmark_count(self) -> int:
        with self._db.session() as session:
            return session.scalar(select(func.count()).select_from(BookmarkRecord)) or 0

    def get_bookmarks(self, limit: int, offset: int) -> List[Bookmark]:
        """A page of bookmarks, newest first."""
        with self._db.session() as session:
            records = session.scalars(
                select(BookmarkRecord)
                .order_by(BookmarkRecord.created_at.desc(), BookmarkRecord.id.desc())
                .limit(limit)
                .offset(offset)
            ).all()
            return [self._to_bookmark(record) for record in records]

    @staticmethod
    def _to_bookmark(record: BookmarkRecord) -> Bookmark:
        return Bookmark(
            id=record.id,
            url=record.url,
            title=record.title,
            description=record.description,
            tags=record.tags,
        )
