from __future__ import annotations

import html
import json
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from postmarks_federation.db.repository import FederationRepository
from postmarks_federation.schemas import Bookmark

logger = logging.getLogger(__name__)

AS_CONTEXT = "https://www.w3.org/ns/activitystreams"
SECURITY_CONTEXT = "https://w3id.org/security/v1"
AS_PUBLIC = "https://www.w3.org/ns/activitystreams#Public"

_PERMALINK_GUID = re.compile(r"/m/([a-zA-Z0-9+/]+)")


def new_guid() -> str:
    """128 random bits as 32 hex characters."""
    return secrets.token_hex(16)


def guid_from_permalink(url: str) -> Optional[str]:
    match = _PERMALINK_GUID.search(url)
    return match.group(1) if match else None


def _render_description(description: Optional[str]) -> str:
    # only the first newline becomes a line break
    return (description or "").strip().replace("\n", "<br/>", 1)


@dataclass
class ActivityBuilder:
    """Translate bookmarks and social actions into ActivityStreams objects."""

    domain: str
    account: str
    repository: FederationRepository

    @property
    def actor_uri(self) -> str:
        return f"https://{self.domain}/u/{self.account}"

    @property
    def followers_uri(self) -> str:
        return f"{self.actor_uri}/followers"

    def permalink(self, guid: str) -> str:
        return f"https://{self.domain}/m/{guid}"

    def tag_uri(self, tag_name: str) -> str:
        return f"https://{self.domain}/tagged/{tag_name}"

    def _audience(self) -> List[str]:
        return [f"{self.followers_uri}/", AS_PUBLIC]

    def _split_tags(self, tags: Optional[str]) -> List[str]:
        if not tags:
            return []
        return [tag for tag in tags.split(" ") if tag]

    # Actor documents ------------------------------------------------------------

    def actor_json(
        self, *, display_name: str, summary: str, avatar: str, public_key: str
    ) -> Dict[str, Any]:
        extension = PurePosixPath(urlparse(avatar).path).suffix.lstrip(".")
        return {
            "@context": [AS_CONTEXT, SECURITY_CONTEXT],
            "id": self.actor_uri,
            "type": "Person",
            "preferredUsername": self.account,
            "name": display_name,
            "summary": summary,
            "icon": {
                "type": "Image",
                "mediaType": f"image/{extension}",
                "url": avatar,
            },
            "inbox": f"https://{self.domain}/api/inbox",
            "outbox": f"{self.actor_uri}/outbox",
            "followers": self.followers_uri,
            "following": f"{self.actor_uri}/following",
            "publicKey": {
                "id": f"{self.actor_uri}#main-key",
                "owner": self.actor_uri,
                "publicKeyPem": public_key,
            },
        }

    def webfinger_json(self) -> Dict[str, Any]:
        return {
            "subject": f"acct:{self.account}@{self.domain}",
            "links": [
                {
                    "rel": "self",
                    "type": "application/activity+json",
                    "href": self.actor_uri,
                }
            ],
        }

    def backfill_actor(self, actor: Dict[str, Any]) -> Dict[str, Any]:
        """Patch collection URIs missing from records written by older versions."""
        patched = dict(actor)
        patched.setdefault("followers", self.followers_uri)
        patched.setdefault("outbox", f"{self.actor_uri}/outbox")
        return patched

    # Content --------------------------------------------------------------------

    def create_note(self, bookmark: Bookmark) -> Dict[str, Any]:
        """Build the Note published for a bookmark.

        The title links to the bookmarked URL (the URL itself stands in for a blank
        title), the description follows, and tags appear both as inline hashtag
        links and as ``Hashtag`` entries in ``tag``.
        """
        tags = self._split_tags(bookmark.tags)
        link_text = bookmark.title if bookmark.title and bookmark.title.strip() else bookmark.url
        content = (
            f'<strong><a href="{html.escape(bookmark.url, quote=True)}" '
            f'rel="nofollow noopener noreferrer" target="_blank">{html.escape(link_text)}</a>'
            f"</strong><br/>{_render_description(bookmark.description)}"
        )
        if tags:
            linked_tags = " ".join(
                f'<a href="{self.tag_uri(tag[1:])}" class="mention hashtag" rel="tag">{tag}</a>'
                for tag in tags
            )
            content = f"{content}<p>{linked_tags}</p>"
        return {
            "@context": AS_CONTEXT,
            "id": self.permalink(new_guid()),
            "type": "Note",
            "published": _now_iso(),
            "attributedTo": self.actor_uri,
            "content": content,
            "to": self._audience(),
            "tag": [
                {"type": "Hashtag", "href": self.tag_uri(tag[1:]), "name": tag}
                for tag in tags
            ],
        }

    def create_message(
        self, note: Dict[str, Any], bookmark_id: Optional[int]
    ) -> Dict[str, Any]:
        """Wrap a Note in a Create activity and persist the Note."""
        message = {
            "@context": [AS_CONTEXT, SECURITY_CONTEXT],
            "id": self.permalink(new_guid()),
            "type": "Create",
            "actor": self.actor_uri,
            "to": self._audience(),
            "object": note,
        }
        self.repository.insert_message(guid_from_permalink(note["id"]), bookmark_id, note)
        return message

    def create_update_message(self, bookmark: Bookmark) -> Dict[str, Any]:
        """Build the activity announcing an edited bookmark.

        ``Create`` is used rather than ``Update`` because some servers mishandle
        ``Update`` for Notes. A bookmark that was never federated gets its Note built
        and stored here.
        """
        guid = self.repository.get_guid_for_bookmark_id(bookmark.id)
        note: Any
        if guid is None:
            note = self.create_note(bookmark)
            self.create_message(note, bookmark.id)
        else:
            note = self.permalink(guid)
        return {
            "@context": [AS_CONTEXT, SECURITY_CONTEXT],
            "id": self.permalink(new_guid()),
            "summary": f"{self.account} updated the bookmark",
            "type": "Create",
            "actor": self.actor_uri,
            "to": self._audience(),
            "object": note,
        }

    def create_delete_message(self, bookmark: Bookmark) -> Optional[Dict[str, Any]]:
        guid = self.repository.find_message_guid(bookmark.id)
        if guid is None:
            logger.warning(
                "No federated message for bookmark %s; nothing to delete", bookmark.id
            )
            return None
        self.repository.delete_messages_for_bookmark(bookmark.id)
        return {
            "@context": [AS_CONTEXT, SECURITY_CONTEXT],
            "id": self.permalink(guid),
            "type": "Delete",
            "actor": self.actor_uri,
            "to": self._audience(),
            "object": {"type": "Tombstone", "id": self.permalink(guid)},
        }

    # Social ---------------------------------------------------------------------

    def create_follow_message(self, target: str) -> Dict[str, Any]:
        guid = new_guid()
        message = {
            "@context": AS_CONTEXT,
            "id": guid,
            "type": "Follow",
            "actor": self.actor_uri,
            "object": target,
        }
        self.repository.insert_message(guid, None, message)
        return message

    def create_unfollow_message(self, target: str) -> Optional[Dict[str, Any]]:
        """Undo the most recent Follow of ``target``, or None if there is none."""
        follows = []
        for row in self.repository.find_message(target):
            message = json.loads(row["message"] or "{}")
            if message.get("type") == "Follow" and message.get("object") == target:
                follows.append(message)
        if not follows:
            logger.info("No Follow of %s on record; nothing to undo", target)
            return None
        return {
            "@context": AS_CONTEXT,
            "id": new_guid(),
            "type": "Undo",
            "actor": self.actor_uri,
            "object": follows[-1],
        }


def synthesize_activity(note: Dict[str, Any]) -> Dict[str, Any]:
    """A read-only Create around a stored Note.

    The id marks the Note guid with an ``a-`` prefix so the activity and the Note
    never share an id.
    """
    return {
        "id": note["id"].replace("/m/", "/m/a-", 1),
        "type": "Create",
        "published": note.get("published"),
        "actor": note.get("attributedTo"),
        "object": note,
    }


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()
