from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set
from urllib.parse import urlparse

from postmarks_federation.core.permissions import filter_recipients, parse_blocklist
from postmarks_federation.core.security import generate_key_pair
from postmarks_federation.core.settings import FederationSettings
from postmarks_federation.db.repository import FederationRepository
from postmarks_federation.schemas import Bookmark

from .activitypub import ActivityBuilder
from .delivery import ActivityDeliverer, DeliveryOutcome
from .resolver import RemoteActorResolver

logger = logging.getLogger(__name__)


@dataclass
class BroadcastResult:
    """The activity sent by a broadcast and the deliveries still in flight."""

    activity: Optional[Dict[str, Any]] = None
    recipients: List[str] = field(default_factory=list)
    tasks: List["asyncio.Task[DeliveryOutcome]"] = field(default_factory=list)

    async def outcomes(self) -> List[DeliveryOutcome]:
        """Wait for every delivery and return their outcomes in recipient order."""
        if not self.tasks:
            return []
        return list(await asyncio.gather(*self.tasks))


class FederationService:
    """Coordinator for the local actor's outbound federation.

    The FederationService handles:
    - first-time account setup and profile refresh
    - broadcasting bookmark lifecycle events to followers
    - following and unfollowing remote actors
    """

    def __init__(
        self,
        *,
        settings: FederationSettings,
        repository: FederationRepository,
        builder: ActivityBuilder,
        deliverer: ActivityDeliverer,
        resolver: RemoteActorResolver,
    ) -> None:
        """Initialize the FederationService with required dependencies.

        Args:
            settings: Configuration settings for the service.
            repository: Database repository for data persistence.
            builder: Builder for outbound activities.
            deliverer: Signs and sends activities to remote inboxes.
            resolver: Resolves remote handles and inboxes.
        """
        self._settings = settings
        self._repository = repository
        self._builder = builder
        self._deliverer = deliverer
        self._resolver = resolver
        self._pending: Set[asyncio.Task] = set()

    @property
    def builder(self) -> ActivityBuilder:
        return self._builder

    @property
    def disabled(self) -> bool:
        return self._settings.federation_disabled

    # Account ------------------------------------------------------------------

    def bootstrap_account(self) -> None:
        """Create the account on first run and refresh its profile on every run."""
        if self.disabled:
            logger.info("Federation is disabled; skipping account setup.")
            return
        settings = self._settings
        if not self._repository.has_account():
            logger.info("Generating key pair for %s", settings.actor_name)
            public_key, private_key = generate_key_pair(settings.rsa_key_size)
            self._repository.create_account(
                name=settings.actor_name,
                actor=self._actor_document(public_key),
                webfinger=self._builder.webfinger_json(),
                public_key=public_key,
                private_key=private_key,
            )
            return
        public_key = self._repository.get_public_key() or ""
        self._repository.update_actor(settings.actor_name, self._actor_document(public_key))

    def _actor_document(self, public_key: str) -> Dict[str, Any]:
        return self._builder.actor_json(
            display_name=self._settings.display_name,
            summary=self._settings.description,
            avatar=self._settings.avatar,
            public_key=public_key,
        )

    def get_actor_document(self) -> Optional[Dict[str, Any]]:
        actor = self._repository.get_actor()
        return self._builder.backfill_actor(actor) if actor is not None else None

    # Broadcast ----------------------------------------------------------------

    def recipients_for(self, bookmark_id: int, followers: List[str]) -> List[str]:
        """Followers allowed to receive activities about ``bookmark_id``."""
        bookmark_permissions = self._repository.get_permissions_for_bookmark(bookmark_id)
        global_permissions = self._repository.get_global_permissions()
        blocklist = parse_blocklist(
            bookmark_permissions.blocked if bookmark_permissions else None,
            global_permissions.blocked if global_permissions else None,
        )
        return filter_recipients(followers, blocklist)

    def record_bookmark(self, bookmark: Bookmark, action: str) -> None:
        """Keep the outbox's bookmark source in step with the event."""
        if action in ("create", "update"):
            self._repository.add_bookmark(bookmark)
        elif action == "delete":
            self._repository.delete_bookmark(bookmark.id)

    def build_activity(self, bookmark: Bookmark, action: str) -> Optional[Dict[str, Any]]:
        if action == "create":
            note = self._builder.create_note(bookmark)
            return self._builder.create_message(note, bookmark.id)
        if action == "update":
            return self._builder.create_update_message(bookmark)
        if action == "delete":
            return self._builder.create_delete_message(bookmark)
        logger.warning("Unsupported broadcast action %r", action)
        return None

    async def broadcast_message(self, bookmark: Bookmark, action: str) -> BroadcastResult:
        """Send the activity for a bookmark event to every permitted follower.

        Deliveries start as independent tasks and are not awaited here; the
        returned result exposes them for callers that want the outcomes.
        """
        if self.disabled:
            return BroadcastResult()
        self.record_bookmark(bookmark, action)

        followers = self._repository.get_followers()
        if not followers:
            logger.info(
                "No followers for account %s", self._settings.actor_name
            )
            return BroadcastResult()

        recipients = self.recipients_for(bookmark.id, followers)
        activity = self.build_activity(bookmark, action)
        if activity is None:
            return BroadcastResult()

        logger.info(
            "Sending %s for bookmark %s to %d of %d followers",
            activity["type"],
            bookmark.id,
            len(recipients),
            len(followers),
        )
        result = BroadcastResult(activity=activity, recipients=recipients)
        for follower in recipients:
            inbox = f"{follower}/inbox"
            target_domain = urlparse(follower).netloc
            result.tasks.append(self._spawn(activity, target_domain, inbox))
        return result

    def _spawn(
        self, activity: Dict[str, Any], target_domain: str, inbox: str
    ) -> "asyncio.Task[DeliveryOutcome]":
        task = asyncio.create_task(
            self._deliverer.sign_and_send(activity, target_domain, inbox)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for deliveries still in flight, e.g. at shutdown."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    # Follow -------------------------------------------------------------------

    async def follow(self, handle: str) -> Optional[DeliveryOutcome]:
        """Follow the remote actor behind ``handle``.

        Returns:
            The delivery outcome, or None when the handle or its profile cannot be
            resolved.

        Raises:
            InboxNotFoundError: If the actor profile has no inbox.
        """
        if self.disabled:
            return None
        actor_uri = await self._resolver.lookup_actor_info(handle)
        if actor_uri is None:
            return None
        inbox = await self._resolver.get_inbox_from_actor_profile(actor_uri)
        if inbox is None:
            logger.info("Not following %s: actor profile unreachable", handle)
            return None
        message = self._builder.create_follow_message(actor_uri)
        outcome = await self._deliverer.sign_and_send(message, urlparse(inbox).netloc, inbox)
        self._repository.add_following(actor_uri)
        return outcome

    async def unfollow(self, handle: str) -> Optional[DeliveryOutcome]:
        """Undo an earlier follow of ``handle``; None when there is nothing to undo."""
        if self.disabled:
            return None
        actor_uri = await self._resolver.lookup_actor_info(handle)
        if actor_uri is None:
            return None
        message = self._builder.create_unfollow_message(actor_uri)
        if message is None:
            return None
        inbox = await self._resolver.get_inbox_from_actor_profile(actor_uri)
        if inbox is None:
            logger.info("Not unfollowing %s: actor profile unreachable", handle)
            return None
        outcome = await self._deliverer.sign_and_send(message, urlparse(inbox).netloc, inbox)
        self._repository.remove_following(actor_uri)
        return outcome

    # Followers ----------------------------------------------------------------

    def add_follower(self, actor_uri: str) -> List[str]:
        """Record ``actor_uri`` as a follower and return the follower list."""
        self._repository.add_follower(actor_uri)
        return self._repository.get_followers() or []

    def remove_follower(self, actor_uri: str) -> List[str]:
        self._repository.remove_follower(actor_uri)
        return self._repository.get_followers() or []

    async def aclose(self) -> None:
        await self.drain()
        await self._deliverer.aclose()
        await self._resolver.aclose()
