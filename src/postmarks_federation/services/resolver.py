from __future__ import annotations

import logging
from typing import Optional, Tuple

import httpx

logger = logging.getLogger(__name__)


class InboxNotFoundError(LookupError):
    """Raised when a reachable actor profile carries no inbox."""


def split_handle(handle: str) -> Tuple[str, str]:
    """Split ``@user@domain`` (leading ``@`` optional) into ``(user, domain)``."""
    parts = handle.split("@")
    if len(parts) < 2:
        raise ValueError(f"not an account handle: {handle!r}")
    return parts[-2], parts[-1]


class RemoteActorResolver:
    """Resolve remote actors through WebFinger and their profile documents."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def lookup_actor_info(self, handle: str) -> Optional[str]:
        """Canonical actor URI for ``handle``, or None when it cannot be resolved."""
        try:
            user, domain = split_handle(handle)
            response = await self.client.get(
                f"https://{domain}/.well-known/webfinger/?resource=acct:{user}@{domain}"
            )
            data = response.json()
            self_link = next(
                (link for link in data["links"] if link.get("rel") == "self"), None
            )
            if not self_link or not self_link.get("href"):
                raise ValueError("no self link in webfinger response")
            return self_link["href"]
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Couldn't look up canonical actor info for %s: %s", handle, exc)
            return None

    async def get_inbox_from_actor_profile(self, profile_url: str) -> Optional[str]:
        """Inbox URI from the actor profile at ``profile_url``.

        Returns:
            The inbox, or None when the profile cannot be fetched.

        Raises:
            InboxNotFoundError: If the profile was fetched but has no inbox.
        """
        try:
            response = await self.client.get(f"{profile_url}.json")
        except httpx.HTTPError as exc:
            logger.warning("Couldn't fetch actor profile %s: %s", profile_url, exc)
            return None
        try:
            data = response.json()
        except ValueError:
            data = None
        inbox = data.get("inbox") if isinstance(data, dict) else None
        if not inbox:
            raise InboxNotFoundError(
                f"Couldn't find inbox at supplied profile url {profile_url}"
            )
        return inbox


__all__ = ["InboxNotFoundError", "RemoteActorResolver", "split_handle"]
