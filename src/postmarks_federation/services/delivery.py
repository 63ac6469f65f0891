from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx

from postmarks_federation.core.security import SigningError, sign_request
from postmarks_federation.db.repository import FederationRepository

logger = logging.getLogger(__name__)


@dataclass
class DeliveryOutcome:
    """Result of delivering one activity to one inbox."""

    inbox: str
    delivered: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class ActivityDeliverer:
    """Signs activities with the local actor's key and POSTs them to remote inboxes."""

    def __init__(
        self,
        *,
        domain: str,
        account: str,
        repository: FederationRepository,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        deliveries_total: Optional[Any] = None,
    ):
        """Initializes the ActivityDeliverer.

        Args:
            domain: Host name of the local server.
            account: Username of the local actor.
            repository: Store holding the actor's private key.
            client: HTTP client to use; one is created when omitted.
            timeout: Request timeout in seconds for a created client.
            deliveries_total: Optional prometheus Counter labelled by ``status``.
        """
        self.domain = domain
        self.account = account
        self.repository = repository
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.deliveries_total = deliveries_total

    @property
    def key_id(self) -> str:
        return f"https://{self.domain}/u/{self.account}"

    async def aclose(self) -> None:
        await self.client.aclose()

    async def sign_and_send(
        self, message: Dict[str, Any], target_domain: str, inbox: str
    ) -> DeliveryOutcome:
        """Deliver ``message`` to ``inbox`` on ``target_domain``.

        Never raises: a missing key, signing failure, network error or non-2xx
        response is logged and reported in the returned outcome.
        """
        private_key = self.repository.get_private_key()
        if private_key is None:
            logger.error(
                "No private key found for %s@%s; not delivering to %s",
                self.account,
                self.domain,
                inbox,
            )
            return self._record(DeliveryOutcome(inbox=inbox, delivered=False, error="no private key"))

        parsed = urlparse(inbox)
        inbox_path = parsed.path or "/"
        if parsed.query:
            inbox_path += f"?{parsed.query}"

        try:
            signed = sign_request(
                message,
                key_id=self.key_id,
                private_key_pem=private_key,
                target_host=target_domain,
                inbox_path=inbox_path,
            )
            response = await self.client.post(
                inbox, content=signed.body, headers=signed.headers()
            )
            logger.info(
                "Sent message to an inbox at %s: status %s, body %r",
                target_domain,
                response.status_code,
                response.text,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error delivering to {inbox}: {e}")
            return self._record(
                DeliveryOutcome(
                    inbox=inbox,
                    delivered=False,
                    status_code=e.response.status_code,
                    error=str(e),
                )
            )
        except (httpx.HTTPError, SigningError) as e:
            logger.error(f"Error delivering to {inbox}: {e}")
            return self._record(DeliveryOutcome(inbox=inbox, delivered=False, error=str(e)))

        return self._record(
            DeliveryOutcome(inbox=inbox, delivered=True, status_code=response.status_code)
        )

    def _record(self, outcome: DeliveryOutcome) -> DeliveryOutcome:
        if self.deliveries_total is not None:
            self.deliveries_total.labels(
                status="delivered" if outcome.delivered else "failed"
            ).inc()
        return outcome
