# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Webhook callback registration against the Mailjet ``eventcallbackurl`` resource.

The upstream offers GET, POST and PUT but no upsert, and keys a tenant's
registration by event type alone. Reconciliation is therefore a
check-then-act sequence:

1. ``GET {collection}/{event_type}|false``
2. 404 -> ``POST {collection}`` with ``{"EventType", "Url"}`` (any 2xx accepted)
3. 200 -> ``PUT {collection}/{event_type}|false`` with ``{"Url"}`` (exactly 200)
4. any other GET status -> failure, nothing written

Two reconcilers racing on the same tenant and event type may both observe
"not found" and both write. This is accepted: the upstream is the authority
and resolves it as last-write-wins. No local lock is taken, and reconciliation
never runs while an event-store lock is held.

Example:
    Registering a callback::

        reconciler = WebhookReconciler(UpstreamGateway(), "https://api.mailjet.com")
        outcome = await reconciler.reconcile(credentials, "open", "https://dash.example.com/hook")
"""

from __future__ import annotations

from enum import Enum
from urllib.parse import quote

from .errors import RegistrationFailed
from .gateway import UpstreamGateway
from .logger import get_logger
from .models import Credentials, EventCallbackUrl

EVENT_CALLBACK_PATH = "/v3/REST/eventcallbackurl"
# Registrations managed here are never the "backup" callback.
BACKUP_FLAG = "false"


class RegistrationOutcome(str, Enum):
    """Write performed to reach the desired registration."""

    CREATED = "created"
    UPDATED = "updated"


class WebhookReconciler:
    """Makes the upstream callback URL for an event type match a desired value."""

    def __init__(self, gateway: UpstreamGateway, base_url: str):
        self.gateway = gateway
        self.base_url = base_url.rstrip("/")
        self.logger = get_logger("WebhookReconciler")

    @property
    def collection_url(self) -> str:
        return f"{self.base_url}{EVENT_CALLBACK_PATH}"

    def event_url(self, event_type: str) -> str:
        """Per-event-type locator, e.g. ``.../eventcallbackurl/open|false``."""
        return f"{self.collection_url}/{quote(event_type, safe='')}|{BACKUP_FLAG}"

    async def reconcile(
        self,
        credentials: Credentials,
        event_type: str,
        callback_url: str,
    ) -> RegistrationOutcome:
        """Create or replace the tenant's callback for ``event_type``.

        Raises:
            RegistrationFailed: If the upstream answers with an unexpected
                status at any step.
            UpstreamUnavailable: On transport failure.
        """
        event_url = self.event_url(event_type)

        existing = await self.gateway.call("GET", event_url, credentials)
        self.logger.info("Upstream GET %s -> %d", event_url, existing.status)

        if existing.status == 404:
            body = EventCallbackUrl(EventType=event_type, Url=callback_url)
            created = await self.gateway.call(
                "POST", self.collection_url, credentials, body=body.model_dump()
            )
            self.logger.info("Upstream POST %s -> %d", self.collection_url, created.status)
            if not created.ok:
                raise RegistrationFailed(created.status, created.reason)
            return RegistrationOutcome.CREATED

        if existing.status == 200:
            body = EventCallbackUrl(Url=callback_url)
            updated = await self.gateway.call(
                "PUT", event_url, credentials, body=body.model_dump(exclude_none=True)
            )
            self.logger.info("Upstream PUT %s -> %d", event_url, updated.status)
            if updated.status != 200:
                raise RegistrationFailed(updated.status, updated.reason)
            return RegistrationOutcome.UPDATED

        raise RegistrationFailed(existing.status, existing.reason)
