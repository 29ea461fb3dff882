# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic models shared by the relay components.

Field names follow the JSON keys exchanged with the dashboard and with the
Mailjet API, hence the capitalized attribute names.

Models:
    - RelayConfig: Startup configuration (immutable)
    - EventRecord: One stored webhook event
    - MessagePayload / UpstreamMessage: Send-message request and its upstream form
    - EventSetupPayload / EventCallbackUrl: Registration request and its upstream form
    - ApiError: Error body returned for every non-2xx response
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .errors import AuthMissing


class RelayConfig(BaseModel):
    """Process-wide configuration read once at startup.

    Attributes:
        base_url: Base URL of the Mailjet API (e.g. ``https://api.mailjet.com``).
        max_events_count: Maximum events kept per tenant (0 = unbounded).
        default: Default send-message field values exposed to the dashboard.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    base_url: Annotated[str, Field(default="", description="Mailjet API base URL")]
    max_events_count: Annotated[
        int,
        Field(default=0, ge=0, description="Max stored events per tenant (0 = unbounded)")
    ]
    default: Annotated[
        dict[str, str],
        Field(default_factory=dict, description="Default send-message field values")
    ]


class EventRecord(BaseModel):
    """A normalized inbound notification.

    ``Payload`` holds the whole decoded body so provider fields unknown to the
    relay survive the store round-trip.
    """

    EventType: str = ""
    Payload: Any = None


EventSequence = TypeAdapter(list[EventRecord])


class MessagePayload(BaseModel):
    """Send-message request posted by the dashboard."""

    FromEmail: str = ""
    Recipient: str = ""
    Subject: str = ""
    Body: str = ""


class UpstreamMessage(BaseModel):
    """Body of ``POST /v3/send/message``."""

    model_config = ConfigDict(populate_by_name=True)

    FromEmail: str
    Subject: str
    To: str
    Body: str = Field(alias="Html-part")


class EventSetupPayload(BaseModel):
    """Webhook registration request posted by the dashboard."""

    EventType: str = ""
    CallbackUrl: str = ""


class EventCallbackUrl(BaseModel):
    """Body of the upstream ``eventcallbackurl`` resource."""

    EventType: str | None = None
    Url: str


class ApiError(BaseModel):
    ErrorMessage: str


@dataclass(frozen=True)
class Credentials:
    """Basic-auth pair forwarded to the upstream on each call."""

    api_key: str
    api_secret: str

    @classmethod
    def require(cls, api_key: str | None, api_secret: str | None) -> "Credentials":
        """Build credentials, rejecting a missing or empty key or secret.

        Raises:
            AuthMissing: If the pair is absent or either half is empty.
        """
        if api_key is None and api_secret is None:
            raise AuthMissing("Error when reading auth")
        if not api_key:
            raise AuthMissing("API key is mandatory")
        if not api_secret:
            raise AuthMissing("API secret is mandatory")
        return cls(api_key=api_key, api_secret=api_secret)
