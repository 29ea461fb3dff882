# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Forwarding of dashboard send-message requests to ``/v3/send/message``."""

from __future__ import annotations

from .errors import InvalidRequest, UpstreamRejected
from .gateway import UpstreamGateway, UpstreamResponse
from .logger import get_logger
from .models import Credentials, MessagePayload, UpstreamMessage

SEND_MESSAGE_PATH = "/v3/send/message"


class MessageRelay:
    """Translates a :class:`MessagePayload` into an upstream send call."""

    def __init__(self, gateway: UpstreamGateway, base_url: str):
        self.gateway = gateway
        self.base_url = base_url.rstrip("/")
        self.logger = get_logger("MessageRelay")

    @property
    def send_url(self) -> str:
        return f"{self.base_url}{SEND_MESSAGE_PATH}"

    @staticmethod
    def build(payload: MessagePayload) -> UpstreamMessage:
        """Validate mandatory fields and default the recipient to the sender.

        Raises:
            InvalidRequest: If FromEmail, Subject or Body is empty.
        """
        if not payload.FromEmail:
            raise InvalidRequest("FromEmail is mandatory")
        if not payload.Subject:
            raise InvalidRequest("Subject is mandatory")
        if not payload.Body:
            raise InvalidRequest("Body is mandatory")
        return UpstreamMessage(
            FromEmail=payload.FromEmail,
            Subject=payload.Subject,
            To=payload.Recipient or payload.FromEmail,
            Body=payload.Body,
        )

    async def send(self, credentials: Credentials, payload: MessagePayload) -> UpstreamResponse:
        """Post the message upstream.

        Raises:
            InvalidRequest: If a mandatory field is empty.
            UpstreamRejected: If the upstream does not answer 200.
            UpstreamUnavailable: On transport failure.
        """
        message = self.build(payload)
        response = await self.gateway.call(
            "POST", self.send_url, credentials, body=message.model_dump(by_alias=True)
        )
        if response.status != 200:
            raise UpstreamRejected(response.status, response.reason)
        self.logger.info("Message from %s to %s posted to send API", message.FromEmail, message.To)
        return response
