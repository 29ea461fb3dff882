# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Authenticated HTTP access to the Mailjet REST API.

The gateway is stateless: each call opens its own ``aiohttp`` session,
authenticates with the caller's basic-auth pair and returns the status and
body. There is no retry and no caching; a bounded total timeout keeps a slow
upstream from pinning request workers indefinitely.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import aiohttp

from .errors import UpstreamUnavailable
from .logger import get_logger
from .models import Credentials

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class UpstreamResponse:
    """Status line and raw body returned by the upstream."""

    status: int
    reason: str
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class UpstreamGateway:
    """Stateless request/response client for the upstream API.

    Attributes:
        timeout: Total timeout in seconds applied to each call.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.timeout = timeout
        self.logger = get_logger("UpstreamGateway")

    async def call(
        self,
        method: str,
        url: str,
        credentials: Credentials,
        body: Any = None,
    ) -> UpstreamResponse:
        """Issue one authenticated request.

        Args:
            method: HTTP method (GET, POST, PUT).
            url: Absolute upstream URL.
            credentials: Basic-auth pair of the tenant.
            body: Optional JSON-serializable body, sent as ``application/json``.

        Returns:
            The upstream status, reason phrase and body.

        Raises:
            UpstreamUnavailable: If the upstream cannot be reached or the call
                times out.
        """
        auth = aiohttp.BasicAuth(credentials.api_key, credentials.api_secret)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, json=body, auth=auth) as resp:
                    content = await resp.read()
                    response = UpstreamResponse(
                        status=resp.status,
                        reason=resp.reason or "",
                        body=content,
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            self.logger.warning("Upstream %s %s not reachable: %s", method, url, exc)
            raise UpstreamUnavailable(f"Upstream not reachable: {str(exc) or type(exc).__name__}") from exc

        self.logger.debug("Upstream %s %s -> %d %s", method, url, response.status, response.reason)
        return response
