# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Error taxonomy for the relay.

Every error raised by the core derives from :class:`RelayError` and carries
the HTTP status used when the error reaches the request boundary, plus a
short machine-readable ``code``. Upstream rejections keep the status returned
by the upstream so it can be passed through verbatim.

:class:`ConfigError` is deliberately outside the hierarchy: it is only raised
at startup and aborts the process.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for errors converted to an ``ErrorMessage`` response."""

    status_code = 500
    code = "relay_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class MalformedPayload(RelayError):
    """Inbound body is not well-formed JSON of the expected shape."""

    status_code = 400
    code = "malformed_payload"


class InvalidRequest(RelayError):
    """A mandatory request field is missing or empty."""

    status_code = 400
    code = "invalid_request"


class InvalidTenantKey(RelayError):
    """Tenant key is empty once sanitized."""

    status_code = 400
    code = "invalid_tenant_key"

    def __init__(self, message: str = "An API Key must be provided"):
        super().__init__(message)


class AuthMissing(RelayError):
    """Basic-auth credentials are absent or incomplete."""

    status_code = 401
    code = "auth_missing"


class UnsupportedMethod(RelayError):
    status_code = 405
    code = "unsupported_method"

    def __init__(self, method: str):
        super().__init__(f"Unsupported method: {method}")
        self.method = method


class StoreCorrupt(RelayError):
    """Persisted event sequence exists but cannot be decoded."""

    code = "store_corrupt"


class StoreUnavailable(RelayError):
    """Events file could not be inspected, read or written."""

    code = "store_unavailable"


class UpstreamUnavailable(RelayError):
    """Transport failure while talking to the upstream API."""

    code = "upstream_unavailable"


class UpstreamRejected(RelayError):
    """Upstream answered with a failure status.

    Attributes:
        upstream_status: Status code returned by the upstream.
    """

    code = "upstream_rejected"

    def __init__(self, upstream_status: int, reason: str):
        # Non-error upstream statuses cannot carry an error body verbatim.
        status_code = upstream_status if upstream_status >= 400 else 502
        super().__init__(f"{upstream_status} {reason}".strip(), status_code=status_code)
        self.upstream_status = upstream_status


class RegistrationFailed(UpstreamRejected):
    """Upstream rejected a webhook registration upsert."""

    code = "registration_failed"


class ConfigError(Exception):
    """Configuration file could not be loaded; startup must abort."""
