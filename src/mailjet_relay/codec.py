# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Conversion of inbound webhook bodies into :class:`EventRecord` values.

Mailjet posts one JSON object per event. The ``event`` field classifies it
("open", "bounce", "sent", ...); everything else is provider-defined and is
kept untouched as the record payload.
"""

from __future__ import annotations

import json

from .errors import MalformedPayload
from .models import EventRecord

EVENT_FIELD = "event"


def _reject_constant(token: str):
    # NaN and Infinity are accepted by json.loads but are not JSON.
    raise MalformedPayload(f"Invalid event payload: unexpected token {token}")


def decode_event(raw: bytes | str) -> EventRecord:
    """Decode an inbound notification body.

    Args:
        raw: The request body, expected to hold a JSON object.

    Returns:
        An ``EventRecord`` whose ``EventType`` is the ``event`` field (empty
        when absent) and whose ``Payload`` is the full decoded object.

    Raises:
        MalformedPayload: If the body is not a JSON object or ``event`` is
            not a string.
    """
    try:
        payload = json.loads(raw, parse_constant=_reject_constant)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedPayload(f"Invalid event payload: {exc}") from exc

    if not isinstance(payload, dict):
        raise MalformedPayload(
            f"Invalid event payload: expected a JSON object, got {type(payload).__name__}"
        )

    event_type = payload.get(EVENT_FIELD, "")
    if event_type is None:
        event_type = ""
    if not isinstance(event_type, str):
        raise MalformedPayload(f"Invalid event payload: '{EVENT_FIELD}' must be a string")

    return EventRecord(EventType=event_type, Payload=payload)
