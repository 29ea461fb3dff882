# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""File-backed, size-bounded event history per tenant.

Each tenant (identified by its Mailjet API key) owns one JSON file holding
its events newest-first. Every mutation rewrites the whole sequence through a
temporary sibling file followed by an atomic rename, so a reader never sees a
half-written file.

Access to a tenant's file is serialized by a per-tenant ``asyncio.Lock``
taken for the full load-mutate-write cycle: two appends for the same tenant
never interleave, while different tenants proceed independently. Blocking
file I/O runs in worker threads so the event loop stays responsive.

Example:
    Recording and listing events::

        store = EventStore("/var/lib/mailjet-relay", max_events=100)
        events = await store.append("my-api-key", b'{"event": "open"}')
        events = await store.read("my-api-key")
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import stat
from pathlib import Path

from pydantic import ValidationError

from .codec import decode_event
from .errors import InvalidTenantKey, StoreCorrupt, StoreUnavailable
from .logger import get_logger
from .models import EventRecord, EventSequence

EVENTS_FILE_TEMPLATE = "events_{key}.json"
DEFAULT_FILE_MODE = 0o644

_SEPARATORS = re.compile(r"[ &_=+:./\\]")
_ILLEGAL = re.compile(r"[^A-Za-z0-9-]")
_DASHES = re.compile(r"-+")


def sanitize_tenant_key(raw: str) -> str:
    """Reduce a tenant key to a safe file-name token.

    Separators and path characters become dashes, every other character
    outside ``[A-Za-z0-9-]`` is dropped, dash runs are collapsed and edge
    dashes stripped. ``"../../etc"`` becomes ``"etc"``.

    Raises:
        InvalidTenantKey: If nothing usable is left.
    """
    key = _SEPARATORS.sub("-", (raw or "").strip())
    key = _ILLEGAL.sub("", key)
    key = _DASHES.sub("-", key).strip("-")
    if not key:
        raise InvalidTenantKey()
    return key


class EventStore:
    """Per-tenant event log persisted as one JSON file per tenant.

    Attributes:
        events_dir: Directory holding the ``events_<key>.json`` files.
        max_events: Maximum records kept per tenant (0 = unbounded).
        file_mode: Permission bits given to newly created files.
    """

    def __init__(
        self,
        events_dir: str | Path = ".",
        max_events: int = 0,
        file_mode: int = DEFAULT_FILE_MODE,
    ):
        self.events_dir = Path(events_dir)
        self.max_events = max(0, int(max_events or 0))
        self.file_mode = file_mode
        self.logger = get_logger("EventStore")
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def path_for(self, tenant_key: str) -> Path:
        """Return the events file for an already sanitized tenant key."""
        return self.events_dir / EVENTS_FILE_TEMPLATE.format(key=tenant_key)

    # ------------------------------------------------------------------ public API
    async def append(self, tenant_key: str, raw_payload: bytes | str) -> list[EventRecord]:
        """Prepend one decoded event to the tenant's history.

        The key is sanitized and the payload decoded before any file is
        touched, so a rejected request leaves the history unchanged.

        Args:
            tenant_key: Raw tenant key (API key) from the request path.
            raw_payload: Inbound webhook body.

        Returns:
            The stored sequence after the append, newest-first.

        Raises:
            InvalidTenantKey: If the key sanitizes to nothing.
            MalformedPayload: If the body is not a JSON object.
            StoreCorrupt: If the existing file cannot be decoded.
            StoreUnavailable: If the file cannot be read or written.
        """
        key = sanitize_tenant_key(tenant_key)
        record = decode_event(raw_payload)
        path = self.path_for(key)

        async with self._get_lock(key):
            events, mode = await asyncio.to_thread(self._load, path)
            events.insert(0, record)
            if self.max_events and len(events) > self.max_events:
                dropped = len(events) - self.max_events
                del events[self.max_events:]
                self.logger.debug("Dropped %d oldest event(s) for tenant %s", dropped, key)
            await asyncio.to_thread(self._write, path, events, mode)

        self.logger.debug(
            "Stored %s event for tenant %s (%d kept)", record.EventType or "untyped", key, len(events)
        )
        return events

    async def read(self, tenant_key: str) -> list[EventRecord]:
        """Return the tenant's history, creating an empty one if absent.

        Raises:
            InvalidTenantKey: If the key sanitizes to nothing.
            StoreCorrupt: If the existing file cannot be decoded.
            StoreUnavailable: If the file cannot be read or created.
        """
        key = sanitize_tenant_key(tenant_key)
        path = self.path_for(key)
        async with self._get_lock(key):
            events, _ = await asyncio.to_thread(self._load, path)
        return events

    # ------------------------------------------------------------------ file I/O
    def _load(self, path: Path) -> tuple[list[EventRecord], int]:
        """Load the sequence and the file's permission bits.

        Only a missing file is created empty; any other failure to inspect
        it is reported rather than overwritten.
        """
        try:
            mode = stat.S_IMODE(path.stat().st_mode)
        except FileNotFoundError:
            if self._create_empty(path):
                return [], self.file_mode
            return self._load(path)
        except OSError as exc:
            raise StoreUnavailable(f"Unable to access the data file ({path}): {exc}") from exc

        try:
            content = path.read_bytes()
        except OSError as exc:
            raise StoreUnavailable(f"Unable to read the data file ({path}): {exc}") from exc

        try:
            events = EventSequence.validate_json(content)
        except ValidationError as exc:
            self.logger.error("Events file %s is corrupt; leaving it untouched", path)
            raise StoreCorrupt(
                f"Unable to decode events from data file ({path}): {exc.error_count()} error(s)"
            ) from exc
        return events, mode

    def _create_empty(self, path: Path) -> bool:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, self.file_mode)
        except FileExistsError:
            # Created by someone else between stat and open; load theirs.
            return False
        except OSError as exc:
            raise StoreUnavailable(f"Error when creating data file ({path}): {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write("[]")
            os.chmod(path, self.file_mode)
        except OSError as exc:
            path.unlink(missing_ok=True)
            raise StoreUnavailable(f"Error when creating data file ({path}): {exc}") from exc
        self.logger.info("Created events file %s", path)
        return True

    def _write(self, path: Path, events: list[EventRecord], mode: int) -> None:
        data = json.dumps(
            [event.model_dump() for event in events],
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        )
        temp_file = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_file.write_text(data, encoding="utf-8")
            os.chmod(temp_file, mode)
            os.replace(temp_file, path)
        except OSError as exc:
            temp_file.unlink(missing_ok=True)
            raise StoreUnavailable(f"Unable to write events to data file ({path}): {exc}") from exc
