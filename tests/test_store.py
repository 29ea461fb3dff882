"""Tests for the per-tenant event store."""

import asyncio
import json
import os
import stat
from pathlib import Path

import pytest

from mailjet_relay.errors import InvalidTenantKey, MalformedPayload, StoreCorrupt, StoreUnavailable
from mailjet_relay.store import DEFAULT_FILE_MODE, EventStore, sanitize_tenant_key


def _event(n: int) -> bytes:
    return json.dumps({"event": "open", "seq": n}).encode()


# --- sanitize_tenant_key ---

class TestSanitizeTenantKey:

    def test_plain_key_unchanged(self):
        assert sanitize_tenant_key("abc123DEF") == "abc123DEF"

    def test_traversal_is_neutralized(self):
        assert sanitize_tenant_key("../../etc") == "etc"
        assert sanitize_tenant_key("..\\..\\windows") == "windows"

    def test_separators_become_single_dashes(self):
        assert sanitize_tenant_key(" my key_with:sep ") == "my-key-with-sep"
        assert sanitize_tenant_key("a--b") == "a-b"

    def test_unrecognised_characters_dropped(self):
        assert sanitize_tenant_key("k€y<>|*?") == "ky"

    @pytest.mark.parametrize("raw", ["", "   ", "../..", "///", "€€"])
    def test_empty_result_rejected(self, raw):
        with pytest.raises(InvalidTenantKey):
            sanitize_tenant_key(raw)


# --- append / read ---

@pytest.mark.asyncio
async def test_read_creates_empty_store(tmp_path):
    store = EventStore(tmp_path)

    assert await store.read("abc") == []
    path = tmp_path / "events_abc.json"
    assert path.read_text() == "[]"
    assert stat.S_IMODE(path.stat().st_mode) == DEFAULT_FILE_MODE


@pytest.mark.asyncio
async def test_append_on_empty_store(tmp_path):
    store = EventStore(tmp_path)

    events = await store.append("abc", b'{"event":"open","CustomerID":"42"}')

    assert [e.model_dump() for e in events] == [
        {"EventType": "open", "Payload": {"event": "open", "CustomerID": "42"}}
    ]
    assert json.loads((tmp_path / "events_abc.json").read_text()) == [
        {"EventType": "open", "Payload": {"event": "open", "CustomerID": "42"}}
    ]


@pytest.mark.asyncio
async def test_appends_are_stored_newest_first(tmp_path):
    store = EventStore(tmp_path)
    for n in range(5):
        await store.append("abc", _event(n))

    events = await store.read("abc")
    assert [e.Payload["seq"] for e in events] == [4, 3, 2, 1, 0]


@pytest.mark.asyncio
async def test_sequence_bounded_by_max_events(tmp_path):
    store = EventStore(tmp_path, max_events=3)
    for n in range(3):
        await store.append("abc", _event(n))

    events = await store.append("abc", _event(3))
    assert [e.Payload["seq"] for e in events] == [3, 2, 1]

    events = await store.append("abc", _event(4))
    assert [e.Payload["seq"] for e in events] == [4, 3, 2]
    assert len(await store.read("abc")) == 3


@pytest.mark.asyncio
async def test_zero_max_events_is_unbounded(tmp_path):
    store = EventStore(tmp_path, max_events=0)
    for n in range(25):
        await store.append("abc", _event(n))
    assert len(await store.read("abc")) == 25


@pytest.mark.asyncio
async def test_round_trip_keeps_unknown_fields(tmp_path):
    payload = {
        "event": "click",
        "url": "https://example.com",
        "mj_campaign_id": 7,
        "nested": {"a": [1, None, True], "é": "ü"},
    }
    await EventStore(tmp_path).append("abc", json.dumps(payload))

    # A fresh store instance reads what the first one wrote.
    events = await EventStore(tmp_path).read("abc")
    assert events[0].Payload == payload
    assert list(events[0].Payload) == list(payload)


@pytest.mark.asyncio
async def test_tenants_are_isolated(tmp_path):
    store = EventStore(tmp_path)
    await store.append("alpha", _event(1))
    await store.append("beta", _event(2))

    assert [e.Payload["seq"] for e in await store.read("alpha")] == [1]
    assert [e.Payload["seq"] for e in await store.read("beta")] == [2]


@pytest.mark.asyncio
async def test_malformed_payload_does_not_touch_store(tmp_path):
    store = EventStore(tmp_path)
    await store.append("abc", _event(1))
    before = (tmp_path / "events_abc.json").read_text()

    with pytest.raises(MalformedPayload):
        await store.append("abc", b"{broken")

    assert (tmp_path / "events_abc.json").read_text() == before


@pytest.mark.asyncio
async def test_malformed_payload_for_new_tenant_creates_nothing(tmp_path):
    with pytest.raises(MalformedPayload):
        await EventStore(tmp_path).append("fresh", b"[]")
    assert not (tmp_path / "events_fresh.json").exists()


@pytest.mark.asyncio
async def test_invalid_key_rejected_before_file_access(tmp_path):
    store = EventStore(tmp_path)
    with pytest.raises(InvalidTenantKey):
        await store.append("../", _event(1))
    with pytest.raises(InvalidTenantKey):
        await store.read("")
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_traversal_key_stays_inside_events_dir(tmp_path):
    events_dir = tmp_path / "events"
    store = EventStore(events_dir)

    await store.append("../../etc", _event(1))

    assert [p.name for p in events_dir.iterdir()] == ["events_etc.json"]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["events"]


@pytest.mark.asyncio
async def test_corrupt_store_is_reported_and_left_untouched(tmp_path):
    path = tmp_path / "events_abc.json"
    path.write_text("{not json")
    store = EventStore(tmp_path)

    with pytest.raises(StoreCorrupt) as exc_info:
        await store.read("abc")
    assert exc_info.value.status_code == 500

    with pytest.raises(StoreCorrupt):
        await store.append("abc", _event(1))
    assert path.read_text() == "{not json"


@pytest.mark.asyncio
async def test_wrong_shape_is_corrupt(tmp_path):
    (tmp_path / "events_abc.json").write_text('{"EventType": "open"}')
    with pytest.raises(StoreCorrupt):
        await EventStore(tmp_path).read("abc")


@pytest.mark.asyncio
async def test_unreadable_store_is_reported_and_left_untouched(tmp_path, monkeypatch):
    path = tmp_path / "events_abc.json"
    original = '[{"EventType":"open","Payload":{"event":"open"}}]'
    path.write_text(original)
    store = EventStore(tmp_path)

    def denied(self):
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "read_bytes", denied)

    with pytest.raises(StoreUnavailable) as exc_info:
        await store.read("abc")
    assert exc_info.value.status_code == 500

    with pytest.raises(StoreUnavailable):
        await store.append("abc", _event(1))

    monkeypatch.undo()
    assert path.read_text() == original
    assert [e.EventType for e in await store.read("abc")] == ["open"]


@pytest.mark.asyncio
async def test_failed_creation_leaves_no_empty_file(tmp_path, monkeypatch):
    store = EventStore(tmp_path)

    def denied(path, mode):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr("mailjet_relay.store.os.chmod", denied)

    with pytest.raises(StoreUnavailable) as exc_info:
        await store.read("abc")
    assert exc_info.value.status_code == 500
    assert not (tmp_path / "events_abc.json").exists()

    monkeypatch.undo()
    assert await store.read("abc") == []


@pytest.mark.asyncio
async def test_rewrite_preserves_file_mode(tmp_path):
    path = tmp_path / "events_abc.json"
    path.write_text("[]")
    os.chmod(path, 0o600)

    await EventStore(tmp_path).append("abc", _event(1))

    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert not (tmp_path / "events_abc.json.tmp").exists()


@pytest.mark.asyncio
async def test_custom_file_mode_for_new_files(tmp_path):
    store = EventStore(tmp_path, file_mode=0o640)
    await store.append("abc", _event(1))
    assert stat.S_IMODE((tmp_path / "events_abc.json").stat().st_mode) == 0o640


@pytest.mark.asyncio
async def test_concurrent_appends_never_lose_updates(tmp_path):
    store = EventStore(tmp_path)
    await store.append("abc", _event(-1))

    await asyncio.gather(*(store.append("abc", _event(n)) for n in range(40)))

    events = await store.read("abc")
    assert len(events) == 41
    assert sorted(e.Payload["seq"] for e in events) == list(range(-1, 40))
    assert events[-1].Payload["seq"] == -1


@pytest.mark.asyncio
async def test_concurrent_appends_respect_bound(tmp_path):
    store = EventStore(tmp_path, max_events=10)

    await asyncio.gather(*(store.append("abc", _event(n)) for n in range(30)))

    assert len(await store.read("abc")) == 10


@pytest.mark.asyncio
async def test_concurrent_tenants(tmp_path):
    store = EventStore(tmp_path)

    await asyncio.gather(
        *(store.append(tenant, _event(n)) for n in range(10) for tenant in ("a", "b", "c"))
    )

    for tenant in ("a", "b", "c"):
        assert len(await store.read(tenant)) == 10
