from datetime import UTC, datetime

import pytest

from epayco_proxy.webhooks import WebhookStore


def test_add_event_returns_stored_record() -> None:
    store = WebhookStore()
    before = datetime.now(UTC)
    event = store.add_event({"x_ref_payco": "REF-1"}, {"user-agent": "ePayco"}, "POST")
    assert event.id
    assert event.received_at >= before
    assert event.method == "POST"
    assert event.body == {"x_ref_payco": "REF-1"}
    assert store.list_events() == [event]


def test_ids_are_unique() -> None:
    store = WebhookStore()
    ids = {store.add_event({}, {}).id for _ in range(50)}
    assert len(ids) == 50


def test_list_events_newest_first() -> None:
    store = WebhookStore()
    first = store.add_event({"n": 1}, {})
    second = store.add_event({"n": 2}, {})
    assert store.list_events() == [second, first]


@pytest.mark.parametrize("count", [101, 150, 250])
def test_capacity_keeps_most_recent(count: int) -> None:
    store = WebhookStore(capacity=100)
    added = [store.add_event({"n": n}, {}) for n in range(count)]
    events = store.list_events()
    assert len(events) == 100
    assert events == list(reversed(added[-100:]))


def test_get_event() -> None:
    store = WebhookStore()
    event = store.add_event({"n": 1}, {})
    store.add_event({"n": 2}, {})
    assert store.get_event(event.id) is event
    assert store.get_event("missing") is None


def test_evicted_event_is_not_found() -> None:
    store = WebhookStore(capacity=2)
    oldest = store.add_event({"n": 1}, {})
    store.add_event({"n": 2}, {})
    store.add_event({"n": 3}, {})
    assert store.get_event(oldest.id) is None


def test_clear() -> None:
    store = WebhookStore()
    store.add_event({}, {})
    store.clear()
    assert store.list_events() == []
    assert len(store) == 0


def test_stats() -> None:
    store = WebhookStore()
    assert store.stats() == {"total": 0, "lastEvent": None, "allEvents": []}
    store.add_event({"n": 1}, {})
    latest = store.add_event({"n": 2}, {"x-forwarded-for": ["1.1.1.1", "2.2.2.2"]})
    stats = store.stats()
    assert stats["total"] == 2
    assert stats["lastEvent"] == latest.to_dict()
    assert [e["body"]["n"] for e in stats["allEvents"]] == [2, 1]


def test_to_dict() -> None:
    store = WebhookStore()
    event = store.add_event({"x_amount": "10000"}, {"content-type": "application/json"}, "GET")
    assert event.to_dict() == {
        "id": event.id,
        "timestamp": event.received_at.isoformat(),
        "method": "GET",
        "headers": {"content-type": "application/json"},
        "body": {"x_amount": "10000"},
    }


def test_events_are_immutable() -> None:
    event = WebhookStore().add_event({}, {})
    with pytest.raises(AttributeError):
        event.method = "PUT"
