from datetime import datetime, timedelta

import pytest

from app.couriers.base import CourierEvent, TrackingInfo
from app.exceptions import OrderNotFound, TrackingNotAvailable
from app.services.courier_events import find_order_for_event, ingest_courier_event, refresh_tracking
from app.services.tracking_ledger import append_tracking_entry, list_tracking


def test_list_tracking_is_newest_first(db_session, make_order):
    order = make_order()
    base = datetime(2026, 2, 1, 9, 0, 0)
    append_tracking_entry(db_session, order.id, "CN1", "pending", timestamp=base)
    append_tracking_entry(db_session, order.id, "CN1", "in_transit", timestamp=base + timedelta(hours=3))
    append_tracking_entry(db_session, order.id, "CN1", "picked", timestamp=base + timedelta(hours=1))

    statuses = [entry.status for entry in list_tracking(db_session, order.id)]

    assert statuses == ["in_transit", "picked", "pending"]


def test_list_tracking_filters_by_tracking_id(db_session, make_order):
    order = make_order()
    append_tracking_entry(db_session, order.id, "OLD-1", "cancelled")
    append_tracking_entry(db_session, order.id, "NEW-1", "pending")

    entries = list_tracking(db_session, order.id, "NEW-1")

    assert [e.tracking_id for e in entries] == ["NEW-1"]
    assert len(list_tracking(db_session, order.id)) == 2


def test_missing_vendor_timestamp_uses_ingestion_time(db_session, make_order):
    order = make_order()
    before = datetime.utcnow()
    entry = append_tracking_entry(db_session, order.id, "CN1", "pending")
    assert entry.timestamp >= before


def test_find_order_by_tracking_and_merchant_reference(db_session, make_order):
    order = make_order(courier_tracking_id="CN77", courier_order_id=None)
    other = make_order()
    other.courier_order_id = other.merchant_order_id
    db_session.commit()

    assert find_order_for_event(db_session, CourierEvent(tracking_id="CN77", raw_status=None)).id == order.id
    found = find_order_for_event(db_session, CourierEvent(tracking_id=None, raw_status=None, merchant_order_id=other.merchant_order_id))
    assert found.id == other.id
    assert find_order_for_event(db_session, CourierEvent(tracking_id="nope", raw_status=None)) is None


def test_ingest_appends_raw_status_and_applies_normalized(db_session, make_order, notifier):
    order = make_order(status="processing", courier_tracking_id="CN9")
    event = CourierEvent(tracking_id="CN9", raw_status="in_transit", details="In transit", location="Dhaka Hub")

    updated = ingest_courier_event(db_session, event, notifier=notifier)

    assert updated.status == "In Transit"
    [entry] = list_tracking(db_session, order.id)
    assert entry.status == "in_transit"
    assert entry.location == "Dhaka Hub"


def test_duplicate_event_adds_ledger_row_but_no_second_notification(db_session, make_order, notifier):
    order = make_order(status="processing", courier_tracking_id="CN9")
    event = CourierEvent(tracking_id="CN9", raw_status="delivered")

    ingest_courier_event(db_session, event, notifier=notifier)
    ingest_courier_event(db_session, event, notifier=notifier)

    assert len(list_tracking(db_session, order.id)) == 2
    assert notifier.status_changes == [(order.id, "processing", "delivered")]


def test_tracking_only_event_never_changes_status(db_session, make_order, notifier):
    order = make_order(status="shipped", courier_tracking_id="SF1", courier_status="in_transit")
    event = CourierEvent(tracking_id="SF1", raw_status=None, details="Parcel reached Mirpur hub", is_tracking_only=True)

    result = ingest_courier_event(db_session, event, notifier=notifier)

    assert result.status == "shipped"
    [entry] = list_tracking(db_session, order.id)
    assert entry.status == "in_transit"
    assert entry.details == "Parcel reached Mirpur hub"
    assert notifier.status_changes == []


def test_unknown_order_raises_with_identifiers(db_session):
    with pytest.raises(OrderNotFound) as exc:
        ingest_courier_event(db_session, CourierEvent(tracking_id="ghost", raw_status="delivered"))
    assert exc.value.details["tracking_id"] == "ghost"


def test_refresh_tracking_polls_and_ingests(db_session, make_order, couriers, registry, fake_pathao, notifier):
    order = make_order(status="processing", courier_id=couriers["pathao"].id, courier_tracking_id="CN5")
    fake_pathao.tracking = TrackingInfo(raw_status="delivered", details="Delivered to customer", location="Dhanmondi")

    updated, entries = refresh_tracking(db_session, order.id, registry, notifier=notifier)

    assert updated.status == "delivered"
    assert [e.status for e in entries] == ["delivered"]


def test_refresh_tracking_without_tracking_id(db_session, make_order, registry):
    order = make_order()
    with pytest.raises(TrackingNotAvailable):
        refresh_tracking(db_session, order.id, registry)


def test_refresh_tracking_for_internal_courier_returns_ledger(db_session, make_order, couriers, registry):
    order = make_order(status="Assigned", courier_id=couriers["internal"].id, courier_tracking_id="INT-1")
    append_tracking_entry(db_session, order.id, "INT-1", "assigned")

    updated, entries = refresh_tracking(db_session, order.id, registry)

    assert updated.status == "Assigned"
    assert [e.status for e in entries] == ["assigned"]
