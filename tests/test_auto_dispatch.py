import pytest

from app.exceptions import CourierAuthError, CourierNotFound, VendorRejected, VendorUnavailable
from app.models.order import DispatchState
from app.services.auto_dispatch import DispatchSettings, build_order_details, dispatch_order, select_courier
from app.services.order_projection import get_order
from app.services.tracking_ledger import list_tracking


def test_dispatch_uses_first_active_external_courier(db_session, make_order, couriers, registry, fake_pathao, dispatch_settings, notifier):
    order = make_order(payment_status="paid")

    result = dispatch_order(db_session, order.id, dispatch_settings, registry, notifier=notifier)

    assert result.dispatched
    assert result.state == DispatchState.DISPATCHED.value
    assert result.tracking_id == f"CN{order.id}"
    assert fake_pathao.created == [order.merchant_order_id]

    order = get_order(db_session, order.id)
    assert order.courier_id == couriers["pathao"].id
    assert order.courier_tracking_id == f"CN{order.id}"
    assert order.courier_order_id == order.merchant_order_id
    assert order.status == "processing"
    assert order.courier_status == "pending"
    [entry] = list_tracking(db_session, order.id)
    assert entry.details == "Order created with courier"
    assert entry.location == "Merchant"


def test_dispatch_honours_default_courier(db_session, make_order, couriers, registry, fake_steadfast):
    order = make_order(payment_status="paid")
    settings = DispatchSettings(auto_create_courier_order=True, default_courier_id=couriers["steadfast"].id)

    result = dispatch_order(db_session, order.id, settings, registry)

    assert result.courier_id == couriers["steadfast"].id
    assert result.tracking_id == f"SF{order.id}"
    assert fake_steadfast.created == [order.merchant_order_id]


def test_dispatch_is_idempotent(db_session, make_order, couriers, registry, fake_pathao, dispatch_settings):
    order = make_order(payment_status="paid")

    dispatch_order(db_session, order.id, dispatch_settings, registry)
    again = dispatch_order(db_session, order.id, dispatch_settings, registry)

    assert not again.dispatched
    assert again.reason == "already dispatched"
    assert len(fake_pathao.created) == 1


def test_auto_create_disabled_skips_unless_forced(db_session, make_order, couriers, registry, fake_pathao):
    order = make_order(payment_status="paid")
    disabled = DispatchSettings(auto_create_courier_order=False)

    skipped = dispatch_order(db_session, order.id, disabled, registry)
    assert not skipped.dispatched
    assert fake_pathao.created == []

    forced = dispatch_order(db_session, order.id, disabled, registry, force=True)
    assert forced.dispatched


def test_transient_failure_is_retryable(db_session, make_order, couriers, registry, fake_pathao, dispatch_settings):
    order = make_order(status="processing", payment_status="paid")
    fake_pathao.error = VendorUnavailable("Pathao request timed out after 5.0s")

    result = dispatch_order(db_session, order.id, dispatch_settings, registry)

    assert not result.dispatched
    assert result.retryable
    order = get_order(db_session, order.id)
    assert order.dispatch_state == DispatchState.FAILED.value
    assert order.dispatch_retryable
    assert order.courier_tracking_id is None
    assert order.status == "processing"


def test_rejection_is_not_retryable_and_can_be_redispatched(db_session, make_order, couriers, registry, fake_pathao, dispatch_settings):
    order = make_order(status="processing", payment_status="paid")
    fake_pathao.error = VendorRejected("Pathao API error (422): invalid address")

    failed = dispatch_order(db_session, order.id, dispatch_settings, registry)
    assert not failed.retryable
    assert get_order(db_session, order.id).dispatch_error == "Pathao API error (422): invalid address"

    fake_pathao.error = None
    retried = dispatch_order(db_session, order.id, dispatch_settings, registry, force=True)
    assert retried.dispatched
    assert get_order(db_session, order.id).dispatch_error is None


def test_auth_failure_is_logged_critical(db_session, make_order, couriers, registry, fake_pathao, dispatch_settings, caplog):
    order = make_order(payment_status="paid")
    fake_pathao.error = CourierAuthError("Pathao token request refused (401)")

    with caplog.at_level("CRITICAL"):
        result = dispatch_order(db_session, order.id, dispatch_settings, registry)

    assert isinstance(result.error, CourierAuthError)
    assert any(record.levelname == "CRITICAL" for record in caplog.records)


def test_terminal_order_is_not_dispatched(db_session, make_order, couriers, registry, fake_pathao, dispatch_settings):
    order = make_order(status="cancelled")

    result = dispatch_order(db_session, order.id, dispatch_settings, registry)

    assert not result.dispatched
    assert fake_pathao.created == []


def test_select_courier_rejects_inactive(db_session, couriers):
    couriers["pathao"].is_active = False
    db_session.commit()

    with pytest.raises(CourierNotFound):
        select_courier(db_session, couriers["pathao"].id)
    assert select_courier(db_session, None).code == "steadfast"


def test_order_details_for_cod(db_session, make_order):
    order = make_order(payment_method="cod")
    details = build_order_details(order)

    assert details.is_cod
    assert details.item_quantity == 2
    assert details.item_weight == 10.0
    assert details.merchant_order_id == f"order-{order.id}"


def test_malformed_vendor_reply_fails_instead_of_sticking(db_session, make_order, couriers, registry, fake_pathao, dispatch_settings):
    order = make_order(status="processing", payment_status="paid")
    fake_pathao.error = ValueError("Expecting value: line 1 column 1 (char 0)")

    result = dispatch_order(db_session, order.id, dispatch_settings, registry)

    assert not result.dispatched
    assert result.retryable
    assert isinstance(result.error, VendorUnavailable)
    order = get_order(db_session, order.id)
    assert order.dispatch_state == DispatchState.FAILED.value
    assert order.dispatch_retryable

    fake_pathao.error = None
    retried = dispatch_order(db_session, order.id, dispatch_settings, registry, force=True)
    assert retried.dispatched
    assert len(fake_pathao.created) == 2


def test_operator_dispatch_takes_over_stuck_order(db_session, make_order, couriers, registry, fake_pathao, dispatch_settings):
    order = make_order(status="processing", payment_status="paid", dispatch_state=DispatchState.DISPATCHING.value)

    automatic = dispatch_order(db_session, order.id, dispatch_settings, registry)
    assert automatic.reason == "dispatch already in progress"
    assert fake_pathao.created == []

    forced = dispatch_order(db_session, order.id, dispatch_settings, registry, force=True)
    assert forced.dispatched
    assert get_order(db_session, order.id).dispatch_state == DispatchState.DISPATCHED.value


def test_failed_dispatch_does_not_record_courier(db_session, make_order, couriers, registry, fake_pathao, dispatch_settings):
    order = make_order(status="processing", payment_status="paid")
    fake_pathao.error = VendorRejected("Pathao API error (422): invalid zone")

    result = dispatch_order(db_session, order.id, dispatch_settings, registry)

    assert result.courier_id == couriers["pathao"].id
    assert get_order(db_session, order.id).courier_id is None


def test_missing_courier_is_recorded_as_failed(db_session, make_order, couriers, registry, fake_pathao):
    order = make_order(status="processing", payment_status="paid")
    stale = DispatchSettings(auto_create_courier_order=True, default_courier_id=9999)

    result = dispatch_order(db_session, order.id, stale, registry)

    assert not result.dispatched
    assert isinstance(result.error, CourierNotFound)
    order = get_order(db_session, order.id)
    assert order.dispatch_state == DispatchState.FAILED.value
    assert order.dispatch_error == "Courier 9999 not found or inactive"
    assert fake_pathao.created == []
