from datetime import timedelta
from decimal import Decimal

import pytest

from storefront.commerce.operations import CommerceOperations
from storefront.errors import ErrorCode, StorefrontError
from storefront.orders.models import CommerceOperationType, Order, OrderLineItem
from storefront.payments import stripe_gateway
from storefront.payments.configuration import PaymentConfiguration
from storefront.payments.stripe_gateway import StripeGateway

from fakes import CUSTOMER_ID, NOW, FakeGateway, make_context, make_subscription


def _order(operation_type=CommerceOperationType.NEW_PURCHASE, **line):
    return Order(order_id="o-1", customer_id=CUSTOMER_ID, operation_type=operation_type, subscriptions=[OrderLineItem(**line)])


def test_new_purchase_creates_subscription_and_history():
    ctx = make_context(term_days=30)
    gateway = FakeGateway()

    result = CommerceOperations(ctx, CUSTOMER_ID, gateway).purchase(_order(offer_id="offer-1", quantity=5))

    assert len(result.subscriptions) == 1
    subscription = result.subscriptions[0]
    assert subscription.seat_count == 5
    assert subscription.expiry_date == NOW + timedelta(days=30)
    assert ctx.subscriptions.get_by_subscription_id(subscription.subscription_id) is not None

    assert len(ctx.purchases.entries) == 1
    entry = ctx.purchases.entries[0]
    assert entry.seats_bought == 5
    assert entry.seat_price == Decimal("10.00")
    assert entry.order_total == Decimal("50.00")
    assert entry.operation_type == CommerceOperationType.NEW_PURCHASE
    assert result.total_charge == Decimal("50.00")
    assert gateway.calls == [("execute",), ("capture", "auth-1")]


def test_purchase_unknown_offer_fails_before_payment():
    ctx = make_context()
    gateway = FakeGateway()
    with pytest.raises(StorefrontError) as exc:
        CommerceOperations(ctx, CUSTOMER_ID, gateway).purchase(_order(offer_id="missing", quantity=1))
    assert exc.value.code == ErrorCode.NOT_FOUND
    assert gateway.calls == []


def test_purchase_history_failure_rolls_back_and_voids():
    ctx = make_context()
    ctx.purchases.fail_on_append = StorefrontError(ErrorCode.PERSISTENCE_FAILURE, "store indisponible")
    gateway = FakeGateway()

    with pytest.raises(StorefrontError) as exc:
        CommerceOperations(ctx, CUSTOMER_ID, gateway).purchase(_order(offer_id="offer-1", quantity=2))

    assert exc.value.code == ErrorCode.PERSISTENCE_FAILURE
    created = ctx.platform.orders[0]["created"][0]["subscription_id"]
    assert ctx.subscriptions.get_by_subscription_id(created) is None
    assert ctx.platform.suspended == [created]
    assert ("void", "auth-1") in gateway.calls
    assert ("capture", "auth-1") not in gateway.calls


def test_capture_failure_rolls_back_subscriptions():
    ctx = make_context()
    gateway = FakeGateway()
    gateway.fail_on_capture = StorefrontError(ErrorCode.GATEWAY_FAILURE, "capture refusée")

    with pytest.raises(StorefrontError) as exc:
        CommerceOperations(ctx, CUSTOMER_ID, gateway).purchase(_order(offer_id="offer-1", quantity=1))

    assert exc.value.code == ErrorCode.GATEWAY_FAILURE
    assert ctx.subscriptions.rows == {}
    assert gateway.calls[-1] == ("void", "auth-1")


def test_stripe_capture_keeps_purchase_when_order_cleanup_fails(monkeypatch):
    ctx = make_context(payment_configuration=PaymentConfiguration(provider="stripe", client_secret="sk_test_123"))
    ctx.orders.add(_order(offer_id="offer-1", quantity=2))
    ctx.orders.fail_on_delete = True
    calls = []
    monkeypatch.setattr(
        stripe_gateway.stripe_client, "get_session",
        lambda sid, api_key: {"id": sid, "status": "complete", "payment_intent": "pi_1", "metadata": {"order_id": "o-1"}},
    )
    monkeypatch.setattr(stripe_gateway.stripe_client, "capture_payment_intent", lambda pid, api_key: calls.append(("capture", pid)) or {})
    monkeypatch.setattr(stripe_gateway.stripe_client, "cancel_payment_intent", lambda pid, api_key: calls.append(("cancel", pid)) or {})

    gateway = StripeGateway(ctx.orders, ctx.payment_configuration, "Achat", currency="eur", decimals=2)
    order = gateway.get_order_details_from_payment("stripe", "cs_1", "o-1", CUSTOMER_ID)
    result = CommerceOperations(ctx, CUSTOMER_ID, gateway).purchase(order)

    assert calls == [("capture", "pi_1")]
    subscription_id = result.subscriptions[0].subscription_id
    assert ctx.subscriptions.get_by_subscription_id(subscription_id) is not None
    assert ctx.platform.suspended == []
    assert len(ctx.purchases.entries) == 1


def test_void_failure_does_not_mask_original_error():
    ctx = make_context()
    ctx.platform.fail_on_place_order = StorefrontError(ErrorCode.PLATFORM_FAILURE, "plateforme indisponible")
    gateway = FakeGateway()
    gateway.fail_on_void = StorefrontError(ErrorCode.GATEWAY_FAILURE, "void refusé")

    with pytest.raises(StorefrontError) as exc:
        CommerceOperations(ctx, CUSTOMER_ID, gateway).purchase(_order(offer_id="offer-1", quantity=1))
    assert exc.value.code == ErrorCode.PLATFORM_FAILURE


def test_additional_seats_are_prorated():
    ctx = make_context(subscriptions=[make_subscription("sub-1", seats=3, days_left=15)], term_days=30)
    gateway = FakeGateway()
    order = _order(CommerceOperationType.ADDITIONAL_SEATS_PURCHASE, subscription_id="sub-1", quantity=2)

    result = CommerceOperations(ctx, CUSTOMER_ID, gateway).purchase_additional_seats(order)

    assert result.total_charge == Decimal("10.00")
    assert ctx.purchases.entries[0].seat_price == Decimal("5.00")
    assert ctx.platform.quantity_updates == [("sub-1", 5)]
    stored = ctx.subscriptions.get_by_subscription_id("sub-1")
    assert stored.seat_count == 5
    assert stored.version == 1


def test_additional_seats_on_expired_subscription_is_rejected():
    ctx = make_context(subscriptions=[make_subscription("sub-1", days_left=-1)])
    gateway = FakeGateway()
    order = _order(CommerceOperationType.ADDITIONAL_SEATS_PURCHASE, subscription_id="sub-1", quantity=1)

    with pytest.raises(StorefrontError) as exc:
        CommerceOperations(ctx, CUSTOMER_ID, gateway).purchase_additional_seats(order)
    assert exc.value.code == ErrorCode.SUBSCRIPTION_EXPIRED
    assert gateway.calls == []


def test_additional_seats_platform_rollback_on_store_conflict():
    ctx = make_context(subscriptions=[make_subscription("sub-1", seats=3, days_left=15)])
    ctx.subscriptions.fail_on_upsert = StorefrontError(ErrorCode.CONCURRENCY_CONFLICT, "conflit")
    order = _order(CommerceOperationType.ADDITIONAL_SEATS_PURCHASE, subscription_id="sub-1", quantity=2)

    with pytest.raises(StorefrontError) as exc:
        CommerceOperations(ctx, CUSTOMER_ID, FakeGateway()).purchase_additional_seats(order)

    assert exc.value.code == ErrorCode.CONCURRENCY_CONFLICT
    assert ctx.platform.quantity_updates == [("sub-1", 5), ("sub-1", 3)]


def test_subscription_of_another_customer_is_rejected():
    ctx = make_context(subscriptions=[make_subscription("sub-1", customer_id="someone-else")])
    order = _order(CommerceOperationType.ADDITIONAL_SEATS_PURCHASE, subscription_id="sub-1", quantity=1)
    with pytest.raises(StorefrontError) as exc:
        CommerceOperations(ctx, CUSTOMER_ID, FakeGateway()).purchase_additional_seats(order)
    assert exc.value.code == ErrorCode.INVALID_INPUT


def test_renewal_outside_window_is_not_eligible():
    ctx = make_context(subscriptions=[make_subscription("sub-1", days_left=45)])
    gateway = FakeGateway()
    order = _order(CommerceOperationType.RENEWAL, subscription_id="sub-1", quantity=1)

    with pytest.raises(StorefrontError) as exc:
        CommerceOperations(ctx, CUSTOMER_ID, gateway).renew_subscription(order)
    assert exc.value.code == ErrorCode.RENEWAL_NOT_ELIGIBLE
    assert gateway.calls == []


def test_renewal_extends_by_one_term_at_full_price():
    current = make_subscription("sub-1", seats=3, days_left=10)
    ctx = make_context(subscriptions=[current], term_days=30)
    order = _order(CommerceOperationType.RENEWAL, subscription_id="sub-1", quantity=1)

    result = CommerceOperations(ctx, CUSTOMER_ID, FakeGateway()).execute_operation(order)

    assert result.operation_type == CommerceOperationType.RENEWAL
    assert result.total_charge == Decimal("30.00")
    stored = ctx.subscriptions.get_by_subscription_id("sub-1")
    assert stored.expiry_date == current.expiry_date + timedelta(days=30)
    assert ctx.purchases.entries[0].seats_bought == 3


def test_empty_order_is_invalid():
    ctx = make_context()
    order = Order(order_id="o-1", customer_id=CUSTOMER_ID, subscriptions=[])
    with pytest.raises(StorefrontError) as exc:
        CommerceOperations(ctx, CUSTOMER_ID, FakeGateway()).purchase(order)
    assert exc.value.code == ErrorCode.INVALID_INPUT


def test_customer_is_required():
    with pytest.raises(StorefrontError) as exc:
        CommerceOperations(make_context(), "", FakeGateway())
    assert exc.value.code == ErrorCode.INVALID_INPUT
