from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from storefront.errors import ErrorCode, StorefrontError
from storefront.orders.models import Order, OrderLineItem
from storefront.payments import stripe_gateway
from storefront.payments.configuration import PaymentConfiguration
from storefront.payments.payumoney import PayUMoneyClient, PayUMoneyGateway, payment_hash
from storefront.payments.preapproval import PREAPPROVED_AUTHORIZATION_CODE, PreApprovalGateway
from storefront.payments.stripe_gateway import StripeGateway, to_line_items, to_minor_units

from fakes import CUSTOMER_ID, FakeOrdersRepository, FakePaymentConfigurationRepository

RETURN_URL = "https://shop.example.com/#ProcessOrder?ret=true"


def _order(order_id="ord-1"):
    return Order(
        order_id=order_id,
        customer_id=CUSTOMER_ID,
        subscriptions=[OrderLineItem(offer_id="offer-1", quantity=2, seat_price=Decimal("10.00"), friendly_name="Offre")],
    )


# --- Pré-approbation ---

def test_preapproval_round_trip_returns_persisted_order():
    orders = FakeOrdersRepository()
    gateway = PreApprovalGateway(orders, "Achat")
    uri = gateway.generate_payment_uri(RETURN_URL, _order())

    assert "oid=ord-1" in uri and "paymentId=PreApproved" in uri
    resumed = PreApprovalGateway(orders, "Traitement")
    assert resumed.get_order_details_from_payment("PayId", "PreApproved", "ord-1", CUSTOMER_ID) == _order()


def test_preapproval_capture_is_idempotent():
    orders = FakeOrdersRepository()
    gateway = PreApprovalGateway(orders, "Achat")
    gateway.generate_payment_uri(RETURN_URL, _order())

    code = gateway.execute_payment()
    assert code == PREAPPROVED_AUTHORIZATION_CODE
    gateway.capture(code)
    gateway.capture(code)
    assert orders.rows == {}


def test_preapproval_unknown_order_is_not_found():
    gateway = PreApprovalGateway(FakeOrdersRepository(), "Traitement")
    with pytest.raises(StorefrontError) as exc:
        gateway.get_order_details_from_payment("PayId", "PreApproved", "missing", CUSTOMER_ID)
    assert exc.value.code == ErrorCode.NOT_FOUND


def test_preapproval_requires_order_id():
    gateway = PreApprovalGateway(FakeOrdersRepository(), "Traitement")
    with pytest.raises(StorefrontError) as exc:
        gateway.get_order_details_from_payment("PayId", "PreApproved", "", CUSTOMER_ID)
    assert exc.value.code == ErrorCode.INVALID_INPUT


# --- Stripe ---

def _stripe_gateway(orders=None):
    configuration = FakePaymentConfigurationRepository(PaymentConfiguration(provider="stripe", client_secret="sk_test_cfg"))
    return StripeGateway(orders or FakeOrdersRepository(), configuration, "Achat", currency="eur", decimals=2)


def test_to_line_items_uses_minor_units():
    items = to_line_items(_order(), "eur", 2)
    assert items[0]["price_data"]["unit_amount"] == 1000
    assert items[0]["quantity"] == 2
    assert to_minor_units(Decimal("4.995"), 2) == 500


def test_stripe_generate_uri_persists_order_before_redirect(monkeypatch):
    seen = {}

    def _fake_create_session(**kwargs):
        seen.update(kwargs)
        return {"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}

    monkeypatch.setattr(stripe_gateway.stripe_client, "create_session", _fake_create_session)
    orders = FakeOrdersRepository()
    uri = _stripe_gateway(orders).generate_payment_uri(RETURN_URL, _order())

    assert uri == "https://checkout.stripe.test/cs_test_1"
    assert ("ord-1", CUSTOMER_ID) in orders.rows
    assert seen["api_key"] == "sk_test_cfg"
    assert seen["metadata"]["order_id"] == "ord-1"
    assert "paymentId={CHECKOUT_SESSION_ID}" in seen["success_url"]


def test_stripe_resolve_capture_and_cleanup(monkeypatch):
    orders = FakeOrdersRepository()
    orders.add(_order())
    captured = []
    monkeypatch.setattr(
        stripe_gateway.stripe_client, "get_session",
        lambda sid, api_key: {"id": sid, "status": "complete", "payment_intent": "pi_1", "metadata": {"order_id": "ord-1"}},
    )
    monkeypatch.setattr(stripe_gateway.stripe_client, "capture_payment_intent", lambda pid, api_key: captured.append(pid) or {})

    gateway = _stripe_gateway(orders)
    order = gateway.get_order_details_from_payment("stripe", "cs_test_1", "ord-1", CUSTOMER_ID)
    assert order.payment_reference == "pi_1"
    assert order.subscriptions == _order().subscriptions

    code = gateway.execute_payment()
    gateway.capture(code)
    assert captured == ["pi_1"]
    assert orders.rows == {}


def test_stripe_capture_survives_cleanup_failure(monkeypatch):
    orders = FakeOrdersRepository()
    orders.add(_order())
    orders.fail_on_delete = True
    captured = []
    monkeypatch.setattr(stripe_gateway.stripe_client, "capture_payment_intent", lambda pid, api_key: captured.append(pid) or {})
    gateway = _stripe_gateway(orders)
    gateway.order_id, gateway.customer_id = "ord-1", CUSTOMER_ID

    gateway.capture("pi_1")

    assert captured == ["pi_1"]
    # La commande en attente reste en base, sans effet sur le paiement encaissé
    assert ("ord-1", CUSTOMER_ID) in orders.rows


def test_stripe_incomplete_session_is_gateway_failure(monkeypatch):
    orders = FakeOrdersRepository()
    orders.add(_order())
    monkeypatch.setattr(
        stripe_gateway.stripe_client, "get_session",
        lambda sid, api_key: {"id": sid, "status": "open", "metadata": {"order_id": "ord-1"}},
    )
    with pytest.raises(StorefrontError) as exc:
        _stripe_gateway(orders).get_order_details_from_payment("stripe", "cs_test_1", "ord-1", CUSTOMER_ID)
    assert exc.value.code == ErrorCode.GATEWAY_FAILURE


def test_stripe_session_of_another_order_is_rejected(monkeypatch):
    orders = FakeOrdersRepository()
    orders.add(_order())
    monkeypatch.setattr(
        stripe_gateway.stripe_client, "get_session",
        lambda sid, api_key: {"id": sid, "status": "complete", "metadata": {"order_id": "ord-2"}},
    )
    with pytest.raises(StorefrontError):
        _stripe_gateway(orders).get_order_details_from_payment("stripe", "cs_test_1", "ord-1", CUSTOMER_ID)


def test_stripe_void_cancels_intent(monkeypatch):
    orders = FakeOrdersRepository()
    orders.add(_order())
    cancelled = []
    monkeypatch.setattr(stripe_gateway.stripe_client, "cancel_payment_intent", lambda pid, api_key: cancelled.append(pid) or {})
    gateway = _stripe_gateway(orders)
    gateway.order_id, gateway.customer_id = "ord-1", CUSTOMER_ID
    gateway.void("pi_1")
    assert cancelled == ["pi_1"]
    assert orders.rows == {}


# --- PayUMoney ---

def _payu(handler, orders=None):
    configuration = FakePaymentConfigurationRepository(PaymentConfiguration(
        provider="payumoney", client_id="merchant-key", client_secret="salt", web_experience_profile_id="auth-header",
    ))
    http = httpx.Client(base_url="https://payu.test", transport=httpx.MockTransport(handler))
    client = PayUMoneyClient("https://payu.test", configuration, http=http)
    return PayUMoneyGateway(orders or FakeOrdersRepository(), client, configuration, "Achat",
                            checkout_url="https://secure.payu.test/_payment")


def test_payumoney_checkout_url_is_signed():
    orders = FakeOrdersRepository()
    uri = _payu(lambda request: httpx.Response(200, json={}), orders).generate_payment_uri(RETURN_URL, _order())
    params = {k: v[0] for k, v in parse_qs(urlparse(uri).query, keep_blank_values=True).items()}

    assert params["txnid"] == "ord-1"
    assert params["amount"] == "20.00"
    assert params["hash"] == payment_hash("merchant-key", "ord-1", "20.00", "Achat", "", "", CUSTOMER_ID, "salt")
    assert ("ord-1", CUSTOMER_ID) in orders.rows


def test_payumoney_resolve_and_execute():
    calls = []

    def handler(request):
        calls.append(request)
        if request.url.path.endswith("getPaymentResponse"):
            return httpx.Response(200, json={"result": [{"postBackParam": {"status": "success", "txnid": "ord-1", "paymentId": "777"}}]})
        return httpx.Response(200, json={"result": [{"status": "Money with Payumoney"}]})

    orders = FakeOrdersRepository()
    orders.add(_order())
    gateway = _payu(handler, orders)
    order = gateway.get_order_details_from_payment("payumoney", "ord-1", "ord-1", CUSTOMER_ID)

    assert order.payment_reference == "777"
    assert gateway.execute_payment() == "777"
    assert calls[0].headers["Authorization"] == "auth-header"
    assert calls[0].url.params["merchantKey"] == "merchant-key"


def test_payumoney_failed_status_is_gateway_failure():
    def handler(request):
        return httpx.Response(200, json={"result": [{"postBackParam": {"status": "failure", "txnid": "ord-1"}}]})

    orders = FakeOrdersRepository()
    orders.add(_order())
    with pytest.raises(StorefrontError) as exc:
        _payu(handler, orders).get_order_details_from_payment("payumoney", "ord-1", "ord-1", CUSTOMER_ID)
    assert exc.value.code == ErrorCode.GATEWAY_FAILURE


def test_payumoney_http_error_is_gateway_failure():
    orders = FakeOrdersRepository()
    orders.add(_order())
    with pytest.raises(StorefrontError) as exc:
        _payu(lambda request: httpx.Response(500), orders).get_order_details_from_payment("payumoney", "ord-1", "ord-1", CUSTOMER_ID)
    assert exc.value.code == ErrorCode.GATEWAY_FAILURE


def test_payumoney_void_refunds_then_cleans_up():
    refunds = []

    def handler(request):
        if request.url.path.endswith("refundPayment"):
            refunds.append(dict(request.url.params))
        return httpx.Response(200, json={"status": 0})

    orders = FakeOrdersRepository()
    orders.add(_order())
    gateway = _payu(handler, orders)
    gateway.order_id, gateway.customer_id = "ord-1", CUSTOMER_ID
    gateway.amount = Decimal("20")
    gateway.void("777")

    assert refunds[0]["paymentId"] == "777"
    assert refunds[0]["refundAmount"] == "20.00"
    assert orders.rows == {}
