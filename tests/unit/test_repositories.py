from unittest.mock import MagicMock

import pytest

from storefront.customers.repository import CustomerRegistrationRepository, PreApprovedCustomersRepository
from storefront.errors import ErrorCode, StorefrontError
from storefront.orders.models import CommerceOperationType, Order
from storefront.orders.repository import CustomerOrdersRepository
from storefront.payments.configuration import PaymentConfigurationRepository
from storefront.subscriptions.repository import CustomerPurchasesRepository, CustomerSubscriptionsRepository
from storefront.subscriptions.models import SubscriptionHistoryEntry

from fakes import CUSTOMER_ID, NOW, make_subscription


class _Resp:
    def __init__(self, data=None):
        self.data = data


def _boom(*args, **kwargs):
    raise Exception("connexion perdue")


# --- Abonnements ---

def test_get_by_subscription_id_returns_none_when_absent():
    client = MagicMock()
    client.table.return_value.select.return_value.eq.return_value.execute.return_value = _Resp([])
    assert CustomerSubscriptionsRepository(client).get_by_subscription_id("sub-1") is None


def test_conditional_upsert_bumps_version():
    subscription = make_subscription(version=3)
    client = MagicMock()
    update = client.table.return_value.update
    update.return_value.eq.return_value.eq.return_value.execute.return_value = _Resp(
        [subscription.model_copy(update={"version": 4}).model_dump(mode="json")]
    )

    written = CustomerSubscriptionsRepository(client).upsert(subscription, expected_version=3)

    assert written.version == 4
    assert update.call_args[0][0]["version"] == 4
    update.return_value.eq.return_value.eq.assert_called_with("version", 3)


def test_conditional_upsert_without_match_is_concurrency_conflict():
    client = MagicMock()
    client.table.return_value.update.return_value.eq.return_value.eq.return_value.execute.return_value = _Resp([])
    with pytest.raises(StorefrontError) as exc:
        CustomerSubscriptionsRepository(client).upsert(make_subscription(), expected_version=0)
    assert exc.value.code == ErrorCode.CONCURRENCY_CONFLICT


def test_store_error_is_persistence_failure():
    client = MagicMock()
    client.table.return_value.select.return_value.eq.return_value.execute.side_effect = _boom
    with pytest.raises(StorefrontError) as exc:
        CustomerSubscriptionsRepository(client).get_by_customer(CUSTOMER_ID)
    assert exc.value.code == ErrorCode.PERSISTENCE_FAILURE


def test_purchases_are_appended_never_updated():
    client = MagicMock()
    repo = CustomerPurchasesRepository(client)

    entry = SubscriptionHistoryEntry(
        subscription_id="sub-1", customer_id=CUSTOMER_ID, partner_offer_id="offer-1",
        operation_type=CommerceOperationType.NEW_PURCHASE, seats_bought=1, seat_price="10.00", transaction_date=NOW,
    )
    assert repo.append(entry) is entry
    client.table.return_value.insert.assert_called_once()
    client.table.return_value.update.assert_not_called()


# --- Commandes en attente ---

def test_order_retrieve_missing_is_not_found():
    client = MagicMock()
    client.table.return_value.select.return_value.eq.return_value.eq.return_value.execute.return_value = _Resp([])
    with pytest.raises(StorefrontError) as exc:
        CustomerOrdersRepository(client).retrieve("ord-1", CUSTOMER_ID)
    assert exc.value.code == ErrorCode.NOT_FOUND


def test_order_blob_round_trip():
    order = Order(order_id="ord-1", customer_id=CUSTOMER_ID)
    client = MagicMock()
    repo = CustomerOrdersRepository(client)
    repo.add(order)
    row = client.table.return_value.upsert.call_args[0][0]
    client.table.return_value.select.return_value.eq.return_value.eq.return_value.execute.return_value = _Resp([row])
    assert repo.retrieve("ord-1", CUSTOMER_ID) == order


def test_order_delete_without_ids_is_noop():
    client = MagicMock()
    CustomerOrdersRepository(client).delete(None, CUSTOMER_ID)
    client.table.assert_not_called()


def test_order_without_id_is_rejected():
    with pytest.raises(StorefrontError) as exc:
        CustomerOrdersRepository(MagicMock()).add(Order(customer_id=CUSTOMER_ID))
    assert exc.value.code == ErrorCode.INVALID_INPUT


# --- Clients ---

def test_registration_missing_is_not_found():
    client = MagicMock()
    client.table.return_value.select.return_value.eq.return_value.execute.return_value = _Resp([])
    with pytest.raises(StorefrontError) as exc:
        CustomerRegistrationRepository(client).retrieve("reg-1")
    assert exc.value.code == ErrorCode.NOT_FOUND


@pytest.mark.parametrize("ids,customer_id,expected", [
    (["c1", "c2"], "c1", True),
    (["c1"], "c3", False),
    (["*"], "anyone", True),
    (["*"], "", False),
])
def test_preapproved_customers(ids, customer_id, expected):
    client = MagicMock()
    client.table.return_value.select.return_value.execute.return_value = _Resp([{"customer_id": i} for i in ids])
    assert PreApprovedCustomersRepository(client).is_customer_preapproved(customer_id) is expected


# --- Configuration des paiements ---

def test_payment_configuration_not_configured():
    client = MagicMock()
    client.table.return_value.select.return_value.eq.return_value.execute.return_value = _Resp([])
    repo = PaymentConfigurationRepository(client)
    assert repo.is_configured() is False
    with pytest.raises(StorefrontError) as exc:
        repo.retrieve()
    assert exc.value.code == ErrorCode.NOT_FOUND


def test_payment_configuration_store_failure_propagates():
    client = MagicMock()
    client.table.return_value.select.return_value.eq.return_value.execute.side_effect = _boom
    with pytest.raises(StorefrontError) as exc:
        PaymentConfigurationRepository(client).is_configured()
    assert exc.value.code == ErrorCode.PERSISTENCE_FAILURE


def test_payment_configuration_retrieve():
    client = MagicMock()
    client.table.return_value.select.return_value.eq.return_value.execute.return_value = _Resp(
        [{"key": "payment", "value": {"provider": "payumoney", "client_id": "mk"}}]
    )
    cfg = PaymentConfigurationRepository(client).retrieve()
    assert cfg.provider == "payumoney"
    assert cfg.client_id == "mk"
