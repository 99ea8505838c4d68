"""
Passerelle à redirection (Stripe Checkout).
- La commande normalisée est persistée AVANT la redirection (l'instance qui reprend peut être une autre).
- success_url embarque l'id de commande et {CHECKOUT_SESSION_ID}; au retour on relit la session Stripe,
  on vérifie qu'elle est complète et qu'elle porte bien la même commande, puis on relit la commande persistée.
- Capture / annulation: PaymentIntent.capture / cancel, avec la clé lue dans le store de configuration.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from storefront.commerce.pricing import round_currency
from storefront.errors import ErrorCode, StorefrontError
from storefront.orders.models import Order
from storefront.payments import stripe_client
from storefront.payments.gateway import PaymentGateway, require_value

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal, decimals: int) -> int:
    return int(round_currency(amount, decimals).scaleb(decimals))


def to_line_items(order: Order, currency: str, decimals: int) -> List[Dict[str, Any]]:
    """Lignes Stripe 'price_data' (montant unitaire en unités mineures de la devise)."""
    line_items: List[Dict[str, Any]] = []
    for item in order.subscriptions:
        line_items.append({
            "quantity": item.quantity,
            "price_data": {
                "currency": currency,
                "unit_amount": to_minor_units(item.seat_price, decimals),
                "product_data": {"name": item.friendly_name or item.offer_id or "Abonnement"},
            },
        })
    if not line_items:
        raise StorefrontError(ErrorCode.INVALID_INPUT, "Aucun article à payer", {"field": "subscriptions"})
    return line_items


def make_metadata(order: Order, description: str) -> Dict[str, str]:
    return {
        "order_id": order.order_id or "",
        "customer_id": order.customer_id or "",
        "operation_type": order.operation_type.value,
        "description": description[:500],
    }


class StripeGateway(PaymentGateway):
    def __init__(self, orders, payment_configuration, description: str, *, currency: str = "usd",
                 decimals: int = 2, fallback_secret_key: str = ""):
        super().__init__(orders, description)
        self.payment_configuration = payment_configuration
        self.currency = currency
        self.decimals = decimals
        self.fallback_secret_key = fallback_secret_key
        self.payment_intent_id: Optional[str] = None

    def _secret_key(self) -> str:
        key = self.payment_configuration.retrieve().client_secret or self.fallback_secret_key
        if not key:
            raise StorefrontError(ErrorCode.GATEWAY_FAILURE, "Clé Stripe non configurée", {"provider": "stripe"})
        return key

    def generate_payment_uri(self, return_url: str, order: Order) -> str:
        line_items = to_line_items(order, self.currency, self.decimals)
        saved = self._persist_pending_order(order)
        session = stripe_client.create_session(
            api_key=self._secret_key(),
            line_items=line_items,
            success_url=f"{return_url}&oid={saved.order_id}&payment=success&PayerID=stripe&paymentId={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{return_url}&oid={saved.order_id}&payment=failure",
            metadata=make_metadata(saved, self.description),
        )
        url = session.get("url")
        if not url:
            raise StorefrontError(ErrorCode.GATEWAY_FAILURE, "Session Stripe sans URL", {"order_id": saved.order_id})
        return url

    def get_order_details_from_payment(self, payer_id: str, payment_id: str, order_id: str, customer_id: str) -> Order:
        require_value(payment_id, "payment_id")
        require_value(order_id, "order_id")
        require_value(customer_id, "customer_id")
        self._bind(order_id, customer_id)

        session = stripe_client.get_session(payment_id, api_key=self._secret_key())
        if session.get("status") != "complete":
            raise StorefrontError(
                ErrorCode.GATEWAY_FAILURE,
                "Paiement non complété",
                {"payment_id": payment_id, "status": session.get("status")},
            )
        metadata = session.get("metadata") or {}
        if metadata.get("order_id") != order_id:
            raise StorefrontError(ErrorCode.GATEWAY_FAILURE, "Session de paiement d'une autre commande", {"order_id": order_id})

        order = self.orders.retrieve(order_id, customer_id)
        self.payment_intent_id = session.get("payment_intent")
        return order.model_copy(update={"payment_reference": self.payment_intent_id})

    def execute_payment(self) -> str:
        if not self.payment_intent_id:
            raise StorefrontError(ErrorCode.GATEWAY_FAILURE, "Aucun paiement autorisé", {"order_id": self.order_id})
        return self.payment_intent_id

    def capture(self, authorization_code: str) -> None:
        stripe_client.capture_payment_intent(authorization_code, api_key=self._secret_key())
        self._cleanup_after_capture()

    def void(self, authorization_code: str) -> None:
        stripe_client.cancel_payment_intent(authorization_code, api_key=self._secret_key())
        self._delete_pending_order()
