"""
Interface commune des passerelles de paiement.
Les opérations commerce et les vues ne connaissent que cette interface, jamais la passerelle concrète.

Cycle d'un paiement:
  generate_payment_uri -> (aller-retour externe) -> get_order_details_from_payment
  -> execute_payment -> [transaction métier] -> capture (succès) | void (échec)
L'instance garde le couple (order_id, customer_id) pour que capture/void retrouvent la commande en attente.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from storefront.errors import ErrorCode, StorefrontError, is_fatal
from storefront.orders.models import Order

logger = logging.getLogger(__name__)


def require_value(value: Optional[str], name: str) -> str:
    if not value:
        raise StorefrontError(ErrorCode.INVALID_INPUT, f"{name} manquant", {"field": name})
    return value


class PaymentGateway(ABC):
    def __init__(self, orders, description: str):
        self.orders = orders
        self.description = description
        self.order_id: Optional[str] = None
        self.customer_id: Optional[str] = None

    def _bind(self, order_id: Optional[str], customer_id: Optional[str]) -> None:
        self.order_id = order_id
        self.customer_id = customer_id

    def _persist_pending_order(self, order: Order) -> Order:
        saved = self.orders.add(order)
        self._bind(saved.order_id, saved.customer_id)
        return saved

    def _delete_pending_order(self) -> None:
        self.orders.delete(self.order_id, self.customer_id)

    def _cleanup_after_capture(self) -> None:
        """Le paiement est encaissé: un échec de suppression de la commande en attente ne remonte pas."""
        try:
            self._delete_pending_order()
        except Exception as exc:
            if is_fatal(exc):
                raise
            logger.exception("payments.cleanup failed order_id=%s customer_id=%s", self.order_id, self.customer_id)

    @abstractmethod
    def generate_payment_uri(self, return_url: str, order: Order) -> str:
        ...

    @abstractmethod
    def get_order_details_from_payment(self, payer_id: str, payment_id: str, order_id: str, customer_id: str) -> Order:
        ...

    @abstractmethod
    def execute_payment(self) -> str:
        """Autorise le paiement et retourne le code d'autorisation."""

    @abstractmethod
    def capture(self, authorization_code: str) -> None:
        ...

    @abstractmethod
    def void(self, authorization_code: str) -> None:
        ...
