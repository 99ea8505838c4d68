"""
Commandes en attente de paiement (table 'customer_orders').
- Persistées AVANT la redirection vers la passerelle pour survivre à l'aller-retour externe.
- Clé (order_id, customer_id), valeur: la commande normalisée en JSON opaque.
- delete est idempotent: supprimer une commande absente ne lève rien.
"""
import logging

from storefront.errors import ErrorCode, StorefrontError
from storefront.orders.models import Order

logger = logging.getLogger(__name__)

ORDERS_TABLE = "customer_orders"


class CustomerOrdersRepository:
    def __init__(self, client):
        self.client = client

    def add(self, order: Order) -> Order:
        if not order.order_id or not order.customer_id:
            raise StorefrontError(ErrorCode.INVALID_INPUT, "Commande sans identifiant", {"field": "order_id"})
        row = {
            "order_id": order.order_id,
            "customer_id": order.customer_id,
            "order": order.model_dump(mode="json"),
        }
        try:
            self.client.table(ORDERS_TABLE).upsert(row).execute()
        except Exception as exc:
            logger.exception("orders.repository.add failed order_id=%s", order.order_id)
            raise StorefrontError(ErrorCode.PERSISTENCE_FAILURE, "Enregistrement de la commande impossible", {"order_id": order.order_id}) from exc
        return order

    def retrieve(self, order_id: str, customer_id: str) -> Order:
        try:
            res = (
                self.client.table(ORDERS_TABLE)
                .select("*")
                .eq("order_id", order_id)
                .eq("customer_id", customer_id)
                .execute()
            )
        except Exception as exc:
            logger.exception("orders.repository.retrieve failed order_id=%s", order_id)
            raise StorefrontError(ErrorCode.PERSISTENCE_FAILURE, "Lecture de la commande impossible", {"order_id": order_id}) from exc
        rows = res.data or []
        if not rows:
            raise StorefrontError(ErrorCode.NOT_FOUND, "Commande introuvable", {"order_id": order_id})
        return Order.model_validate(rows[0].get("order") or {})

    def delete(self, order_id: str, customer_id: str) -> None:
        if not order_id or not customer_id:
            return
        try:
            (
                self.client.table(ORDERS_TABLE)
                .delete()
                .eq("order_id", order_id)
                .eq("customer_id", customer_id)
                .execute()
            )
        except Exception as exc:
            logger.exception("orders.repository.delete failed order_id=%s", order_id)
            raise StorefrontError(ErrorCode.PERSISTENCE_FAILURE, "Suppression de la commande impossible", {"order_id": order_id}) from exc
