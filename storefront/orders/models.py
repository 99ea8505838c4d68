# module storefront.orders.models
"""Modèles de commande.
- CommerceOperationType: type d'opération demandé par le client.
- OrderLineItem / Order: commande brute (telle que reçue) puis normalisée (prix, ids).
Les montants sont des Decimal; aucun prix envoyé par le client n'est conservé après normalisation.
"""
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class CommerceOperationType(str, Enum):
    NEW_PURCHASE = "NewPurchase"
    ADDITIONAL_SEATS_PURCHASE = "AdditionalSeatsPurchase"
    RENEWAL = "Renewal"


class OrderLineItem(BaseModel):
    offer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    quantity: int = 0
    seat_price: Decimal = Decimal("0")
    friendly_name: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.seat_price * self.quantity


class Order(BaseModel):
    order_id: Optional[str] = None
    customer_id: Optional[str] = None
    operation_type: CommerceOperationType = CommerceOperationType.NEW_PURCHASE
    subscriptions: List[OrderLineItem] = Field(default_factory=list)
    payment_reference: Optional[str] = None

    @property
    def total(self) -> Decimal:
        return sum((item.line_total for item in self.subscriptions), Decimal("0"))


class PrepareOrderRequest(BaseModel):
    """Corps JSON attendu par /api/v1/orders/prepare (le client ne fournit ni prix ni ids internes)."""
    operation_type: CommerceOperationType
    subscriptions: List[OrderLineItem]


class NewCustomerPrepareOrderRequest(BaseModel):
    customer_id: str
    subscriptions: List[OrderLineItem]
