# module storefront.subscriptions.models
"""Entités d'abonnement.
- Subscription: une ligne par subscription_id (écrite uniquement par les opérations commerce).
- SubscriptionHistoryEntry: journal append-only d'une transaction (jamais modifié ni supprimé).
- Vues de synthèse renvoyées au front (SubscriptionsSummary, ManagedSubscriptions).
"""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from storefront.orders.models import CommerceOperationType


class SubscriptionStatus(str, Enum):
    ACTIVE = "Active"
    SUSPENDED = "Suspended"
    DELETED = "Deleted"
    NONE = "None"


class Subscription(BaseModel):
    subscription_id: str
    customer_id: str
    partner_offer_id: str
    seat_count: int
    expiry_date: datetime
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    version: int = 0


class SubscriptionHistoryEntry(BaseModel):
    subscription_id: str
    customer_id: str
    partner_offer_id: str
    operation_type: CommerceOperationType
    seats_bought: int
    seat_price: Decimal
    transaction_date: datetime

    @property
    def order_total(self) -> Decimal:
        return self.seat_price * self.seats_bought


# Types dont les sièges achetés s'ajoutent au total (un renouvellement refacture l'existant).
SEAT_DELTA_OPERATIONS = (
    CommerceOperationType.NEW_PURCHASE,
    CommerceOperationType.ADDITIONAL_SEATS_PURCHASE,
)


def reconcile_seat_total(entries: List[SubscriptionHistoryEntry]) -> int:
    return sum(e.seats_bought for e in entries if e.operation_type in SEAT_DELTA_OPERATIONS)


class SubscriptionHistoryView(BaseModel):
    order_total: Decimal
    price_per_seat: Decimal
    seats_bought: int
    order_date: date
    operation_type: CommerceOperationType


class SubscriptionView(BaseModel):
    subscription_id: str
    friendly_name: str
    portal_offer_id: str
    portal_offer_price: Decimal
    is_renewable: bool
    is_editable: bool
    licenses_total: int = 0
    subscription_total: Decimal = Decimal("0")
    subscription_expiry_date: date
    subscription_order_history: List[SubscriptionHistoryView] = Field(default_factory=list)
    subscription_prorated_price: Decimal


class SubscriptionsSummary(BaseModel):
    subscriptions: List[SubscriptionView] = Field(default_factory=list)
    summary_total: Decimal = Decimal("0")
    customer: Optional[dict] = None


class CustomerManagedSubscription(BaseModel):
    subscription_id: str
    friendly_name: str
    licenses_total: int
    status: str
    creation_date: Optional[date] = None
    is_renewable: bool
    is_editable: bool
    portal_offer_id: str
    subscription_prorated_price: Decimal


class PartnerManagedSubscription(BaseModel):
    id: str
    offer_name: str
    quantity: int
    status: str
    creation_date: Optional[date] = None


class ManagedSubscriptions(BaseModel):
    customer_managed_subscriptions: List[CustomerManagedSubscription] = Field(default_factory=list)
    partner_managed_subscriptions: List[PartnerManagedSubscription] = Field(default_factory=list)
