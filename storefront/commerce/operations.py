"""
Moteur commerce: applique une commande payée aux abonnements du client.

Déroulé commun (_run_paid_transaction):
  1. toutes les vérifications (offre, propriété, expiration, fenêtre de renouvellement) AVANT tout paiement;
  2. execute_payment -> code d'autorisation;
  3. transaction agrégée (plateforme, abonnements, puis historique en dernier);
  4. capture si tout a réussi; sinon compensation des étapes exécutées, void, et l'erreur d'origine remonte.
Les prix viennent toujours du catalogue partenaire au moment de l'exécution.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterator, List, Tuple

from pydantic import BaseModel, Field

from storefront.commerce.pricing import (
    calculate_prorated_seat_charge,
    check_renewal_eligibility,
    ensure_not_expired,
    round_currency,
)
from storefront.commerce.transactions import (
    BusinessTransaction,
    PlacePlatformOrder,
    RecordNewCustomerSubscription,
    RecordPurchase,
    SequentialAggregateTransaction,
    UpdateCustomerSubscription,
    UpdatePlatformSubscriptionQuantity,
)
from storefront.errors import ErrorCode, StorefrontError, is_fatal
from storefront.offers.models import PartnerOffer
from storefront.orders.models import CommerceOperationType, Order, OrderLineItem
from storefront.subscriptions.models import Subscription, SubscriptionHistoryEntry, SubscriptionStatus

logger = logging.getLogger(__name__)


class TransactionResult(BaseModel):
    operation_type: CommerceOperationType
    customer_id: str
    subscriptions: List[Subscription] = Field(default_factory=list)
    history_entries: List[SubscriptionHistoryEntry] = Field(default_factory=list)
    total_charge: Decimal = Decimal("0")
    transaction_date: datetime


class CommerceOperations:
    def __init__(self, ctx, customer_id: str, payment_gateway):
        if not customer_id:
            raise StorefrontError(ErrorCode.INVALID_INPUT, "Client requis", {"field": "customer_id"})
        self.ctx = ctx
        self.customer_id = customer_id
        self.payment_gateway = payment_gateway

    @property
    def settings(self):
        return self.ctx.settings

    # --- Helpers ---

    def _round(self, amount: Decimal) -> Decimal:
        return round_currency(amount, self.settings.currency_decimals)

    def _partner_offer(self, offers: Dict[str, PartnerOffer], offer_id: str) -> PartnerOffer:
        offer = offers.get(offer_id or "")
        if offer is None:
            raise StorefrontError(ErrorCode.NOT_FOUND, "Offre introuvable", {"offer_id": offer_id})
        return offer

    def _owned_subscription(self, subscription_id: str) -> Subscription:
        subscription = self.ctx.subscriptions.get_by_subscription_id(subscription_id)
        if subscription is None:
            raise StorefrontError(ErrorCode.NOT_FOUND, "Abonnement introuvable", {"subscription_id": subscription_id})
        if subscription.customer_id != self.customer_id:
            raise StorefrontError(
                ErrorCode.INVALID_INPUT,
                "Abonnement d'un autre client",
                {"subscription_id": subscription_id, "field": "subscription_id"},
            )
        return subscription

    @staticmethod
    def _require_lines(order: Order) -> List[OrderLineItem]:
        lines = list(order.subscriptions)
        if not lines:
            raise StorefrontError(ErrorCode.INVALID_INPUT, "Commande vide", {"field": "subscriptions"})
        for index, line in enumerate(lines):
            if line.quantity <= 0:
                raise StorefrontError(ErrorCode.INVALID_INPUT, "Quantité invalide", {"field": f"subscriptions[{index}].quantity"})
        return lines

    def _void_quietly(self, authorization_code: str) -> None:
        try:
            self.payment_gateway.void(authorization_code)
        except Exception as exc:
            if is_fatal(exc):
                raise
            logger.exception("commerce.operations.void failed customer_id=%s", self.customer_id)

    def _run_paid_transaction(self, steps: Callable[[], Iterator[BusinessTransaction]]) -> SequentialAggregateTransaction:
        authorization_code = self.payment_gateway.execute_payment()
        aggregate = SequentialAggregateTransaction(steps())
        try:
            aggregate.execute()
            self.payment_gateway.capture(authorization_code)
        except Exception:
            aggregate.rollback()
            self._void_quietly(authorization_code)
            raise
        return aggregate

    def _result(self, operation_type: CommerceOperationType, subscriptions: List[Subscription],
                entries: List[SubscriptionHistoryEntry], now: datetime) -> TransactionResult:
        total = sum((self._round(e.order_total) for e in entries), Decimal("0"))
        return TransactionResult(
            operation_type=operation_type,
            customer_id=self.customer_id,
            subscriptions=subscriptions,
            history_entries=entries,
            total_charge=total,
            transaction_date=now,
        )

    # --- Opérations ---

    def purchase(self, order: Order) -> TransactionResult:
        """Achat: une commande plateforme, un abonnement et une entrée d'historique par ligne."""
        lines = self._require_lines(order)
        offers = self.ctx.offers.get_partner_offers_map()
        priced: List[Tuple[OrderLineItem, PartnerOffer]] = [(line, self._partner_offer(offers, line.offer_id)) for line in lines]
        now = self.ctx.now()
        expiry = now + timedelta(days=self.settings.term_days)

        place_order = PlacePlatformOrder(
            self.ctx.platform,
            self.customer_id,
            [{"offer_id": offer.platform_offer_id, "quantity": line.quantity} for line, offer in priced],
        )
        subscriptions: List[Subscription] = []
        entries: List[SubscriptionHistoryEntry] = []

        def steps() -> Iterator[BusinessTransaction]:
            yield place_order
            created = place_order.result or []
            if len(created) != len(priced):
                raise StorefrontError(
                    ErrorCode.PLATFORM_FAILURE,
                    "Commande plateforme incomplète",
                    {"expected": len(priced), "created": len(created)},
                )
            for (line, offer), created_line in zip(priced, created):
                subscriptions.append(Subscription(
                    subscription_id=created_line["subscription_id"],
                    customer_id=self.customer_id,
                    partner_offer_id=offer.id,
                    seat_count=line.quantity,
                    expiry_date=expiry,
                    status=SubscriptionStatus.ACTIVE,
                ))
                yield RecordNewCustomerSubscription(self.ctx.subscriptions, subscriptions[-1])
            for subscription, (line, offer) in zip(subscriptions, priced):
                entries.append(SubscriptionHistoryEntry(
                    subscription_id=subscription.subscription_id,
                    customer_id=self.customer_id,
                    partner_offer_id=offer.id,
                    operation_type=CommerceOperationType.NEW_PURCHASE,
                    seats_bought=line.quantity,
                    seat_price=offer.price,
                    transaction_date=now,
                ))
                yield RecordPurchase(self.ctx.purchases, entries[-1])

        self._run_paid_transaction(steps)
        logger.info("commerce.operations.purchase customer_id=%s subscriptions=%s", self.customer_id, len(subscriptions))
        return self._result(CommerceOperationType.NEW_PURCHASE, subscriptions, entries, now)

    def purchase_additional_seats(self, order: Order) -> TransactionResult:
        """Ajout de sièges au prorata du terme restant; l'abonnement ne doit pas être expiré."""
        lines = self._require_lines(order)
        offers = self.ctx.offers.get_partner_offers_map()
        now = self.ctx.now()

        plans: List[Tuple[OrderLineItem, Subscription, Subscription, Decimal]] = []
        for line in lines:
            current = self._owned_subscription(line.subscription_id)
            ensure_not_expired(now, current.expiry_date, current.subscription_id)
            offer = self._partner_offer(offers, current.partner_offer_id)
            prorated = self._round(calculate_prorated_seat_charge(now, current.expiry_date, self.settings.term_days, offer.price))
            updated = current.model_copy(update={"seat_count": current.seat_count + line.quantity})
            plans.append((line, current, updated, prorated))

        updated_subscriptions: List[Subscription] = []
        entries: List[SubscriptionHistoryEntry] = []

        def steps() -> Iterator[BusinessTransaction]:
            for line, current, updated, _ in plans:
                yield UpdatePlatformSubscriptionQuantity(
                    self.ctx.platform, self.customer_id, current.subscription_id, updated.seat_count, current.seat_count,
                )
                update = UpdateCustomerSubscription(self.ctx.subscriptions, updated, current)
                yield update
                updated_subscriptions.append(update.result)
            for line, current, _, prorated in plans:
                entries.append(SubscriptionHistoryEntry(
                    subscription_id=current.subscription_id,
                    customer_id=self.customer_id,
                    partner_offer_id=current.partner_offer_id,
                    operation_type=CommerceOperationType.ADDITIONAL_SEATS_PURCHASE,
                    seats_bought=line.quantity,
                    seat_price=prorated,
                    transaction_date=now,
                ))
                yield RecordPurchase(self.ctx.purchases, entries[-1])

        self._run_paid_transaction(steps)
        logger.info("commerce.operations.additional_seats customer_id=%s lines=%s", self.customer_id, len(plans))
        return self._result(CommerceOperationType.ADDITIONAL_SEATS_PURCHASE, updated_subscriptions, entries, now)

    def renew_subscription(self, order: Order) -> TransactionResult:
        """Renouvellement: +1 terme à partir de l'expiration actuelle, prix plein pour les sièges existants."""
        lines = self._require_lines(order)
        offers = self.ctx.offers.get_partner_offers_map()
        now = self.ctx.now()

        plans: List[Tuple[Subscription, Subscription, PartnerOffer]] = []
        for line in lines:
            current = self._owned_subscription(line.subscription_id)
            check_renewal_eligibility(
                now,
                current.expiry_date,
                self.settings.renewal_window_days,
                self.settings.renewal_grace_days,
                current.subscription_id,
            )
            offer = self._partner_offer(offers, current.partner_offer_id)
            updated = current.model_copy(update={
                "expiry_date": current.expiry_date + timedelta(days=self.settings.term_days),
                "status": SubscriptionStatus.ACTIVE,
            })
            plans.append((current, updated, offer))

        renewed: List[Subscription] = []
        entries: List[SubscriptionHistoryEntry] = []

        def steps() -> Iterator[BusinessTransaction]:
            for current, updated, _ in plans:
                update = UpdateCustomerSubscription(self.ctx.subscriptions, updated, current)
                yield update
                renewed.append(update.result)
            for current, _, offer in plans:
                entries.append(SubscriptionHistoryEntry(
                    subscription_id=current.subscription_id,
                    customer_id=self.customer_id,
                    partner_offer_id=offer.id,
                    operation_type=CommerceOperationType.RENEWAL,
                    seats_bought=current.seat_count,
                    seat_price=offer.price,
                    transaction_date=now,
                ))
                yield RecordPurchase(self.ctx.purchases, entries[-1])

        self._run_paid_transaction(steps)
        logger.info("commerce.operations.renewal customer_id=%s lines=%s", self.customer_id, len(plans))
        return self._result(CommerceOperationType.RENEWAL, renewed, entries, now)

    def execute_operation(self, order: Order) -> TransactionResult:
        handlers = {
            CommerceOperationType.NEW_PURCHASE: self.purchase,
            CommerceOperationType.ADDITIONAL_SEATS_PURCHASE: self.purchase_additional_seats,
            CommerceOperationType.RENEWAL: self.renew_subscription,
        }
        return handlers[order.operation_type](order)
