"""
Normalisation d'une commande avant paiement (lecture seule, aucun effet de bord).

Validation: toutes les violations sont collectées avant de lever, chacune avec son champ
(ex: subscriptions[1].quantity) et son code. L'erreur levée porte le code commun à toutes les
violations (ex: NotFound, RenewalNotEligible), InvalidInput sinon; details["errors"] les liste.

Enrichissement: prix du catalogue (le prix client est ignoré), prorata pour l'ajout de sièges,
quantité forcée au nombre de sièges courant pour un renouvellement, nom lisible,
nouvel order_id (uuid4) et customer_id authentifié.
"""
import logging
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

from storefront.commerce.pricing import (
    calculate_prorated_seat_charge,
    check_renewal_eligibility,
    ensure_not_expired,
    round_currency,
)
from storefront.errors import ErrorCode, StorefrontError
from storefront.offers.models import PartnerOffer
from storefront.offers.service import index_platform_offers, is_offer_available
from storefront.orders.models import CommerceOperationType, Order, OrderLineItem

logger = logging.getLogger(__name__)


class OrderNormalizer:
    def __init__(self, ctx, customer_id: str):
        self.ctx = ctx
        self.customer_id = customer_id
        self.errors: List[Dict[str, Any]] = []
        self.invalid_quantities: Set[int] = set()

    def _violation(self, field: str, code: ErrorCode, message: str) -> None:
        self.errors.append({"field": field, "code": code.value, "message": message})

    def _raise_if_invalid(self) -> None:
        if not self.errors:
            return
        codes = {e["code"] for e in self.errors}
        code = ErrorCode(codes.pop()) if len(codes) == 1 else ErrorCode.INVALID_INPUT
        raise StorefrontError(code, "Commande invalide", {"errors": list(self.errors)})

    def normalize(self, order: Order, operation_type: CommerceOperationType) -> Order:
        self.errors = []
        if not self.customer_id:
            self._violation("customer_id", ErrorCode.INVALID_INPUT, "Client requis")
        if not order.subscriptions:
            self._violation("subscriptions", ErrorCode.INVALID_INPUT, "Au moins un article est requis")
            self._raise_if_invalid()
        # Les lignes à quantité invalide sont encore vérifiées mais pas enrichies
        self.invalid_quantities = set()
        for index, line in enumerate(order.subscriptions):
            if line.quantity <= 0:
                self._violation(f"subscriptions[{index}].quantity", ErrorCode.INVALID_INPUT, "La quantité doit être un entier positif")
                self.invalid_quantities.add(index)

        offers = self.ctx.offers.get_partner_offers_map()
        platform_by_id = index_platform_offers(self.ctx.offers.list_platform_offers())

        if operation_type == CommerceOperationType.NEW_PURCHASE:
            lines = self._normalize_purchase(order.subscriptions, offers, platform_by_id)
        else:
            lines = self._normalize_existing(order.subscriptions, operation_type, offers, platform_by_id)
        self._raise_if_invalid()

        return Order(
            order_id=str(uuid4()),
            customer_id=self.customer_id,
            operation_type=operation_type,
            subscriptions=lines,
        )

    def _available_offer(self, field: str, offer_id: Optional[str], offers: Dict[str, PartnerOffer],
                         platform_by_id) -> Optional[PartnerOffer]:
        offer = offers.get(offer_id or "")
        if offer is None:
            self._violation(field, ErrorCode.NOT_FOUND, "Offre introuvable")
            return None
        if not is_offer_available(offer, platform_by_id):
            self._violation(field, ErrorCode.INVALID_INPUT, "Offre inactive ou retirée")
            return None
        return offer

    def _normalize_purchase(self, items: List[OrderLineItem], offers, platform_by_id) -> List[OrderLineItem]:
        merged: Dict[str, OrderLineItem] = {}
        for index, item in enumerate(items):
            offer = self._available_offer(f"subscriptions[{index}].offer_id", item.offer_id, offers, platform_by_id)
            if offer is None:
                continue
            if index in self.invalid_quantities:
                continue
            if offer.id in merged:
                existing = merged[offer.id]
                merged[offer.id] = existing.model_copy(update={"quantity": existing.quantity + item.quantity})
                continue
            merged[offer.id] = OrderLineItem(
                offer_id=offer.id,
                quantity=item.quantity,
                seat_price=round_currency(offer.price, self.ctx.settings.currency_decimals),
                friendly_name=offer.title,
            )
        return list(merged.values())

    def _normalize_existing(self, items: List[OrderLineItem], operation_type: CommerceOperationType,
                            offers, platform_by_id) -> List[OrderLineItem]:
        settings = self.ctx.settings
        today = self.ctx.now()
        seen = set()
        lines: List[OrderLineItem] = []
        for index, item in enumerate(items):
            field = f"subscriptions[{index}].subscription_id"
            if not item.subscription_id:
                self._violation(field, ErrorCode.INVALID_INPUT, "Identifiant d'abonnement requis")
                continue
            if item.subscription_id in seen:
                self._violation(field, ErrorCode.INVALID_INPUT, "Abonnement en double dans la commande")
                continue
            seen.add(item.subscription_id)

            subscription = self.ctx.subscriptions.get_by_subscription_id(item.subscription_id)
            if subscription is None:
                self._violation(field, ErrorCode.NOT_FOUND, "Abonnement introuvable")
                continue
            if subscription.customer_id != self.customer_id:
                self._violation(field, ErrorCode.INVALID_INPUT, "Abonnement d'un autre client")
                continue
            offer = self._available_offer(field, subscription.partner_offer_id, offers, platform_by_id)
            if offer is None:
                continue

            try:
                if operation_type == CommerceOperationType.ADDITIONAL_SEATS_PURCHASE:
                    ensure_not_expired(today, subscription.expiry_date, subscription.subscription_id)
                else:
                    check_renewal_eligibility(
                        today,
                        subscription.expiry_date,
                        settings.renewal_window_days,
                        settings.renewal_grace_days,
                        subscription.subscription_id,
                    )
            except StorefrontError as exc:
                self._violation(field, exc.code, str(exc))
                continue
            if index in self.invalid_quantities:
                continue

            if operation_type == CommerceOperationType.ADDITIONAL_SEATS_PURCHASE:
                price = calculate_prorated_seat_charge(today, subscription.expiry_date, settings.term_days, offer.price)
                quantity = item.quantity
            else:
                price = offer.price
                quantity = subscription.seat_count
            lines.append(OrderLineItem(
                offer_id=offer.id,
                subscription_id=subscription.subscription_id,
                quantity=quantity,
                seat_price=round_currency(price, settings.currency_decimals),
                friendly_name=offer.title,
            ))
        return lines
