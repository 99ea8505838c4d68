"""
Cas d'usage 'abonnements': synthèse client et abonnements gérés.
Les lectures indépendantes sont lancées en parallèle (asyncio.gather + run_in_threadpool) puis jointes.
"""
import asyncio
import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from starlette.concurrency import run_in_threadpool

from storefront.commerce.pricing import (
    calculate_prorated_seat_charge,
    is_expired,
    is_renewable,
    round_currency,
)
from storefront.offers.models import PartnerOffer, PlatformOffer
from storefront.offers.service import index_platform_offers, is_offer_available
from storefront.subscriptions.models import (
    CustomerManagedSubscription,
    ManagedSubscriptions,
    PartnerManagedSubscription,
    Subscription,
    SubscriptionHistoryEntry,
    SubscriptionHistoryView,
    SubscriptionsSummary,
    SubscriptionView,
    reconcile_seat_total,
)

logger = logging.getLogger(__name__)


def _management_flags(subscription: Subscription, offer: Optional[PartnerOffer], platform_by_id, today: datetime,
                      settings) -> Dict[str, Any]:
    """is_renewable / is_editable / prix proraté par siège, désactivés si l'offre est inactive ou retirée."""
    available = offer is not None and is_offer_available(offer, platform_by_id)
    price = offer.price if offer is not None else Decimal("0")
    prorated = calculate_prorated_seat_charge(today, subscription.expiry_date, settings.term_days, price)
    return {
        "is_renewable": available and is_renewable(today, subscription.expiry_date, settings.renewal_window_days, settings.renewal_grace_days),
        "is_editable": available and not is_expired(today, subscription.expiry_date),
        "subscription_prorated_price": round_currency(prorated, settings.currency_decimals),
    }


def build_subscriptions_summary(
    subscriptions: Iterable[Subscription],
    history: Iterable[SubscriptionHistoryEntry],
    partner_offers: Iterable[PartnerOffer],
    platform_offers: Iterable[PlatformOffer],
    today: datetime,
    settings,
) -> SubscriptionsSummary:
    offers_by_id = {o.id: o for o in partner_offers}
    platform_by_id = index_platform_offers(platform_offers)
    history = list(history)
    decimals = settings.currency_decimals

    views: List[SubscriptionView] = []
    summary_total = Decimal("0")
    for subscription in subscriptions:
        entries = sorted(
            (h for h in history if h.subscription_id == subscription.subscription_id),
            key=lambda h: h.transaction_date,
        )
        history_views = [
            SubscriptionHistoryView(
                order_total=round_currency(h.order_total, decimals),
                price_per_seat=h.seat_price,
                seats_bought=h.seats_bought,
                order_date=h.transaction_date.date(),
                operation_type=h.operation_type,
            )
            for h in entries
        ]
        subscription_total = sum((v.order_total for v in history_views), Decimal("0"))
        offer = offers_by_id.get(subscription.partner_offer_id)
        views.append(SubscriptionView(
            subscription_id=subscription.subscription_id,
            friendly_name=offer.title if offer else subscription.partner_offer_id,
            portal_offer_id=subscription.partner_offer_id,
            portal_offer_price=offer.price if offer else Decimal("0"),
            licenses_total=reconcile_seat_total(entries),
            subscription_total=subscription_total,
            subscription_expiry_date=subscription.expiry_date.date(),
            subscription_order_history=history_views,
            **_management_flags(subscription, offer, platform_by_id, today, settings),
        ))
        summary_total += subscription_total

    views.sort(key=lambda v: v.friendly_name)
    return SubscriptionsSummary(subscriptions=views, summary_total=summary_total)


async def get_subscription_summary(ctx, customer_id: str) -> SubscriptionsSummary:
    start = time.perf_counter()
    subscriptions, history, partner_offers, platform_offers = await asyncio.gather(
        run_in_threadpool(ctx.subscriptions.get_by_customer, customer_id),
        run_in_threadpool(ctx.purchases.list_by_customer, customer_id),
        run_in_threadpool(ctx.offers.list_partner_offers),
        run_in_threadpool(ctx.offers.list_platform_offers),
    )
    summary = build_subscriptions_summary(subscriptions, history, partner_offers, platform_offers, ctx.now(), ctx.settings)
    logger.info(
        "subscriptions.summary customer_id=%s subscriptions=%s elapsed_ms=%.1f",
        customer_id, len(summary.subscriptions), (time.perf_counter() - start) * 1000,
    )
    return summary


def _parse_date(value: Any):
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except ValueError:
        return None


def split_managed_subscriptions(
    platform_subscriptions: Iterable[Dict[str, Any]],
    portal_subscriptions: Iterable[Subscription],
    partner_offers: Iterable[PartnerOffer],
    platform_offers: Iterable[PlatformOffer],
    today: datetime,
    settings,
) -> ManagedSubscriptions:
    """Abonnements connus du portail (gérés par le client) vs autres abonnements plateforme (gérés par le partenaire)."""
    portal_by_id = {s.subscription_id: s for s in portal_subscriptions}
    offers_by_id = {o.id: o for o in partner_offers}
    platform_by_id = index_platform_offers(platform_offers)

    result = ManagedSubscriptions()
    for item in platform_subscriptions:
        subscription_id = str(item.get("id") or "")
        status = str(item.get("status") or "")
        creation_date = _parse_date(item.get("creationDate"))
        portal = portal_by_id.get(subscription_id)
        if portal is None:
            result.partner_managed_subscriptions.append(PartnerManagedSubscription(
                id=subscription_id,
                offer_name=item.get("offerName") or "",
                quantity=int(item.get("quantity") or 0),
                status=status,
                creation_date=creation_date,
            ))
            continue
        offer = offers_by_id.get(portal.partner_offer_id)
        result.customer_managed_subscriptions.append(CustomerManagedSubscription(
            subscription_id=subscription_id,
            friendly_name=offer.title if offer else (item.get("offerName") or ""),
            licenses_total=int(item.get("quantity") or portal.seat_count),
            status=status,
            creation_date=creation_date,
            portal_offer_id=portal.partner_offer_id,
            **_management_flags(portal, offer, platform_by_id, today, settings),
        ))

    result.customer_managed_subscriptions.sort(key=lambda s: s.friendly_name)
    result.partner_managed_subscriptions.sort(key=lambda s: s.offer_name)
    return result


async def get_managed_subscriptions(ctx, customer_id: str) -> ManagedSubscriptions:
    platform_subscriptions, portal_subscriptions, partner_offers, platform_offers = await asyncio.gather(
        run_in_threadpool(ctx.platform.list_customer_subscriptions, customer_id),
        run_in_threadpool(ctx.subscriptions.get_by_customer, customer_id),
        run_in_threadpool(ctx.offers.list_partner_offers),
        run_in_threadpool(ctx.offers.list_platform_offers),
    )
    return split_managed_subscriptions(
        platform_subscriptions, portal_subscriptions, partner_offers, platform_offers, ctx.now(), ctx.settings,
    )
