# module storefront.subscriptions.views
"""Endpoints 'abonnements' du client connecté.
- /api/v1/subscriptions/summary: synthèse (historique, totaux, drapeaux renouvelable/modifiable).
- /api/v1/subscriptions/managed: abonnements gérés par le client vs par le partenaire.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from storefront.context import ApplicationContext, get_context
from storefront.subscriptions import service as subscriptions_service
from storefront.subscriptions.models import ManagedSubscriptions, SubscriptionsSummary
from storefront.utils.security import require_customer

router = APIRouter(prefix="/api/v1/subscriptions", tags=["Subscriptions API"])


@router.get("/summary", response_model=SubscriptionsSummary)
async def subscriptions_summary(
    user: Dict[str, Any] = Depends(require_customer),
    ctx: ApplicationContext = Depends(get_context),
):
    return await subscriptions_service.get_subscription_summary(ctx, user["customer_id"])


@router.get("/managed", response_model=ManagedSubscriptions)
async def managed_subscriptions(
    user: Dict[str, Any] = Depends(require_customer),
    ctx: ApplicationContext = Depends(get_context),
):
    return await subscriptions_service.get_managed_subscriptions(ctx, user["customer_id"])
