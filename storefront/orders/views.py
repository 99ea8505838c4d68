# module storefront.orders.views

"""Endpoints de l'user story Commande.
- /prepare: normalise la commande du client connecté et renvoie l'URL de paiement (rate-limité).
- /process: au retour de la passerelle, applique l'opération commerce (achat, licences, renouvellement).
- /new-customer/prepare et /new-customer/process: même parcours pour un client en cours d'inscription.
Chaque appel journalise un évènement avec sa durée (elapsed_ms).
"""
from typing import Any, Dict
import logging
import time

from fastapi import APIRouter, Depends, Query, Request
from starlette.concurrency import run_in_threadpool

from storefront.commerce.operations import TransactionResult
from storefront.context import ApplicationContext, get_context
from storefront.orders import service as orders_service
from storefront.orders.models import NewCustomerPrepareOrderRequest, PrepareOrderRequest
from storefront.subscriptions.models import SubscriptionsSummary
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_customer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


@router.post("/prepare", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def prepare_order(
    payload: PrepareOrderRequest,
    request: Request,
    user: Dict[str, Any] = Depends(require_customer),
    ctx: ApplicationContext = Depends(get_context),
):
    start = time.perf_counter()
    customer_id = user["customer_id"]
    redirect_url = await run_in_threadpool(
        orders_service.prepare_order, ctx, customer_id, payload, str(request.base_url),
    )
    logger.info(
        "api.order.prepare customer_id=%s operation=%s elapsed_ms=%.1f",
        customer_id, payload.operation_type.value, _elapsed_ms(start),
    )
    return {"redirect_url": redirect_url}


@router.get("/process", response_model=TransactionResult)
async def process_order(
    payment_id: str = Query("", alias="paymentId"),
    payer_id: str = Query("", alias="PayerID"),
    order_id: str = Query("", alias="oid"),
    user: Dict[str, Any] = Depends(require_customer),
    ctx: ApplicationContext = Depends(get_context),
):
    start = time.perf_counter()
    customer_id = user["customer_id"]
    result = await run_in_threadpool(
        orders_service.process_order, ctx, customer_id, payment_id, payer_id, order_id,
    )
    logger.info(
        "api.order.process customer_id=%s operation=%s payment_id=%s elapsed_ms=%.1f",
        customer_id, result.operation_type.value, payment_id, _elapsed_ms(start),
    )
    return result


@router.post("/new-customer/prepare", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def prepare_new_customer_order(
    payload: NewCustomerPrepareOrderRequest,
    request: Request,
    ctx: ApplicationContext = Depends(get_context),
):
    start = time.perf_counter()
    redirect_url = await run_in_threadpool(
        orders_service.prepare_new_customer_order, ctx, payload, str(request.base_url),
    )
    logger.info("api.order.new_customer_prepare elapsed_ms=%.1f", _elapsed_ms(start))
    return {"redirect_url": redirect_url}


@router.get("/new-customer/process", response_model=SubscriptionsSummary)
async def process_new_customer_order(
    customer_id: str = Query("", alias="customerId"),
    payment_id: str = Query("", alias="paymentId"),
    payer_id: str = Query("", alias="PayerID"),
    order_id: str = Query("", alias="oid"),
    ctx: ApplicationContext = Depends(get_context),
):
    start = time.perf_counter()
    summary = await orders_service.process_new_customer_order(ctx, customer_id, payment_id, payer_id, order_id)
    logger.info(
        "api.order.new_customer_process registration=%s payment_id=%s elapsed_ms=%.1f",
        customer_id, payment_id, _elapsed_ms(start),
    )
    return summary
