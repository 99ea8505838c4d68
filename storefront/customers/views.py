# module storefront.customers.views
"""Inscription d'un nouveau client (public, rate-limité).
Le client plateforme n'est créé qu'au traitement de la première commande payée
(voir /api/v1/orders/new-customer/process).
"""
from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from storefront.context import ApplicationContext, get_context
from storefront.customers import service as customers_service
from storefront.customers.models import CustomerRegistration, CustomerRegistrationRequest
from storefront.utils.rate_limit import optional_rate_limit

router = APIRouter(prefix="/api/v1/customers", tags=["Customers API"])


@router.post(
    "/register",
    response_model=CustomerRegistration,
    status_code=201,
    dependencies=[Depends(optional_rate_limit(times=5, seconds=60))],
)
async def register(payload: CustomerRegistrationRequest, ctx: ApplicationContext = Depends(get_context)):
    return await run_in_threadpool(customers_service.register_customer, ctx, payload)
