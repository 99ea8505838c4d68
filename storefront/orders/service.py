"""
Cas d'usage 'commandes': orchestre normaliseur, passerelle de paiement et opérations commerce.
- prepare_*: valide et tarifie la commande, choisit la passerelle, retourne l'URI de redirection.
- process_*: relit la commande via la passerelle puis applique l'opération commerce.
Les fonctions synchrones sont appelées depuis les vues via run_in_threadpool.
"""
import logging
from typing import Optional

from starlette.concurrency import run_in_threadpool

from storefront.commerce.operations import CommerceOperations, TransactionResult
from storefront.customers.service import create_platform_customer
from storefront.errors import ErrorCode, StorefrontError
from storefront.orders.models import (
    CommerceOperationType,
    NewCustomerPrepareOrderRequest,
    Order,
    PrepareOrderRequest,
)
from storefront.orders.normalizer import OrderNormalizer
from storefront.payments import create_payment_gateway, create_redirect_gateway
from storefront.subscriptions.models import SubscriptionsSummary
from storefront.subscriptions.service import get_subscription_summary

logger = logging.getLogger(__name__)

OPERATION_DESCRIPTIONS = {
    CommerceOperationType.NEW_PURCHASE: "Achat d'abonnements",
    CommerceOperationType.ADDITIONAL_SEATS_PURCHASE: "Ajout de licences",
    CommerceOperationType.RENEWAL: "Renouvellement d'abonnements",
}
PROCESSING_DESCRIPTION = "Traitement de la commande"


def process_order_url(base_url: str, customer_id: Optional[str] = None) -> str:
    url = f"{base_url.rstrip('/')}/#ProcessOrder?ret=true"
    if customer_id:
        url += f"&customerId={customer_id}"
    return url


def _require(value: Optional[str], name: str) -> str:
    if not value:
        raise StorefrontError(ErrorCode.INVALID_INPUT, f"{name} manquant", {"field": name})
    return value


def prepare_order(ctx, customer_id: str, request: PrepareOrderRequest, base_url: str) -> str:
    normalized = OrderNormalizer(ctx, customer_id).normalize(
        Order(subscriptions=request.subscriptions), request.operation_type,
    )
    gateway = create_payment_gateway(ctx, OPERATION_DESCRIPTIONS[request.operation_type], customer_id)
    return gateway.generate_payment_uri(process_order_url(base_url), normalized)


def process_order(ctx, customer_id: str, payment_id: str, payer_id: str, order_id: str) -> TransactionResult:
    _require(payment_id, "paymentId")
    _require(payer_id, "PayerID")
    _require(order_id, "oid")
    gateway = create_payment_gateway(ctx, PROCESSING_DESCRIPTION, customer_id)
    order = gateway.get_order_details_from_payment(payer_id, payment_id, order_id, customer_id)
    return CommerceOperations(ctx, customer_id, gateway).execute_operation(order)


def prepare_new_customer_order(ctx, request: NewCustomerPrepareOrderRequest, base_url: str) -> str:
    """Nouveau client: achat uniquement, toujours via la passerelle à redirection."""
    registration = ctx.registrations.retrieve(request.customer_id)
    normalized = OrderNormalizer(ctx, registration.customer_id).normalize(
        Order(subscriptions=request.subscriptions), CommerceOperationType.NEW_PURCHASE,
    )
    gateway = create_redirect_gateway(ctx, OPERATION_DESCRIPTIONS[CommerceOperationType.NEW_PURCHASE])
    return gateway.generate_payment_uri(process_order_url(base_url, registration.customer_id), normalized)


async def process_new_customer_order(ctx, customer_id: str, payment_id: str, payer_id: str,
                                     order_id: str) -> SubscriptionsSummary:
    """
    - relit l'inscription et la commande payée (clé: id d'inscription);
    - crée le client plateforme puis applique l'achat sous son id définitif;
    - renvoie la synthèse des abonnements et le compte créé, puis supprime l'inscription.
    """
    _require(customer_id, "customerId")
    _require(payment_id, "paymentId")
    _require(payer_id, "PayerID")
    _require(order_id, "oid")

    registration = await run_in_threadpool(ctx.registrations.retrieve, customer_id)
    gateway = await run_in_threadpool(create_redirect_gateway, ctx, PROCESSING_DESCRIPTION)
    order = await run_in_threadpool(gateway.get_order_details_from_payment, payer_id, payment_id, order_id, customer_id)

    account = await run_in_threadpool(create_platform_customer, ctx, registration)
    order = order.model_copy(update={"customer_id": account.customer_id})
    operations = CommerceOperations(ctx, account.customer_id, gateway)
    try:
        await run_in_threadpool(operations.purchase, order)
    except Exception:
        # Le client plateforme existe déjà: à rapprocher manuellement
        logger.exception(
            "orders.new_customer purchase failed, orphan platform customer registration=%s customer_id=%s",
            customer_id, account.customer_id,
        )
        raise

    summary = await get_subscription_summary(ctx, account.customer_id)
    await run_in_threadpool(ctx.registrations.delete, customer_id)
    summary.customer = account.model_dump()
    logger.info("orders.new_customer processed registration=%s customer_id=%s", customer_id, account.customer_id)
    return summary
