"""
Choix de la passerelle pour un client.
- select_gateway_kind: prédicat pur (client pré-approuvé ? fournisseur configuré ?).
- create_payment_gateway: lit la liste d'autorisation et la configuration, puis instancie.
"""
import logging

from storefront import config
from storefront.errors import ErrorCode, StorefrontError
from storefront.payments.gateway import PaymentGateway
from storefront.payments.payumoney import PayUMoneyGateway
from storefront.payments.preapproval import PreApprovalGateway
from storefront.payments.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

GATEWAY_PREAPPROVAL = "preapproval"
GATEWAY_STRIPE = "stripe"
GATEWAY_PAYUMONEY = "payumoney"

REDIRECT_PROVIDERS = (GATEWAY_STRIPE, GATEWAY_PAYUMONEY)


def select_gateway_kind(is_preapproved: bool, provider: str = GATEWAY_STRIPE) -> str:
    if is_preapproved:
        return GATEWAY_PREAPPROVAL
    kind = (provider or GATEWAY_STRIPE).strip().lower()
    if kind not in REDIRECT_PROVIDERS:
        raise StorefrontError(ErrorCode.GATEWAY_FAILURE, "Fournisseur de paiement inconnu", {"provider": provider})
    return kind


def build_gateway(ctx, kind: str, description: str) -> PaymentGateway:
    if kind == GATEWAY_PREAPPROVAL:
        return PreApprovalGateway(ctx.orders, description)
    if kind == GATEWAY_PAYUMONEY:
        return PayUMoneyGateway(
            ctx.orders,
            ctx.payumoney,
            ctx.payment_configuration,
            description,
            checkout_url=config.PAYUMONEY_CHECKOUT_URL,
            decimals=ctx.settings.currency_decimals,
        )
    return StripeGateway(
        ctx.orders,
        ctx.payment_configuration,
        description,
        currency=ctx.settings.currency_code,
        decimals=ctx.settings.currency_decimals,
        fallback_secret_key=config.STRIPE_SECRET_KEY,
    )


def create_payment_gateway(ctx, description: str, customer_id: str) -> PaymentGateway:
    if not description or not customer_id:
        raise StorefrontError(ErrorCode.INVALID_INPUT, "Description et client requis", {"field": "customer_id"})
    preapproved = ctx.preapproved_customers.is_customer_preapproved(customer_id)
    provider = "" if preapproved else ctx.payment_configuration.retrieve().provider
    kind = select_gateway_kind(preapproved, provider)
    logger.info("payments.factory gateway=%s customer_id=%s", kind, customer_id)
    return build_gateway(ctx, kind, description)


def create_redirect_gateway(ctx, description: str) -> PaymentGateway:
    """Passerelle des nouveaux clients: jamais de pré-approbation (le client n'existe pas encore)."""
    kind = select_gateway_kind(False, ctx.payment_configuration.retrieve().provider)
    return build_gateway(ctx, kind, description)
