"""
Contexte applicatif explicite.
- Construit une seule fois par le lifespan (build_context) à partir de storefront.config.
- Rangé dans app.state.context puis injecté dans les vues via Depends(get_context).
- Regroupe les stores (Supabase), les clients externes (plateforme, PayUMoney) et les paramètres commerce.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import redis
from fastapi import HTTPException, Request

from storefront import config
from storefront.customers.repository import CustomerRegistrationRepository, PreApprovedCustomersRepository
from storefront.infra.supabase_client import create_anon_supabase, create_service_supabase
from storefront.offers.cache import OfferCache
from storefront.offers.repository import OffersRepository
from storefront.orders.repository import CustomerOrdersRepository
from storefront.payments.configuration import PaymentConfigurationRepository
from storefront.payments.payumoney import PayUMoneyClient
from storefront.platform.client import PlatformClient
from storefront.subscriptions.repository import CustomerPurchasesRepository, CustomerSubscriptionsRepository


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CommerceSettings:
    term_days: int = 365
    renewal_window_days: int = 30
    renewal_grace_days: int = 30
    currency_code: str = "usd"
    currency_decimals: int = 2
    customer_domain_suffix: str = "onmicrosoft.com"


@dataclass
class ApplicationContext:
    settings: CommerceSettings
    offers: OffersRepository
    subscriptions: CustomerSubscriptionsRepository
    purchases: CustomerPurchasesRepository
    orders: CustomerOrdersRepository
    registrations: CustomerRegistrationRepository
    preapproved_customers: PreApprovedCustomersRepository
    payment_configuration: PaymentConfigurationRepository
    platform: PlatformClient
    payumoney: PayUMoneyClient
    auth_client: Optional[Any] = None
    now: Callable[[], datetime] = field(default=utc_now)


def settings_from_config() -> CommerceSettings:
    return CommerceSettings(
        term_days=config.SUBSCRIPTION_TERM_DAYS,
        renewal_window_days=config.RENEWAL_WINDOW_DAYS,
        renewal_grace_days=config.RENEWAL_GRACE_DAYS,
        currency_code=config.CURRENCY_CODE,
        currency_decimals=config.CURRENCY_DECIMALS,
        customer_domain_suffix=config.CUSTOMER_DOMAIN_SUFFIX,
    )


def _offer_cache() -> OfferCache:
    if not config.OFFERS_CACHE_REDIS_URL:
        return OfferCache(ttl_seconds=config.OFFERS_CACHE_TTL_SECONDS)
    r = redis.from_url(config.OFFERS_CACHE_REDIS_URL, encoding="utf-8", decode_responses=True)
    return OfferCache(redis=r, ttl_seconds=config.OFFERS_CACHE_TTL_SECONDS)


def build_context() -> ApplicationContext:
    """
    Assemble le contexte à partir de la configuration.
    Lève RuntimeError si Supabase (clé service) n'est pas configuré.
    """
    client = create_service_supabase()
    platform = PlatformClient(
        config.PLATFORM_API_URL,
        config.PLATFORM_API_TOKEN,
        locale=config.PLATFORM_OFFER_LOCALE,
        country=config.PLATFORM_COUNTRY,
    )
    payment_configuration = PaymentConfigurationRepository(client)
    return ApplicationContext(
        settings=settings_from_config(),
        offers=OffersRepository(client, platform, _offer_cache()),
        subscriptions=CustomerSubscriptionsRepository(client),
        purchases=CustomerPurchasesRepository(client),
        orders=CustomerOrdersRepository(client),
        registrations=CustomerRegistrationRepository(client),
        preapproved_customers=PreApprovedCustomersRepository(client),
        payment_configuration=payment_configuration,
        platform=platform,
        payumoney=PayUMoneyClient(config.PAYUMONEY_BASE_URL, payment_configuration),
        auth_client=create_anon_supabase(),
    )


def get_context(request: Request) -> ApplicationContext:
    ctx = getattr(request.app.state, "context", None)
    if ctx is None:
        raise HTTPException(status_code=503, detail="Service non configuré")
    return ctx
