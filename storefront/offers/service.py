"""Cas d'usage 'offres': projection du catalogue affichable.
Une offre partenaire n'est affichable que si elle est active ET que son offre plateforme existe encore
et n'est pas en fin de vie.
"""
import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from starlette.concurrency import run_in_threadpool

from storefront.offers.models import OfferCatalog, PartnerOffer, PlatformOffer

logger = logging.getLogger(__name__)


def index_platform_offers(platform_offers: Iterable[PlatformOffer]) -> Dict[str, PlatformOffer]:
    return {o.id: o for o in platform_offers}


def aligned_platform_offer(offer: PartnerOffer, platform_by_id: Dict[str, PlatformOffer]) -> Optional[PlatformOffer]:
    """Offre plateforme référencée par l'offre partenaire, None si retirée ou en fin de vie."""
    platform_offer = platform_by_id.get(offer.platform_offer_id)
    if platform_offer is None or platform_offer.end_of_life:
        return None
    return platform_offer


def is_offer_available(offer: PartnerOffer, platform_by_id: Dict[str, PlatformOffer]) -> bool:
    return not offer.is_inactive and aligned_platform_offer(offer, platform_by_id) is not None


def displayable_offers(partner_offers: Iterable[PartnerOffer], platform_offers: Iterable[PlatformOffer]) -> List[PartnerOffer]:
    """
    Fusionne offres partenaire et offres plateforme.
    - Écarte les offres inactives et celles dont l'offre plateforme a disparu (EOL).
    - Copie la vignette de l'offre plateforme sur l'offre partenaire (copie, pas de mutation).
    """
    platform_by_id = index_platform_offers(platform_offers)
    result: List[PartnerOffer] = []
    for offer in partner_offers:
        if offer.is_inactive:
            continue
        platform_offer = aligned_platform_offer(offer, platform_by_id)
        if platform_offer is None:
            continue
        result.append(offer.model_copy(update={"thumbnail": platform_offer.thumbnail_uri or offer.thumbnail}))
    return result


async def get_offer_catalog(ctx) -> OfferCatalog:
    """
    Construit le catalogue pour la vitrine.
    - Vérifie en parallèle que les offres et les paiements sont configurés.
    - Si le portail est configuré, charge en parallèle offres partenaire et plateforme puis les fusionne.
    """
    offers_configured, payment_configured = await asyncio.gather(
        run_in_threadpool(ctx.offers.is_configured),
        run_in_threadpool(ctx.payment_configuration.is_configured),
    )
    catalog = OfferCatalog(is_portal_configured=bool(offers_configured and payment_configured))
    if not catalog.is_portal_configured:
        logger.info("offers.catalog portal not configured offers=%s payment=%s", offers_configured, payment_configured)
        return catalog

    partner_offers, platform_offers = await asyncio.gather(
        run_in_threadpool(ctx.offers.list_partner_offers),
        run_in_threadpool(ctx.offers.list_platform_offers),
    )
    catalog.offers = displayable_offers(partner_offers, platform_offers)
    return catalog
