# module storefront.offers.views
import logging
import time

from fastapi import APIRouter, Depends

from storefront.context import ApplicationContext, get_context
from storefront.offers import service as offers_service
from storefront.offers.models import OfferCatalog

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/offers", tags=["Offers API"])


@router.get("", response_model=OfferCatalog)
async def offer_catalog(ctx: ApplicationContext = Depends(get_context)):
    """Catalogue public de la vitrine (offres actives, alignées sur la plateforme)."""
    start = time.perf_counter()
    catalog = await offers_service.get_offer_catalog(ctx)
    logger.info(
        "api.offers.catalog configured=%s offers=%s elapsed_ms=%.1f",
        catalog.is_portal_configured, len(catalog.offers), (time.perf_counter() - start) * 1000,
    )
    return catalog
