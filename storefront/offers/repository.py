from typing import Dict, List, Optional
import logging

from storefront.errors import ErrorCode, StorefrontError
from storefront.offers.cache import OfferCache
from storefront.offers.models import PartnerOffer, PlatformOffer

logger = logging.getLogger(__name__)

PARTNER_OFFERS_TABLE = "partner_offers"


def _row_to_offer(row: dict) -> PartnerOffer:
    return PartnerOffer(
        id=str(row.get("id")),
        title=row.get("title") or "",
        subtitle=row.get("subtitle") or "",
        price=row.get("price") or 0,
        is_inactive=bool(row.get("is_inactive")),
        platform_offer_id=str(row.get("platform_offer_id") or ""),
        features=row.get("features") or [],
        thumbnail=row.get("thumbnail"),
    )


class OffersRepository:
    """
    Offres partenaire (table 'partner_offers') et offres plateforme (API + cache Redis).
    Les lectures renvoient toujours la collection complète.
    """

    def __init__(self, client, platform, cache: Optional[OfferCache] = None):
        self.client = client
        self.platform = platform
        self.cache = cache or OfferCache()

    def list_partner_offers(self) -> List[PartnerOffer]:
        try:
            res = self.client.table(PARTNER_OFFERS_TABLE).select("*").execute()
        except Exception as exc:
            logger.exception("offers.repository.list_partner_offers failed")
            raise StorefrontError(ErrorCode.PERSISTENCE_FAILURE, "Lecture des offres impossible") from exc
        return [_row_to_offer(r) for r in (res.data or [])]

    def list_platform_offers(self) -> List[PlatformOffer]:
        cached = self.cache.get()
        if cached is not None:
            return cached
        offers = self.platform.list_offers()
        self.cache.set(offers)
        return offers

    def get_partner_offers_map(self) -> Dict[str, PartnerOffer]:
        return {o.id: o for o in self.list_partner_offers()}

    def is_configured(self) -> bool:
        try:
            res = self.client.table(PARTNER_OFFERS_TABLE).select("id").limit(1).execute()
        except Exception as exc:
            logger.exception("offers.repository.is_configured failed")
            raise StorefrontError(ErrorCode.PERSISTENCE_FAILURE, "Lecture des offres impossible") from exc
        return bool(res.data)
