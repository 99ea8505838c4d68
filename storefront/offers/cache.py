"""
Cache lecture-majoritaire des offres plateforme (Redis).
- Clé unique, TTL configurable: une liste périmée est tolérée jusqu'à expiration.
- Sans Redis (redis=None) ou en cas d'erreur Redis, le cache est simplement contourné.
"""
import json
import logging
from typing import List, Optional

from storefront.offers.models import PlatformOffer

logger = logging.getLogger(__name__)

PLATFORM_OFFERS_CACHE_KEY = "storefront:platform_offers"


class OfferCache:
    def __init__(self, redis=None, ttl_seconds: int = 3600):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    def get(self) -> Optional[List[PlatformOffer]]:
        if self.redis is None:
            return None
        try:
            raw = self.redis.get(PLATFORM_OFFERS_CACHE_KEY)
        except Exception:
            logger.warning("offers.cache.get failed, bypassing cache", exc_info=True)
            return None
        if not raw:
            return None
        return [PlatformOffer.model_validate(o) for o in json.loads(raw)]

    def set(self, offers: List[PlatformOffer]) -> None:
        if self.redis is None:
            return
        payload = json.dumps([o.model_dump(mode="json") for o in offers])
        try:
            self.redis.set(PLATFORM_OFFERS_CACHE_KEY, payload, ex=self.ttl_seconds)
        except Exception:
            logger.warning("offers.cache.set failed", exc_info=True)

    def invalidate(self) -> None:
        if self.redis is None:
            return
        try:
            self.redis.delete(PLATFORM_OFFERS_CACHE_KEY)
        except Exception:
            logger.warning("offers.cache.invalidate failed", exc_info=True)
