# module storefront.offers.models
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class PartnerOffer(BaseModel):
    """Offre définie par le partenaire, adossée à une offre de la plateforme (platform_offer_id)."""
    id: str
    title: str
    subtitle: str = ""
    price: Decimal
    is_inactive: bool = False
    platform_offer_id: str
    features: List[str] = Field(default_factory=list)
    thumbnail: Optional[str] = None


class PlatformOffer(BaseModel):
    id: str
    name: str = ""
    thumbnail_uri: Optional[str] = None
    end_of_life: bool = False


class OfferCatalog(BaseModel):
    is_portal_configured: bool = False
    offers: List[PartnerOffer] = Field(default_factory=list)
