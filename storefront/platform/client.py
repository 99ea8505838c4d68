"""
Adaptateur de la plateforme commerce du partenaire (API REST).
- Centralise les appels httpx (jeton Bearer, URL de base issue de la config).
- Traduit les erreurs HTTP en StorefrontError(PlatformFailure); un 404 sur un domaine signifie "libre".
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from storefront.errors import ErrorCode, StorefrontError
from storefront.offers.models import PlatformOffer

logger = logging.getLogger(__name__)


class PlatformClient:
    def __init__(self, base_url: str, token: str, *, locale: str = "en-US", country: str = "US",
                 http: Optional[httpx.Client] = None):
        self.locale = locale
        self.country = country
        self.http = http or httpx.Client(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
        )

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = self.http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.exception("platform.client %s %s failed", method, path)
            raise StorefrontError(ErrorCode.PLATFORM_FAILURE, "Plateforme injoignable", {"path": path}) from exc
        return resp

    def _json(self, method: str, path: str, **kwargs) -> Any:
        resp = self._request(method, path, **kwargs)
        if not resp.is_success:
            logger.error("platform.client %s %s status=%s body=%s", method, path, resp.status_code, resp.text)
            raise StorefrontError(
                ErrorCode.PLATFORM_FAILURE,
                "Réponse plateforme en erreur",
                {"path": path, "status": resp.status_code},
            )
        return resp.json()

    # --- Catalogue ---

    def list_offers(self) -> List[PlatformOffer]:
        data = self._json("GET", "/offers", params={"country": self.country}, headers={"X-Locale": self.locale})
        offers = []
        for item in (data or {}).get("items", []):
            offers.append(PlatformOffer(
                id=str(item.get("id")),
                name=item.get("name") or "",
                thumbnail_uri=((item.get("thumbnail") or {}).get("uri")),
                end_of_life=not item.get("isAvailableForPurchase", True),
            ))
        return offers

    # --- Clients ---

    def domain_exists(self, domain: str) -> bool:
        resp = self._request("HEAD", f"/domains/{domain}")
        if resp.status_code == 404:
            return False
        if resp.is_success:
            return True
        raise StorefrontError(ErrorCode.PLATFORM_FAILURE, "Vérification du domaine impossible", {"domain": domain, "status": resp.status_code})

    def get_country_validation_rules(self, country: str) -> Dict[str, Any]:
        return self._json("GET", f"/countryvalidationrules/{country}")

    def create_customer(self, customer: Dict[str, Any]) -> Dict[str, Any]:
        return self._json("POST", "/customers", json=customer)

    # --- Abonnements ---

    def list_customer_subscriptions(self, customer_id: str) -> List[Dict[str, Any]]:
        data = self._json("GET", f"/customers/{customer_id}/subscriptions", headers={"X-Locale": self.locale})
        return list((data or {}).get("items", []))

    def place_order(self, customer_id: str, line_items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Passe une commande plateforme; retourne une ligne par article:
        [{"offer_id": ..., "subscription_id": ..., "quantity": ...}], dans l'ordre des articles.
        """
        items = [
            {"lineItemNumber": n, "offerId": li["offer_id"], "quantity": li["quantity"]}
            for n, li in enumerate(line_items)
        ]
        data = self._json("POST", f"/customers/{customer_id}/orders", json={"lineItems": items})
        created = []
        for li in sorted((data or {}).get("lineItems", []), key=lambda x: x.get("lineItemNumber", 0)):
            created.append({
                "offer_id": li.get("offerId"),
                "subscription_id": li.get("subscriptionId"),
                "quantity": li.get("quantity"),
            })
        return created

    def update_subscription_quantity(self, customer_id: str, subscription_id: str, quantity: int) -> Dict[str, Any]:
        return self._json(
            "PATCH",
            f"/customers/{customer_id}/subscriptions/{subscription_id}",
            json={"quantity": quantity},
        )

    def suspend_subscription(self, customer_id: str, subscription_id: str) -> Dict[str, Any]:
        return self._json(
            "PATCH",
            f"/customers/{customer_id}/subscriptions/{subscription_id}",
            json={"status": "suspended"},
        )
