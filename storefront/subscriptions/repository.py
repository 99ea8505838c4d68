"""
Accès aux données 'abonnements' et 'historique d'achats'.
- customer_subscriptions: une ligne par subscription_id, écritures conditionnelles sur 'version'.
- customer_purchases: journal append-only, une ligne par transaction commerce.
Les erreurs Supabase sont journalisées puis remontées en PersistenceFailure.
"""
import logging
from typing import List, Optional

from storefront.errors import ErrorCode, StorefrontError
from storefront.subscriptions.models import Subscription, SubscriptionHistoryEntry

logger = logging.getLogger(__name__)

SUBSCRIPTIONS_TABLE = "customer_subscriptions"
PURCHASES_TABLE = "customer_purchases"


def _persistence_error(action: str, exc: Exception, **details) -> StorefrontError:
    return StorefrontError(ErrorCode.PERSISTENCE_FAILURE, f"Échec {action}", details)


class CustomerSubscriptionsRepository:
    def __init__(self, client):
        self.client = client

    def get_by_customer(self, customer_id: str) -> List[Subscription]:
        try:
            res = (
                self.client.table(SUBSCRIPTIONS_TABLE)
                .select("*")
                .eq("customer_id", customer_id)
                .execute()
            )
        except Exception as exc:
            logger.exception("subscriptions.repository.get_by_customer failed customer_id=%s", customer_id)
            raise _persistence_error("lecture abonnements", exc, customer_id=customer_id) from exc
        return [Subscription.model_validate(r) for r in (res.data or [])]

    def get_by_subscription_id(self, subscription_id: str) -> Optional[Subscription]:
        if not subscription_id:
            return None
        try:
            res = (
                self.client.table(SUBSCRIPTIONS_TABLE)
                .select("*")
                .eq("subscription_id", subscription_id)
                .execute()
            )
        except Exception as exc:
            logger.exception("subscriptions.repository.get_by_subscription_id failed id=%s", subscription_id)
            raise _persistence_error("lecture abonnement", exc, subscription_id=subscription_id) from exc
        rows = res.data or []
        return Subscription.model_validate(rows[0]) if rows else None

    def add(self, subscription: Subscription) -> Subscription:
        """Insère une nouvelle ligne (échoue si l'id existe déjà)."""
        row = subscription.model_dump(mode="json")
        try:
            res = self.client.table(SUBSCRIPTIONS_TABLE).insert(row).execute()
        except Exception as exc:
            logger.exception("subscriptions.repository.add failed id=%s", subscription.subscription_id)
            raise _persistence_error("ajout abonnement", exc, subscription_id=subscription.subscription_id) from exc
        rows = res.data or []
        return Subscription.model_validate(rows[0]) if rows else subscription

    def upsert(self, subscription: Subscription, expected_version: Optional[int] = None) -> Subscription:
        """
        Écrit la ligne de l'abonnement.
        - expected_version=None: insertion ou remplacement inconditionnel.
        - sinon: mise à jour uniquement si la version stockée vaut expected_version; la version
          écrite est expected_version + 1. Aucune ligne touchée => ConcurrencyConflict.
        """
        if expected_version is None:
            row = subscription.model_dump(mode="json")
            try:
                res = self.client.table(SUBSCRIPTIONS_TABLE).upsert(row).execute()
            except Exception as exc:
                logger.exception("subscriptions.repository.upsert failed id=%s", subscription.subscription_id)
                raise _persistence_error("écriture abonnement", exc, subscription_id=subscription.subscription_id) from exc
            rows = res.data or []
            return Subscription.model_validate(rows[0]) if rows else subscription

        updated = subscription.model_copy(update={"version": expected_version + 1})
        row = updated.model_dump(mode="json")
        try:
            res = (
                self.client.table(SUBSCRIPTIONS_TABLE)
                .update(row)
                .eq("subscription_id", subscription.subscription_id)
                .eq("version", expected_version)
                .execute()
            )
        except Exception as exc:
            logger.exception("subscriptions.repository.upsert failed id=%s", subscription.subscription_id)
            raise _persistence_error("mise à jour abonnement", exc, subscription_id=subscription.subscription_id) from exc
        rows = res.data or []
        if not rows:
            raise StorefrontError(
                ErrorCode.CONCURRENCY_CONFLICT,
                "Abonnement modifié par une autre transaction",
                {"subscription_id": subscription.subscription_id, "expected_version": expected_version},
            )
        return Subscription.model_validate(rows[0])

    def delete(self, subscription: Subscription) -> None:
        try:
            (
                self.client.table(SUBSCRIPTIONS_TABLE)
                .delete()
                .eq("subscription_id", subscription.subscription_id)
                .eq("customer_id", subscription.customer_id)
                .execute()
            )
        except Exception as exc:
            logger.exception("subscriptions.repository.delete failed id=%s", subscription.subscription_id)
            raise _persistence_error("suppression abonnement", exc, subscription_id=subscription.subscription_id) from exc


class CustomerPurchasesRepository:
    def __init__(self, client):
        self.client = client

    def append(self, entry: SubscriptionHistoryEntry) -> SubscriptionHistoryEntry:
        try:
            self.client.table(PURCHASES_TABLE).insert(entry.model_dump(mode="json")).execute()
        except Exception as exc:
            logger.exception("subscriptions.repository.append failed id=%s", entry.subscription_id)
            raise _persistence_error("ajout historique", exc, subscription_id=entry.subscription_id) from exc
        return entry

    def list_by_customer(self, customer_id: str) -> List[SubscriptionHistoryEntry]:
        try:
            res = (
                self.client.table(PURCHASES_TABLE)
                .select("*")
                .eq("customer_id", customer_id)
                .order("transaction_date")
                .execute()
            )
        except Exception as exc:
            logger.exception("subscriptions.repository.list_by_customer failed customer_id=%s", customer_id)
            raise _persistence_error("lecture historique", exc, customer_id=customer_id) from exc
        return [SubscriptionHistoryEntry.model_validate(r) for r in (res.data or [])]
