"""
Transactions métier à compensation (execute / rollback).
- execute() effectue UNE écriture et capture ce qui a été écrit dans self.result.
- rollback() défait exactement ce qui a été capturé, puis oublie le résultat: un second appel ne fait rien.
- Un échec de compensation est journalisé et absorbé, sauf s'il est fatal (is_fatal), auquel cas il remonte.
- SequentialAggregateTransaction enchaîne des unités et ne compense que celles déjà exécutées, en ordre inverse.
Compensation au mieux: ce n'est pas une transaction atomique, la compensation elle-même peut échouer.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence

from storefront.errors import is_fatal
from storefront.subscriptions.models import Subscription, SubscriptionHistoryEntry

logger = logging.getLogger(__name__)


class BusinessTransaction(ABC):
    def __init__(self):
        self.result: Optional[Any] = None

    @abstractmethod
    def execute(self) -> Any:
        ...

    def undo(self, result: Any) -> None:
        """Compensation de result; par défaut aucune (écriture non réversible)."""

    def describe(self) -> Dict[str, Any]:
        return {}

    def rollback(self) -> None:
        if self.result is None:
            return
        captured, self.result = self.result, None
        try:
            self.undo(captured)
        except Exception as exc:
            if is_fatal(exc):
                raise
            logger.exception("commerce.transactions.%s.rollback failed %s", type(self).__name__, self.describe())


class PlacePlatformOrder(BusinessTransaction):
    """Commande plateforme; la compensation suspend les abonnements créés (pas de suppression côté plateforme)."""

    def __init__(self, platform, customer_id: str, line_items: Sequence[Dict[str, Any]]):
        super().__init__()
        self.platform = platform
        self.customer_id = customer_id
        self.line_items = list(line_items)

    def execute(self) -> List[Dict[str, Any]]:
        self.result = self.platform.place_order(self.customer_id, self.line_items)
        return self.result

    def undo(self, result: List[Dict[str, Any]]) -> None:
        for created in result:
            subscription_id = created.get("subscription_id")
            if subscription_id:
                self.platform.suspend_subscription(self.customer_id, subscription_id)

    def describe(self) -> Dict[str, Any]:
        return {"customer_id": self.customer_id}


class RecordNewCustomerSubscription(BusinessTransaction):
    def __init__(self, repository, subscription: Subscription):
        super().__init__()
        self.repository = repository
        self.subscription = subscription

    def execute(self) -> Subscription:
        self.result = self.repository.add(self.subscription)
        return self.result

    def undo(self, result: Subscription) -> None:
        self.repository.delete(result)

    def describe(self) -> Dict[str, Any]:
        return {"customer_id": self.subscription.customer_id, "subscription_id": self.subscription.subscription_id}


class UpdateCustomerSubscription(BusinessTransaction):
    """
    Écriture conditionnelle sur la version lue (ConcurrencyConflict si un autre écrivain est passé avant).
    La compensation réécrit l'état d'origine, conditionnée à la version écrite par execute().
    """

    def __init__(self, repository, updated: Subscription, original: Subscription):
        super().__init__()
        self.repository = repository
        self.updated = updated
        self.original = original

    def execute(self) -> Subscription:
        self.result = self.repository.upsert(self.updated, expected_version=self.original.version)
        return self.result

    def undo(self, result: Subscription) -> None:
        self.repository.upsert(self.original, expected_version=result.version)

    def describe(self) -> Dict[str, Any]:
        return {"customer_id": self.original.customer_id, "subscription_id": self.original.subscription_id}


class UpdatePlatformSubscriptionQuantity(BusinessTransaction):
    def __init__(self, platform, customer_id: str, subscription_id: str, new_quantity: int, previous_quantity: int):
        super().__init__()
        self.platform = platform
        self.customer_id = customer_id
        self.subscription_id = subscription_id
        self.new_quantity = new_quantity
        self.previous_quantity = previous_quantity

    def execute(self) -> Dict[str, Any]:
        response = self.platform.update_subscription_quantity(self.customer_id, self.subscription_id, self.new_quantity)
        self.result = response or {"quantity": self.new_quantity}
        return self.result

    def undo(self, result: Dict[str, Any]) -> None:
        self.platform.update_subscription_quantity(self.customer_id, self.subscription_id, self.previous_quantity)

    def describe(self) -> Dict[str, Any]:
        return {"customer_id": self.customer_id, "subscription_id": self.subscription_id}


class RecordPurchase(BusinessTransaction):
    """Ajout à l'historique (append-only). Toujours en dernière position: rien à compenser."""

    def __init__(self, repository, entry: SubscriptionHistoryEntry):
        super().__init__()
        self.repository = repository
        self.entry = entry

    def execute(self) -> SubscriptionHistoryEntry:
        self.result = self.repository.append(self.entry)
        return self.result

    def describe(self) -> Dict[str, Any]:
        return {"customer_id": self.entry.customer_id, "subscription_id": self.entry.subscription_id}


class SequentialAggregateTransaction(BusinessTransaction):
    """
    Les unités peuvent être produites paresseusement (générateur): une étape peut alors
    dépendre du résultat de la précédente (ex: ids d'abonnements issus de la commande plateforme).
    """

    def __init__(self, transactions: Iterable[BusinessTransaction]):
        super().__init__()
        self.transactions = transactions
        self.executed: List[BusinessTransaction] = []

    def execute(self) -> List[Any]:
        try:
            for transaction in self.transactions:
                transaction.execute()
                self.executed.append(transaction)
        except Exception:
            self._rollback_executed()
            raise
        self.result = [t.result for t in self.executed]
        return self.result

    def _rollback_executed(self) -> None:
        while self.executed:
            self.executed.pop().rollback()

    def rollback(self) -> None:
        self._rollback_executed()
        self.result = None
