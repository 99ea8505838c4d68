from typing import List
import logging

from storefront.customers.models import CustomerRegistration
from storefront.errors import ErrorCode, StorefrontError

logger = logging.getLogger(__name__)

REGISTRATIONS_TABLE = "customer_registrations"
PREAPPROVED_TABLE = "preapproved_customers"
ALL_CUSTOMERS = "*"


class CustomerRegistrationRepository:
    """Inscriptions en attente (clé customer_id, valeur blob JSON) jusqu'à la création du client plateforme."""

    def __init__(self, client):
        self.client = client

    def add(self, registration: CustomerRegistration) -> CustomerRegistration:
        row = {"customer_id": registration.customer_id, "registration": registration.model_dump(mode="json")}
        try:
            self.client.table(REGISTRATIONS_TABLE).upsert(row).execute()
        except Exception as exc:
            logger.exception("customers.repository.add failed customer_id=%s", registration.customer_id)
            raise StorefrontError(ErrorCode.PERSISTENCE_FAILURE, "Enregistrement de l'inscription impossible", {"customer_id": registration.customer_id}) from exc
        return registration

    def retrieve(self, customer_id: str) -> CustomerRegistration:
        try:
            res = self.client.table(REGISTRATIONS_TABLE).select("*").eq("customer_id", customer_id).execute()
        except Exception as exc:
            logger.exception("customers.repository.retrieve failed customer_id=%s", customer_id)
            raise StorefrontError(ErrorCode.PERSISTENCE_FAILURE, "Lecture de l'inscription impossible", {"customer_id": customer_id}) from exc
        rows = res.data or []
        if not rows:
            raise StorefrontError(ErrorCode.NOT_FOUND, "Inscription introuvable", {"customer_id": customer_id})
        return CustomerRegistration.model_validate(rows[0].get("registration") or {})

    def delete(self, customer_id: str) -> None:
        try:
            self.client.table(REGISTRATIONS_TABLE).delete().eq("customer_id", customer_id).execute()
        except Exception as exc:
            logger.exception("customers.repository.delete failed customer_id=%s", customer_id)
            raise StorefrontError(ErrorCode.PERSISTENCE_FAILURE, "Suppression de l'inscription impossible", {"customer_id": customer_id}) from exc


class PreApprovedCustomersRepository:
    """Liste d'autorisation du partenaire; l'entrée '*' pré-approuve tous les clients."""

    def __init__(self, client):
        self.client = client

    def list_customer_ids(self) -> List[str]:
        try:
            res = self.client.table(PREAPPROVED_TABLE).select("customer_id").execute()
        except Exception as exc:
            logger.exception("customers.repository.list_customer_ids failed")
            raise StorefrontError(ErrorCode.PERSISTENCE_FAILURE, "Lecture des clients pré-approuvés impossible") from exc
        return [str(r.get("customer_id")) for r in (res.data or []) if r.get("customer_id")]

    def is_customer_preapproved(self, customer_id: str) -> bool:
        if not customer_id:
            return False
        ids = self.list_customer_ids()
        return ALL_CUSTOMERS in ids or customer_id in ids
