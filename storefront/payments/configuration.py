"""
Configuration des paiements (store de configuration).
- Un seul document JSON dans la table 'portal_configuration' (clé 'payment').
- Les passerelles y lisent leurs identifiants à chaque appel (aucune clé en dur).
"""
import logging

from pydantic import BaseModel

from storefront.errors import ErrorCode, StorefrontError

logger = logging.getLogger(__name__)

CONFIGURATION_TABLE = "portal_configuration"
PAYMENT_CONFIGURATION_KEY = "payment"


class PaymentConfiguration(BaseModel):
    provider: str = "stripe"
    client_id: str = ""
    client_secret: str = ""
    account_type: str = "sandbox"
    web_experience_profile_id: str = ""


class PaymentConfigurationRepository:
    def __init__(self, client):
        self.client = client

    def retrieve(self) -> PaymentConfiguration:
        """Lit la configuration; NotFound si le portail n'a jamais été configuré."""
        try:
            res = (
                self.client.table(CONFIGURATION_TABLE)
                .select("*")
                .eq("key", PAYMENT_CONFIGURATION_KEY)
                .execute()
            )
        except Exception as exc:
            logger.exception("payments.configuration.retrieve failed")
            raise StorefrontError(ErrorCode.PERSISTENCE_FAILURE, "Lecture de la configuration des paiements impossible") from exc
        rows = res.data or []
        if not rows:
            raise StorefrontError(ErrorCode.NOT_FOUND, "Paiements non configurés", {"configuration": PAYMENT_CONFIGURATION_KEY})
        return PaymentConfiguration.model_validate(rows[0].get("value") or {})

    def is_configured(self) -> bool:
        try:
            self.retrieve()
            return True
        except StorefrontError as exc:
            if exc.code != ErrorCode.NOT_FOUND:
                raise
            return False

    def save(self, configuration: PaymentConfiguration) -> PaymentConfiguration:
        try:
            (
                self.client.table(CONFIGURATION_TABLE)
                .upsert({"key": PAYMENT_CONFIGURATION_KEY, "value": configuration.model_dump()})
                .execute()
            )
        except Exception as exc:
            logger.exception("payments.configuration.save failed")
            raise StorefrontError(ErrorCode.PERSISTENCE_FAILURE, "Écriture de la configuration des paiements impossible") from exc
        return configuration

