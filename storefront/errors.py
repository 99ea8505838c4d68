"""
Taxonomie d'erreurs du domaine commerce.
- StorefrontError porte un ErrorCode et un dictionnaire de détails (champ fautif, domaine, ids).
- La couche HTTP (app_setup.exceptions) traduit le code en statut; le cœur ne dépend d'aucune présentation.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    PERSISTENCE_FAILURE = "PersistenceFailure"
    GATEWAY_FAILURE = "GatewayFailure"
    PLATFORM_FAILURE = "PlatformFailure"
    FATAL = "Fatal"
    RENEWAL_NOT_ELIGIBLE = "RenewalNotEligible"
    SUBSCRIPTION_EXPIRED = "SubscriptionExpired"
    DOMAIN_NOT_AVAILABLE = "DomainNotAvailable"
    CONCURRENCY_CONFLICT = "ConcurrencyConflict"
    UNAUTHORIZED = "Unauthorized"


class StorefrontError(Exception):
    def __init__(self, code: ErrorCode, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message or code.value)
        self.code = code
        self.details: Dict[str, Any] = dict(details or {})

    def add_detail(self, key: str, value: Any) -> "StorefrontError":
        self.details[key] = value
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": str(self), "details": self.details}


_FATAL_TYPES = (MemoryError, SystemExit, KeyboardInterrupt, GeneratorExit)


def is_fatal(exc: BaseException) -> bool:
    """Vrai si l'exception ne doit jamais être absorbée (mémoire, arrêt du process, erreur Fatal)."""
    if isinstance(exc, _FATAL_TYPES):
        return True
    return isinstance(exc, StorefrontError) and exc.code == ErrorCode.FATAL
