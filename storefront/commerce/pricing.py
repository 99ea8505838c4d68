"""
Calculs purs du moteur commerce (aucun accès aux stores).
- Prorata: prix plein x jours restants / jours du terme, jours restants bornés à [0, terme].
- Arrondi monétaire: demi-pair (banker's rounding) au nombre de décimales de la devise.
- Éligibilité: ajout de sièges (non expiré) et renouvellement (fenêtre + délai de grâce).
"""
from datetime import date, datetime
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Union

from storefront.errors import ErrorCode, StorefrontError

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


def remaining_days(today: DateLike, expiry_date: DateLike) -> int:
    """Jours entre aujourd'hui et l'expiration (négatif si déjà expiré)."""
    return (_as_date(expiry_date) - _as_date(today)).days


def calculate_prorated_seat_charge(today: DateLike, expiry_date: DateLike, term_days: int, full_price: Decimal) -> Decimal:
    if term_days <= 0:
        raise ValueError("term_days doit être strictement positif")
    days = min(max(remaining_days(today, expiry_date), 0), term_days)
    if days == term_days:
        return Decimal(full_price)
    return Decimal(full_price) * Decimal(days) / Decimal(term_days)


def round_currency(amount: Decimal, decimals: int = 2) -> Decimal:
    quantum = Decimal(1).scaleb(-decimals)
    return Decimal(amount).quantize(quantum, rounding=ROUND_HALF_EVEN)


def is_expired(today: DateLike, expiry_date: DateLike) -> bool:
    return remaining_days(today, expiry_date) < 0


def ensure_not_expired(today: DateLike, expiry_date: DateLike, subscription_id: str) -> None:
    if is_expired(today, expiry_date):
        raise StorefrontError(
            ErrorCode.SUBSCRIPTION_EXPIRED,
            "Abonnement expiré",
            {"subscription_id": subscription_id, "expiry_date": _as_date(expiry_date).isoformat()},
        )


def check_renewal_eligibility(today: DateLike, expiry_date: DateLike, window_days: int, grace_days: int,
                              subscription_id: str) -> None:
    """
    Renouvelable si l'expiration est dans moins de window_days jours,
    ou si elle est passée depuis au plus grace_days jours.
    """
    days = remaining_days(today, expiry_date)
    details = {"subscription_id": subscription_id, "expiry_date": _as_date(expiry_date).isoformat()}
    if days > window_days:
        raise StorefrontError(ErrorCode.RENEWAL_NOT_ELIGIBLE, "Renouvellement pas encore possible", {**details, "remaining_days": days})
    if -days > grace_days:
        raise StorefrontError(ErrorCode.SUBSCRIPTION_EXPIRED, "Délai de grâce dépassé", details)


def is_renewable(today: DateLike, expiry_date: DateLike, window_days: int, grace_days: int) -> bool:
    days = remaining_days(today, expiry_date)
    return -grace_days <= days <= window_days
