"""
Adaptateur Stripe: centralise les appels au SDK.
- La clé secrète est passée à chaque appel (api_key), lue par l'appelant dans le store de configuration.
- Les erreurs SDK (stripe.StripeError) sont traduites en StorefrontError(GatewayFailure).
"""
import logging
from typing import Any, Dict, List

import stripe

from storefront.errors import ErrorCode, StorefrontError

logger = logging.getLogger(__name__)


def _gateway_error(action: str, exc: Exception, **details) -> StorefrontError:
    logger.exception("payments.stripe_client.%s failed %s", action, details)
    return StorefrontError(ErrorCode.GATEWAY_FAILURE, f"Stripe: échec {action}", {**details, "provider": "stripe"})


def create_session(
    *,
    api_key: str,
    line_items: List[Dict[str, Any]],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Crée une session Checkout en capture manuelle (autorisation seule).
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
    """
    try:
        session = stripe.checkout.Session.create(
            api_key=api_key,
            line_items=line_items,
            mode="payment",
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            payment_intent_data={"capture_method": "manual", "metadata": metadata},
            payment_method_types=["card"],
        )
    except stripe.StripeError as exc:
        raise _gateway_error("create_session", exc, order_id=metadata.get("order_id")) from exc
    return dict(session)


def get_session(session_id: str, *, api_key: str) -> Dict[str, Any]:
    try:
        session = stripe.checkout.Session.retrieve(session_id, api_key=api_key)
    except stripe.StripeError as exc:
        raise _gateway_error("get_session", exc, session_id=session_id) from exc
    return dict(session)


def capture_payment_intent(payment_intent_id: str, *, api_key: str) -> Dict[str, Any]:
    try:
        intent = stripe.PaymentIntent.capture(payment_intent_id, api_key=api_key)
    except stripe.StripeError as exc:
        raise _gateway_error("capture", exc, payment_intent_id=payment_intent_id) from exc
    return dict(intent)


def cancel_payment_intent(payment_intent_id: str, *, api_key: str) -> Dict[str, Any]:
    try:
        intent = stripe.PaymentIntent.cancel(payment_intent_id, api_key=api_key)
    except stripe.StripeError as exc:
        raise _gateway_error("void", exc, payment_intent_id=payment_intent_id) from exc
    return dict(intent)
