from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request

from storefront.context import ApplicationContext, get_context

COOKIE_NAME = "sb_access"
CUSTOMER_ID_METADATA_KEY = "customer_id"


def token_from_request(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME)


def user_from_access_token(auth_client, access_token: str) -> Dict[str, Any]:
    """Récupère et normalise l'utilisateur depuis supabase.auth.get_user(access_token)."""
    res = auth_client.auth.get_user(access_token)
    user = getattr(res, "user", None) or {}
    if not isinstance(user, dict):
        user = {
            "id": getattr(user, "id", None),
            "email": getattr(user, "email", None),
            "user_metadata": getattr(user, "user_metadata", None),
        }
    return user or {}


def get_current_user(request: Request, ctx: ApplicationContext = Depends(get_context)) -> Dict[str, Any]:
    token = token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")
    if ctx.auth_client is None:
        raise HTTPException(status_code=401, detail="Authentification indisponible")
    try:
        raw = user_from_access_token(ctx.auth_client, token)
    except Exception:
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    if not raw.get("id"):
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    metadata = raw.get("user_metadata") or {}
    return {
        "id": raw.get("id"),
        "email": raw.get("email"),
        "metadata": metadata,
        "customer_id": metadata.get(CUSTOMER_ID_METADATA_KEY),
        "token": token,
    }


def require_customer(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """Utilisateur authentifié ET rattaché à un client de la plateforme."""
    if not user.get("customer_id"):
        raise HTTPException(status_code=403, detail="Accès réservé aux clients")
    return user
