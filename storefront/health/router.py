from fastapi import APIRouter, Request

from storefront.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_root(request: Request):
    return {"ok": True, "context": getattr(request.app.state, "context", None) is not None}


@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return rate_limit_health_info(request)
