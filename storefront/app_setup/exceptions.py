"""
Gestionnaires d'exceptions.
- StorefrontError: code du domaine -> statut HTTP, corps {"code", "message", "details"}.
- RequestValidationError: ramené à InvalidInput, toutes les violations listées (champ + message).
- HTTPException: JSON standard {"detail"}, avec WWW-Authenticate sur 401.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.errors import ErrorCode, StorefrontError

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.RENEWAL_NOT_ELIGIBLE: 409,
    ErrorCode.SUBSCRIPTION_EXPIRED: 409,
    ErrorCode.DOMAIN_NOT_AVAILABLE: 409,
    ErrorCode.CONCURRENCY_CONFLICT: 409,
    ErrorCode.FATAL: 500,
    ErrorCode.GATEWAY_FAILURE: 502,
    ErrorCode.PLATFORM_FAILURE: 502,
    ErrorCode.PERSISTENCE_FAILURE: 503,
}


def status_for(code: ErrorCode) -> int:
    return STATUS_BY_CODE.get(code, 500)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        status = status_for(exc.code)
        if status >= 500:
            logger.error("api.error path=%s code=%s details=%s", request.url.path, exc.code.value, exc.details)
        return JSONResponse(status_code=status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "code": ErrorCode.INVALID_INPUT.value,
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        error = StorefrontError(ErrorCode.INVALID_INPUT, "Requête invalide", {"errors": errors})
        return JSONResponse(status_code=status_for(error.code), content=error.to_dict())

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        headers = dict(exc.headers or {})
        if exc.status_code == 401:
            headers.setdefault("WWW-Authenticate", "Bearer")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)
