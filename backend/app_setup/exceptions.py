"""
Gestionnaires d'exceptions de l'API.
- StorefrontError: corps { error, code, details? } au statut porté par l'exception
- HTTPException: corps FastAPI standard { detail } (401/403 d'auth, 429 du rate limit)
- Exception inattendue: 500 générique, trace uniquement dans les logs
Les détails de diagnostic ne sont jamais renvoyés en production.
"""
import logging
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from backend import config
from backend.errors import ConfigError, StorefrontError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_payload(exc: StorefrontError) -> Dict[str, Any]:
    """Corps JSON d'une erreur métier (partagé avec l'adaptateur serverless)."""
    payload: Dict[str, Any] = {"error": exc.message, "code": exc.code}
    if exc.details and not config.IS_PRODUCTION:
        payload["details"] = exc.details
    return payload


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StorefrontError)
    async def storefront_error(request: Request, exc: StorefrontError):
        if isinstance(exc, ConfigError):
            logger.error("config error on %s %s: %s", request.method, request.url.path, exc.message)
        elif exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_payload(exc))

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})
