from fastapi import APIRouter, Request
from backend import config
from backend.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {"ok": True}

@router.get("/payments")
def health_payments(request: Request):
    """État du paiement sans exposer de secret: clé présente (bool), devise, rate limiting."""
    return {
        "stripe_configured": bool(config.STRIPE_SECRET_KEY),
        "currency": config.STRIPE_CURRENCY,
        "rate_limit": rate_limit_health_info(request),
    }
