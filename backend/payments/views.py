import logging
from typing import Any, Dict

from fastapi import APIRouter, Request, Depends
from starlette.concurrency import run_in_threadpool

from backend.config import RATE_LIMIT_SECONDS, RATE_LIMIT_TIMES
from backend.utils.csrf import csrf_protect
from backend.utils.rate_limit import optional_rate_limit
from backend.utils.validators import read_json_body, as_bool
from backend.payments import service as payments_service
from backend.payments.provider import PaymentProvider
from backend.payments.stripe_client import get_payment_provider

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api",
    tags=["Payments API"],
    dependencies=[Depends(optional_rate_limit(times=RATE_LIMIT_TIMES, seconds=RATE_LIMIT_SECONDS))],
)

# module backend.payments.views
@router.post("/create-checkout-session", dependencies=[Depends(csrf_protect)])
async def create_checkout_session(request: Request, provider: PaymentProvider = Depends(get_payment_provider)):
    """
    Crée une session Checkout Stripe pour une commande boutique ou un ticket.
    - Entrée JSON: { amount, ticketId|orderId, orderTitle, customerEmail?, isStoreOrder? }
    - Sécurité: CSRF + rate limit global
    - Réponse: {"url": "<checkout url>", "sessionId": "cs_..."}
    - Erreurs: 400 MISSING_FIELDS/INVALID_AMOUNT, 500 CHECKOUT_CREATE_FAILED
    """
    body = await read_json_body(request)
    return await run_in_threadpool(
        payments_service.create_checkout_session,
        provider,
        amount=body.get("amount"),
        order_id=body.get("ticketId") or body.get("orderId"),
        title=body.get("orderTitle") or body.get("description"),
        customer_email=body.get("customerEmail"),
        is_store_order=as_bool(body.get("isStoreOrder")),
    )

@router.get("/get-payment-intent/{session_id}")
def get_payment_intent(session_id: str, provider: PaymentProvider = Depends(get_payment_provider)) -> Dict[str, Any]:
    """
    Lecture seule: résout le PaymentIntent d'une session Checkout (retour de redirection).
    - 404 PAYMENT_INTENT_NOT_FOUND si la session n'a pas (encore) de paiement
    """
    return payments_service.resolve_by_session(provider, session_id)

@router.post("/find-payment-intent", dependencies=[Depends(csrf_protect)])
async def find_payment_intent(request: Request, provider: PaymentProvider = Depends(get_payment_provider)):
    """
    Repli heuristique: { amount, startDate, endDate, customerEmail? } -> premier PaymentIntent concordant.
    - 404 si aucun paiement ne correspond (montant à 0.01 près + statut/email)
    """
    body = await read_json_body(request)
    return await run_in_threadpool(
        payments_service.resolve_by_heuristic,
        provider,
        amount=body.get("amount"),
        start_date=body.get("startDate"),
        end_date=body.get("endDate"),
        customer_email=body.get("customerEmail"),
    )

@router.post("/process-refund", dependencies=[Depends(csrf_protect)])
async def process_refund(request: Request, provider: PaymentProvider = Depends(get_payment_provider)):
    """
    Remboursement: { paymentIntentId, amount, reason? } -> { success, refundId, status, amount }
    - Le motif libre est conservé dans metadata.refund_reason côté Stripe
    """
    body = await read_json_body(request)
    logger.info("payments.views.process_refund intent=%s", body.get("paymentIntentId"))
    return await run_in_threadpool(
        payments_service.process_refund,
        provider,
        payment_intent_id=body.get("paymentIntentId"),
        amount=body.get("amount"),
        reason=body.get("reason"),
    )
