# module backend.orders.views

"""Endpoints des commandes boutique et du workflow de remboursement.
- /{order_id}/confirm-payment: retour de checkout, session -> commande « paid ».
- /{order_id}/refund-request: demande client (propriétaire de la commande).
- /{order_id}/status, /{order_id}/refund/approve|reject|process: actions admin.
- GET /refund-requests (admin) et GET /refundable (client): listes du workflow.
Sécurité:
- require_user / require_admin (token Supabase en Bearer), CSRF sur toutes les routes mutatives.
- optional_rate_limit: fenêtre globale par adresse client.
"""
from fastapi import APIRouter, Request, Depends
from starlette.concurrency import run_in_threadpool
from typing import Any, Dict, Optional
import logging

from backend.config import RATE_LIMIT_SECONDS, RATE_LIMIT_TIMES
from backend.orders import service as orders_service
from backend.orders.models import serialize_order
from backend.payments.provider import PaymentProvider
from backend.payments.stripe_client import get_payment_provider
from backend.utils.csrf import csrf_protect
from backend.utils.rate_limit import optional_rate_limit
from backend.utils.security import require_admin, require_user
from backend.utils.validators import read_json_body

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/orders",
    tags=["Orders API"],
    dependencies=[
        Depends(optional_rate_limit(times=RATE_LIMIT_TIMES, seconds=RATE_LIMIT_SECONDS)),
        Depends(csrf_protect),
    ],
)


@router.get("/refund-requests")
async def list_refund_requests(status: Optional[str] = None, admin: Dict[str, Any] = Depends(require_admin)):
    """File admin des demandes de remboursement (?status=requested|approved|processed|rejected)."""
    rows = await run_in_threadpool(orders_service.list_refund_requests, status)
    return {"orders": [serialize_order(row) for row in rows]}


@router.get("/refundable")
async def list_refundable_orders(user: Dict[str, Any] = Depends(require_user)):
    rows = await run_in_threadpool(orders_service.list_refundable_orders, user)
    return {"orders": [serialize_order(row) for row in rows]}


@router.post("/{order_id}/confirm-payment")
async def confirm_payment(
    order_id: str,
    request: Request,
    user: Dict[str, Any] = Depends(require_user),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    """Confirme le paiement d'une commande à partir de { sessionId } (query ou body)."""
    body = await read_json_body(request)
    session_id = body.get("sessionId") or request.query_params.get("session_id")
    row = await run_in_threadpool(orders_service.confirm_payment, provider, order_id, session_id, user)
    return {"order": serialize_order(row)}


@router.post("/{order_id}/status")
async def update_status(order_id: str, request: Request, admin: Dict[str, Any] = Depends(require_admin)):
    """Transition de statut (shipped, delivered, cancelled...): 409 si la transition est interdite."""
    body = await read_json_body(request)
    row = await run_in_threadpool(orders_service.update_status, order_id, body.get("status"))
    logger.info("orders.views.update_status order_id=%s status=%s by=%s", order_id, row.get("status"), admin.get("email"))
    return {"order": serialize_order(row)}


@router.post("/{order_id}/refund-request")
async def request_refund(order_id: str, request: Request, user: Dict[str, Any] = Depends(require_user)):
    """Demande client: { amount?, reason } -> refund.status = requested."""
    body = await read_json_body(request)
    row = await run_in_threadpool(
        orders_service.request_refund,
        order_id,
        user,
        body.get("amount"),
        body.get("reason"),
    )
    return {"order": serialize_order(row)}


@router.post("/{order_id}/refund/approve")
async def approve_refund(order_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    row = await run_in_threadpool(orders_service.approve_refund, order_id, admin)
    return {"order": serialize_order(row)}


@router.post("/{order_id}/refund/reject")
async def reject_refund(order_id: str, request: Request, admin: Dict[str, Any] = Depends(require_admin)):
    body = await read_json_body(request)
    row = await run_in_threadpool(orders_service.reject_refund, order_id, admin, body.get("reason"))
    return {"order": serialize_order(row)}


@router.post("/{order_id}/refund/process")
async def process_refund(
    order_id: str,
    admin: Dict[str, Any] = Depends(require_admin),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    """Étape finale: remboursement fournisseur puis commande « refunded »."""
    result = await run_in_threadpool(orders_service.execute_refund, provider, order_id, admin)
    return {"order": serialize_order(result["order"]), "refund": result["refund"]}
