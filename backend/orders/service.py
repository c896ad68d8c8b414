"""Couche service des commandes boutique et des remboursements.
Rôles:
- Confirmer le paiement d'une commande au retour du checkout (session -> PaymentIntent).
- Faire progresser le statut de la commande (invariant can_transition).
- Cycle de vie d'une demande de remboursement: requested -> approved -> processed,
  ou requested -> rejected (états terminaux: processed, rejected).
Un échec fournisseur ne modifie jamais la commande.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
import logging

from backend.errors import ConflictError, NotFoundError, PermissionDeniedError, ProviderError, ValidationError
from backend.orders import repository
from backend.orders.models import (
    CLOSED_REFUND,
    OPEN_REFUND,
    REFUNDABLE,
    OrderStatus,
    RefundStatus,
    can_transition,
    parse_refund_status,
    parse_status,
)
from backend.payments import service as payments_service
from backend.payments.amounts import INVALID_AMOUNT, from_minor_units, parse_minor_units
from backend.payments.provider import PaymentProvider

logger = logging.getLogger(__name__)

ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
ORDER_UPDATE_FAILED = "ORDER_UPDATE_FAILED"
INVALID_TRANSITION = "INVALID_TRANSITION"
REFUND_NOT_ALLOWED = "REFUND_NOT_ALLOWED"
PAYMENT_NOT_COMPLETED = "PAYMENT_NOT_COMPLETED"
ORDER_MISMATCH = "ORDER_MISMATCH"

HEURISTIC_WINDOW = timedelta(days=1)


def _require_order(order_id: Optional[str]) -> Dict[str, Any]:
    if not order_id:
        raise ValidationError("Missing order id", code=payments_service.MISSING_FIELDS)
    order = repository.get_order(order_id)
    if not order:
        raise NotFoundError("Order not found", code=ORDER_NOT_FOUND)
    return order


def _save(order_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    row = repository.update_order(order_id, fields)
    if row is None:
        raise ProviderError("Failed to update order", code=ORDER_UPDATE_FAILED, details={"orderId": order_id})
    return row


def _status_of(order: Dict[str, Any]) -> OrderStatus:
    return parse_status(order.get("status")) or OrderStatus.PENDING


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_owner(order: Dict[str, Any], user: Dict[str, Any]) -> None:
    if user.get("role") != "admin" and str(order.get("user_id")) != str(user.get("id")):
        raise PermissionDeniedError("Order belongs to another user")


def _required_reason(reason: Any) -> str:
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("Missing required fields: reason", code=payments_service.MISSING_FIELDS)
    return reason.strip()


# module backend.orders.service
def confirm_payment(provider: PaymentProvider, order_id: str, session_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    """Au retour du checkout: résout la session et marque la commande « paid ».
    - Propriétaire de la commande (ou admin) uniquement.
    - La session doit référencer cette commande (metadata.orderId) si la metadata est présente.
    - Le PaymentIntent doit être « succeeded ».
    - Idempotent: une commande déjà payée (ou plus loin) n'est pas rétrogradée.
    - Met en cache payment_intent_id pour les remboursements ultérieurs.
    """
    order = _require_order(order_id)
    _require_owner(order, user)
    resolved = payments_service.resolve_by_session(provider, session_id)

    meta = (resolved.get("session") or {}).get("metadata") or {}
    meta_order = meta.get("orderId") or meta.get("ticketId")
    if meta_order and str(meta_order) != str(order_id):
        raise ConflictError("Checkout session belongs to another order", code=ORDER_MISMATCH)
    if resolved.get("status") != "succeeded":
        raise ConflictError(
            f"Payment not completed (status={resolved.get('status')})",
            code=PAYMENT_NOT_COMPLETED,
        )

    fields: Dict[str, Any] = {
        "payment_intent_id": resolved.get("paymentIntentId"),
        "checkout_session_id": session_id,
        "payment_status": "completed",
    }
    current = _status_of(order)
    if current == OrderStatus.PENDING:
        fields["status"] = OrderStatus.PAID.value
    elif current == OrderStatus.CANCELLED:
        raise ConflictError("Order was cancelled", code=INVALID_TRANSITION)

    row = _save(order_id, fields)
    logger.info("orders.confirm_payment order_id=%s intent=%s status=%s", order_id, fields["payment_intent_id"], row.get("status"))
    return row


def update_status(order_id: str, target: Any) -> Dict[str, Any]:
    """Transition administrative (expédition, livraison, annulation).
    refunded n'est atteignable que via execute_refund.
    """
    wanted = parse_status(target)
    if wanted is None:
        raise ValidationError("Invalid order status", code="INVALID_STATUS")
    if wanted == OrderStatus.REFUNDED:
        raise ConflictError("Use the refund workflow to refund an order", code=INVALID_TRANSITION)
    order = _require_order(order_id)
    current = _status_of(order)
    if not can_transition(current, wanted):
        raise ConflictError(
            f"Cannot move order from {current.value} to {wanted.value}",
            code=INVALID_TRANSITION,
        )
    return _save(order_id, {"status": wanted.value})


def request_refund(order_id: str, user: Dict[str, Any], amount: Any = None, reason: Optional[str] = None) -> Dict[str, Any]:
    """Demande de remboursement côté client.
    - Propriétaire de la commande (ou admin) uniquement.
    - Commande payée/expédiée/livrée, sans demande ouverte.
    - Montant: total de la commande par défaut, jamais au-delà.
    """
    order = _require_order(order_id)
    _require_owner(order, user)

    if _status_of(order) not in REFUNDABLE:
        raise ConflictError("Order is not eligible for a refund", code=REFUND_NOT_ALLOWED)
    refund_status = parse_refund_status(order.get("refund_status"))
    if refund_status in OPEN_REFUND:
        raise ConflictError("A refund request is already open for this order", code=REFUND_NOT_ALLOWED)
    if refund_status in CLOSED_REFUND:
        raise ConflictError(f"Refund request already {refund_status.value}", code=REFUND_NOT_ALLOWED)

    order_cents = int(order.get("amount_cents") or 0)
    cents = order_cents if amount in (None, "") else parse_minor_units(amount)
    if cents < 1 or cents > order_cents:
        raise ValidationError("Refund amount must be between 0.01 and the order amount", code=INVALID_AMOUNT)
    clean_reason = _required_reason(reason)

    row = _save(order_id, {
        "refund_status": RefundStatus.REQUESTED.value,
        "refund_amount_cents": cents,
        "refund_reason": clean_reason,
        "refund_requested_at": _now_iso(),
    })
    logger.info("orders.request_refund order_id=%s amount=%s", order_id, cents)
    return row


def _require_refund_status(order: Dict[str, Any], expected: RefundStatus) -> None:
    current = parse_refund_status(order.get("refund_status"))
    if current != expected:
        raise ConflictError(
            f"Refund request is {current.value if current else 'absent'}, expected {expected.value}",
            code=INVALID_TRANSITION,
        )


def approve_refund(order_id: str, admin: Dict[str, Any]) -> Dict[str, Any]:
    order = _require_order(order_id)
    _require_refund_status(order, RefundStatus.REQUESTED)
    return _save(order_id, {
        "refund_status": RefundStatus.APPROVED.value,
        "refund_approved_at": _now_iso(),
        "refund_approved_by": admin.get("email") or admin.get("id"),
    })


def reject_refund(order_id: str, admin: Dict[str, Any], reason: Optional[str]) -> Dict[str, Any]:
    order = _require_order(order_id)
    _require_refund_status(order, RefundStatus.REQUESTED)
    clean_reason = _required_reason(reason)
    return _save(order_id, {
        "refund_status": RefundStatus.REJECTED.value,
        "refund_rejection_reason": clean_reason,
        "refund_processed_at": _now_iso(),
        "refund_processed_by": admin.get("email") or admin.get("id"),
    })


def _order_created_at(order: Dict[str, Any]) -> datetime:
    raw = order.get("created_at")
    if not raw:
        raise NotFoundError("No creation date found for this order", code=payments_service.PAYMENT_INTENT_NOT_FOUND)
    return payments_service.parse_datetime(raw, "created_at")


def find_payment_intent_for_order(provider: PaymentProvider, order: Dict[str, Any]) -> str:
    """PaymentIntent de la commande: valeur en cache, sinon heuristique (±1 jour, email client).
    L'id trouvé est persisté sur la commande.
    """
    cached = order.get("payment_intent_id")
    if cached:
        return cached
    created = _order_created_at(order)
    try:
        found = payments_service.resolve_by_heuristic(
            provider,
            amount=from_minor_units(order.get("amount_cents")),
            start_date=created - HEURISTIC_WINDOW,
            end_date=created + HEURISTIC_WINDOW,
            customer_email=order.get("user_email"),
        )
    except NotFoundError:
        raise NotFoundError(
            "No payment intent ID found for this order. Please process this refund manually "
            "through the payment dashboard using the order details.",
            code=payments_service.PAYMENT_INTENT_NOT_FOUND,
        )
    intent_id = found["paymentIntentId"]
    _save(order["id"], {"payment_intent_id": intent_id})
    logger.info("orders.payment_intent resolved by heuristic order_id=%s intent=%s", order["id"], intent_id)
    return intent_id


def execute_refund(provider: PaymentProvider, order_id: str, admin: Dict[str, Any]) -> Dict[str, Any]:
    """Étape finale (admin): rembourse via le fournisseur puis marque la commande « refunded ».
    - Demande « approved » requise.
    - Échec fournisseur: ProviderError(REFUND_FAILED), commande inchangée.
    """
    order = _require_order(order_id)
    _require_refund_status(order, RefundStatus.APPROVED)
    intent_id = find_payment_intent_for_order(provider, order)

    cents = order.get("refund_amount_cents")
    if cents is None:
        cents = order.get("amount_cents")
    refund = payments_service.process_refund(
        provider,
        payment_intent_id=intent_id,
        amount=from_minor_units(cents),
        reason=order.get("refund_reason"),
    )

    fields = {
        "refund_status": RefundStatus.PROCESSED.value,
        "refund_id": refund.get("refundId"),
        "refund_processed_at": _now_iso(),
        "refund_processed_by": admin.get("email") or admin.get("id"),
        "status": OrderStatus.REFUNDED.value,
        "payment_status": "refunded",
    }
    row = repository.update_order(order_id, fields)
    if row is None:
        # Le remboursement est effectif côté fournisseur: à réconcilier manuellement
        logger.error("orders.execute_refund order update failed after refund order_id=%s refund_id=%s", order_id, refund.get("refundId"))
        raise ProviderError(
            "Refund processed but order update failed",
            code=ORDER_UPDATE_FAILED,
            details={"orderId": order_id, "refundId": refund.get("refundId")},
        )
    logger.info("orders.execute_refund order_id=%s refund_id=%s", order_id, refund.get("refundId"))
    return {"order": row, "refund": refund}


def list_refund_requests(status: Any = None) -> List[Dict[str, Any]]:
    """File admin: commandes ayant une demande de remboursement, filtrable par statut."""
    if status in (None, ""):
        statuses = [s.value for s in RefundStatus]
    else:
        wanted = parse_refund_status(status)
        if wanted is None:
            raise ValidationError("Invalid refund status", code="INVALID_STATUS")
        statuses = [wanted.value]
    return repository.list_orders_by_refund_status(statuses)


def list_refundable_orders(user: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Commandes du client éligibles à une demande: payées, sans demande antérieure."""
    rows = repository.list_user_orders(str(user.get("id")), [s.value for s in REFUNDABLE])
    return [
        row for row in rows
        if row.get("payment_status") == "completed" and parse_refund_status(row.get("refund_status")) is None
    ]
