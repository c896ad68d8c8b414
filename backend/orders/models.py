# module backend.orders.models
"""Modèle des commandes boutique et de leurs demandes de remboursement.
- OrderStatus / RefundStatus: valeurs stockées telles quelles en base.
- can_transition: invariant de progression monotone des statuts.
- serialize_order: forme exposée à l'API (montants en décimal).
"""
from enum import Enum
from typing import Any, Dict, Optional

from backend.payments.amounts import from_minor_units


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class RefundStatus(str, Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    PROCESSED = "processed"
    REJECTED = "rejected"


FULFILLMENT_FLOW = (OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED)
CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.PAID})
REFUNDABLE = frozenset({OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED})
OPEN_REFUND = frozenset({RefundStatus.REQUESTED, RefundStatus.APPROVED})
CLOSED_REFUND = frozenset({RefundStatus.PROCESSED, RefundStatus.REJECTED})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """
    pending -> paid -> shipped -> delivered (en avant uniquement, pending ne saute pas le paiement);
    cancelled depuis pending/paid; refunded depuis paid/shipped/delivered.
    """
    if current == target:
        return False
    if target == OrderStatus.CANCELLED:
        return current in CANCELLABLE
    if target == OrderStatus.REFUNDED:
        return current in REFUNDABLE
    if current in FULFILLMENT_FLOW and target in FULFILLMENT_FLOW:
        if current == OrderStatus.PENDING:
            return target == OrderStatus.PAID
        return FULFILLMENT_FLOW.index(target) > FULFILLMENT_FLOW.index(current)
    return False


def parse_status(value: Any) -> Optional[OrderStatus]:
    try:
        return OrderStatus(str(value or "").strip().lower())
    except ValueError:
        return None


def parse_refund_status(value: Any) -> Optional[RefundStatus]:
    if not value or value == "none":
        return None
    try:
        return RefundStatus(str(value).strip().lower())
    except ValueError:
        return None


def serialize_order(row: Dict[str, Any]) -> Dict[str, Any]:
    refund_cents = row.get("refund_amount_cents")
    return {
        "id": row.get("id"),
        "userId": row.get("user_id"),
        "userEmail": row.get("user_email"),
        "title": row.get("title"),
        "amount": from_minor_units(row.get("amount_cents")),
        "status": row.get("status"),
        "paymentStatus": row.get("payment_status"),
        "isStoreOrder": bool(row.get("is_store_order")),
        "paymentIntentId": row.get("payment_intent_id"),
        "refund": {
            "status": row.get("refund_status"),
            "amount": from_minor_units(refund_cents) if refund_cents is not None else None,
            "reason": row.get("refund_reason"),
            "refundId": row.get("refund_id"),
        } if row.get("refund_status") else None,
        "createdAt": row.get("created_at"),
        "updatedAt": row.get("updated_at"),
    }
