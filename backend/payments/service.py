"""
Cas d'usage 'payments': orchestre checkout, résolution de PaymentIntent et remboursement.

Fonctions pures au-dessus d'un PaymentProvider (aucune écriture locale):
- create_checkout_session: valide, construit la ligne unique et crée la session
- resolve_by_session: session Checkout -> PaymentIntent
- resolve_by_heuristic: montant + plage de dates (+ email) -> premier PaymentIntent concordant
- process_refund: remboursement avec raison canonique et motif libre en metadata
Les deux adaptateurs (routers FastAPI et backend.functions) appellent ces fonctions.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from backend.config import FRONTEND_URL, STRIPE_CURRENCY
from backend.errors import NotFoundError, ProviderError, ValidationError
from backend.payments.amounts import amounts_match, from_minor_units, parse_amount, parse_minor_units
from backend.payments.provider import PaymentProvider, PaymentProviderError

logger = logging.getLogger(__name__)

MISSING_FIELDS = "MISSING_FIELDS"
INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
CHECKOUT_CREATE_FAILED = "CHECKOUT_CREATE_FAILED"
PAYMENT_INTENT_NOT_FOUND = "PAYMENT_INTENT_NOT_FOUND"
PAYMENT_LOOKUP_FAILED = "PAYMENT_LOOKUP_FAILED"
REFUND_FAILED = "REFUND_FAILED"

STRIPE_REFUND_REASON = "requested_by_customer"
DEFAULT_REFUND_REASON = "Customer requested refund"
INTENT_LIST_LIMIT = 100


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def build_redirect_urls(order_id: str, is_store_order: bool, frontend_url: str = FRONTEND_URL) -> Dict[str, str]:
    """
    success_url / cancel_url du checkout.
    - Paramètre orderId pour une commande boutique, ticketId pour un ticket « request ».
    - success_url embarque {CHECKOUT_SESSION_ID} (rempli par Stripe) pour la résolution au retour.
    """
    param = "orderId" if is_store_order else "ticketId"
    base = frontend_url.rstrip("/")
    return {
        "success_url": f"{base}/success?{param}={order_id}&session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{base}/cancel?{param}={order_id}",
    }


# module backend.payments.service
def create_checkout_session(
    provider: PaymentProvider,
    *,
    amount: Any,
    order_id: Optional[str],
    title: Optional[str],
    customer_email: Optional[str] = None,
    is_store_order: bool = False,
    frontend_url: str = FRONTEND_URL,
    currency: str = STRIPE_CURRENCY,
) -> Dict[str, Any]:
    """
    Crée une session Checkout hébergée pour un achat unique.
    Étapes:
      1) Champs requis (order_id, title, amount) -> MISSING_FIELDS
      2) Montant fini et > 0 -> INVALID_AMOUNT, arrondi en centimes
      3) Une ligne (title, amount), mode=payment, URLs de retour, metadata {orderId, isStoreOrder}
    Aucun état local: une session abandonnée ne laisse aucun enregistrement orphelin.
    Retour: {"url": ..., "sessionId": ...}
    """
    if _is_blank(order_id) or _is_blank(title) or _is_blank(amount):
        raise ValidationError(
            "Missing required fields: amount, ticketId (or orderId), orderTitle",
            code=MISSING_FIELDS,
        )
    unit_amount = parse_minor_units(amount)
    order_id = str(order_id).strip()
    is_store_order = bool(is_store_order)

    params: Dict[str, Any] = {
        "payment_method_types": ["card"],
        "line_items": [
            {
                "price_data": {
                    "currency": currency,
                    "product_data": {"name": str(title).strip()},
                    "unit_amount": unit_amount,
                },
                "quantity": 1,
            }
        ],
        "mode": "payment",
        "metadata": {
            "orderId": order_id,
            "ticketId": order_id,
            "isStoreOrder": "true" if is_store_order else "false",
        },
        **build_redirect_urls(order_id, is_store_order, frontend_url),
    }
    if not _is_blank(customer_email):
        params["customer_email"] = str(customer_email).strip()

    try:
        session = provider.create_session(**params)
    except PaymentProviderError as e:
        logger.exception("payments.checkout failed order_id=%s", order_id)
        raise ProviderError(
            "Failed to create checkout session. Please try again later.",
            code=CHECKOUT_CREATE_FAILED,
            details={"message": e.message, **e.details},
        ) from e

    logger.info("payments.checkout created session_id=%s order_id=%s unit_amount=%s", session.get("id"), order_id, unit_amount)
    return {"url": session.get("url"), "sessionId": session.get("id")}


def resolve_by_session(provider: PaymentProvider, session_id: Optional[str]) -> Dict[str, Any]:
    """
    Résout le PaymentIntent rattaché à une session Checkout.
    - Session sans payment_intent: NotFoundError(PAYMENT_INTENT_NOT_FOUND)
    - Montant renvoyé en décimal (centimes / 100)
    """
    if _is_blank(session_id):
        raise ValidationError("Missing session ID", code=MISSING_FIELDS)
    try:
        session = provider.retrieve_session(session_id)
        intent_ref = session.get("payment_intent")
        if not intent_ref:
            raise NotFoundError("No payment intent found for this session", code=PAYMENT_INTENT_NOT_FOUND)
        # payment_intent peut être un id ou un objet expandé
        intent_id = intent_ref.get("id") if isinstance(intent_ref, dict) else intent_ref
        intent = provider.retrieve_intent(intent_id)
    except PaymentProviderError as e:
        logger.exception("payments.resolve_by_session failed session_id=%s", session_id)
        raise ProviderError(
            "Failed to retrieve payment intent. Please try again later.",
            code=PAYMENT_LOOKUP_FAILED,
            details={"message": e.message, **e.details},
        ) from e

    return {
        "paymentIntentId": intent.get("id"),
        "amount": from_minor_units(intent.get("amount")),
        "status": intent.get("status"),
        "metadata": intent.get("metadata") or {},
        "session": {
            "id": session.get("id"),
            "status": session.get("status"),
            "paymentStatus": session.get("payment_status"),
            "metadata": session.get("metadata") or {},
        },
    }


def parse_datetime(value: Any, field: str) -> datetime:
    """ISO-8601 (suffixe Z accepté) ou datetime; naïf => UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f"Invalid date for {field}", code=INVALID_DATE_RANGE)
    else:
        raise ValidationError(f"Invalid date for {field}", code=INVALID_DATE_RANGE)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _iso_utc(ts: Any) -> Optional[str]:
    if ts is None:
        return None
    dt = datetime.fromtimestamp(int(ts), tz=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def resolve_by_heuristic(
    provider: PaymentProvider,
    *,
    amount: Any,
    start_date: Any,
    end_date: Any,
    customer_email: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Repli quand l'id de session n'est pas connu: liste les PaymentIntents créés
    dans [start_date, end_date] puis retient le premier qui concorde.
    - Montant: |intent.amount/100 - amount| < 0.01
    - customer_email fourni: receipt_email identique (le statut n'est pas vérifié)
    - sinon: status == "succeeded"
    Départage: premier de l'ordre Stripe (création décroissante). Heuristique,
    pas une identité: plusieurs paiements peuvent partager montant et fenêtre.
    """
    if _is_blank(amount) or _is_blank(start_date) or _is_blank(end_date):
        raise ValidationError("Missing required fields: amount, startDate, endDate", code=MISSING_FIELDS)
    wanted = parse_amount(amount)
    start = parse_datetime(start_date, "startDate")
    end = parse_datetime(end_date, "endDate")
    if start > end:
        raise ValidationError("startDate must be before endDate", code=INVALID_DATE_RANGE)
    email = None if _is_blank(customer_email) else str(customer_email).strip()

    try:
        intents = provider.list_intents(
            created_gte=int(start.timestamp()),
            created_lte=int(end.timestamp()),
            limit=INTENT_LIST_LIMIT,
        )
    except PaymentProviderError as e:
        logger.exception("payments.resolve_by_heuristic failed")
        raise ProviderError(
            "Failed to find payment intent. Please try again later.",
            code=PAYMENT_LOOKUP_FAILED,
            details={"message": e.message, **e.details},
        ) from e

    for intent in intents:
        if not amounts_match(intent.get("amount"), wanted):
            continue
        if email is not None:
            if intent.get("receipt_email") != email:
                continue
        elif intent.get("status") != "succeeded":
            continue
        logger.info("payments.resolve_by_heuristic matched intent=%s candidates=%s", intent.get("id"), len(intents))
        return {
            "paymentIntentId": intent.get("id"),
            "amount": from_minor_units(intent.get("amount")),
            "status": intent.get("status"),
            "created": _iso_utc(intent.get("created")),
        }

    raise NotFoundError(
        "No matching payment intent found for the given amount and date range",
        code=PAYMENT_INTENT_NOT_FOUND,
    )


def process_refund(
    provider: PaymentProvider,
    *,
    payment_intent_id: Optional[str],
    amount: Any,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Rembourse (totalement ou partiellement) un PaymentIntent.
    - Stripe n'accepte qu'un enum fermé pour 'reason': on envoie toujours
      requested_by_customer et on conserve le motif libre dans metadata.refund_reason.
    - Refus fournisseur: ProviderError(REFUND_FAILED) avec code/decline_code/param.
    Retour: {"success": True, "refundId", "status", "amount"}
    """
    if _is_blank(payment_intent_id) or _is_blank(amount):
        raise ValidationError("Missing required fields: paymentIntentId, amount", code=MISSING_FIELDS)
    units = parse_minor_units(amount)
    refund_reason = DEFAULT_REFUND_REASON if _is_blank(reason) else str(reason).strip()

    logger.info("payments.refund requested intent=%s amount=%s", payment_intent_id, units)
    try:
        refund = provider.create_refund(
            payment_intent=str(payment_intent_id).strip(),
            amount=units,
            reason=STRIPE_REFUND_REASON,
            metadata={"refund_reason": refund_reason},
        )
    except PaymentProviderError as e:
        logger.exception("payments.refund failed intent=%s details=%s", payment_intent_id, e.details)
        raise ProviderError(
            "Failed to process refund. Please try again later.",
            code=REFUND_FAILED,
            details={"message": e.message, **e.details},
        ) from e

    logger.info("payments.refund processed refund_id=%s status=%s", refund.get("id"), refund.get("status"))
    return {
        "success": True,
        "refundId": refund.get("id"),
        "status": refund.get("status"),
        "amount": from_minor_units(refund.get("amount")),
    }
