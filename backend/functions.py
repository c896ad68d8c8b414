"""
Adaptateur « fonctions déployées individuellement » (Netlify/Lambda).

Chaque handler reçoit un événement {httpMethod, headers, body, queryStringParameters}
et retourne {statusCode, headers, body}. Ils appellent les mêmes fonctions de service
que les routers FastAPI: seule la forme d'entrée/sortie change.
- OPTIONS: 200 (préflight CORS), méthode inattendue: 405
- Routes mutatives: jeton CSRF du CsrfService partagé, sinon 403 avant tout appel fournisseur
- StorefrontError: même corps que l'API; toute autre exception: 500 générique
"""
import json
import logging
from typing import Any, Callable, Dict, Optional

from backend import config
from backend.app_setup.exceptions import INTERNAL_ERROR_MESSAGE, error_payload
from backend.errors import CsrfError, StorefrontError
from backend.notifications import service as notifications_service
from backend.payments import service as payments_service
from backend.payments.provider import PaymentProvider
from backend.payments.stripe_client import get_payment_provider
from backend.utils.csrf import CSRF_BODY_FIELD, CSRF_HEADER_NAME, CsrfService
from backend.utils.validators import as_bool, parse_json_text

logger = logging.getLogger(__name__)

Event = Dict[str, Any]
Result = Dict[str, Any]

_csrf_service: Optional[CsrfService] = None


def get_csrf_service() -> CsrfService:
    """Service CSRF du processus, construit une fois depuis CSRF_SECRET."""
    global _csrf_service
    if _csrf_service is None:
        _csrf_service = CsrfService.from_config(config.CSRF_SECRET)
    return _csrf_service


def _cors_headers(methods: str) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": config.FRONTEND_URL,
        "Access-Control-Allow-Headers": f"Content-Type, Authorization, {CSRF_HEADER_NAME}",
        "Access-Control-Allow-Methods": methods,
        "Access-Control-Allow-Credentials": "true",
        "Content-Type": "application/json",
    }


def _header(event: Event, name: str) -> Optional[str]:
    # les plateformes ne normalisent pas toutes la casse des en-têtes
    for key, value in (event.get("headers") or {}).items():
        if key.lower() == name.lower():
            return value
    return None


def _check_csrf(event: Event, body: Dict[str, Any]) -> None:
    token = _header(event, CSRF_HEADER_NAME) or body.get(CSRF_BODY_FIELD)
    if not get_csrf_service().validate_token(token):
        logger.warning("functions.csrf rejected")
        raise CsrfError()


def _handle(event: Event, method: str, action: Callable[[Dict[str, Any]], Any], csrf: bool = True) -> Result:
    """Squelette commun: préflight, méthode, CSRF, appel du service et mapping d'erreurs."""
    headers = _cors_headers(f"{method}, OPTIONS")
    http_method = (event.get("httpMethod") or "").upper()
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": headers, "body": ""}
    if http_method != method:
        return {"statusCode": 405, "headers": headers, "body": json.dumps({"error": "Method not allowed"})}

    try:
        body = parse_json_text(event.get("body")) if method == "POST" else {}
        if csrf:
            _check_csrf(event, body)
        result = action(body)
    except StorefrontError as e:
        return {"statusCode": e.status_code, "headers": headers, "body": json.dumps(error_payload(e))}
    except Exception:
        logger.exception("functions.%s unexpected error", getattr(action, "__name__", "handler"))
        return {"statusCode": 500, "headers": headers, "body": json.dumps({"error": INTERNAL_ERROR_MESSAGE})}
    return {"statusCode": 200, "headers": headers, "body": json.dumps(result)}


def csrf_token(event: Event, context: Any = None) -> Result:
    return _handle(event, "GET", lambda _body: {"token": get_csrf_service().issue_token()}, csrf=False)


def create_checkout_session(event: Event, context: Any = None, provider: Optional[PaymentProvider] = None) -> Result:
    def action(body: Dict[str, Any]) -> Dict[str, Any]:
        return payments_service.create_checkout_session(
            provider or get_payment_provider(),
            amount=body.get("amount"),
            order_id=body.get("ticketId") or body.get("orderId"),
            title=body.get("orderTitle") or body.get("description"),
            customer_email=body.get("customerEmail"),
            is_store_order=as_bool(body.get("isStoreOrder")),
        )
    return _handle(event, "POST", action)


def get_payment_intent(event: Event, context: Any = None, provider: Optional[PaymentProvider] = None) -> Result:
    """Lecture seule (GET ?sessionId=...): pas de CSRF, comme la route du serveur."""
    params = event.get("queryStringParameters") or {}

    def action(_body: Dict[str, Any]) -> Dict[str, Any]:
        return payments_service.resolve_by_session(
            provider or get_payment_provider(),
            params.get("sessionId") or params.get("session_id"),
        )
    return _handle(event, "GET", action, csrf=False)


def find_payment_intent(event: Event, context: Any = None, provider: Optional[PaymentProvider] = None) -> Result:
    def action(body: Dict[str, Any]) -> Dict[str, Any]:
        return payments_service.resolve_by_heuristic(
            provider or get_payment_provider(),
            amount=body.get("amount"),
            start_date=body.get("startDate"),
            end_date=body.get("endDate"),
            customer_email=body.get("customerEmail"),
        )
    return _handle(event, "POST", action)


def process_refund(event: Event, context: Any = None, provider: Optional[PaymentProvider] = None) -> Result:
    def action(body: Dict[str, Any]) -> Dict[str, Any]:
        return payments_service.process_refund(
            provider or get_payment_provider(),
            payment_intent_id=body.get("paymentIntentId"),
            amount=body.get("amount"),
            reason=body.get("reason"),
        )
    return _handle(event, "POST", action)


def chat(event: Event, context: Any = None) -> Result:
    def action(body: Dict[str, Any]) -> Dict[str, Any]:
        return notifications_service.chat_completion(
            body.get("messages"),
            body.get("model"),
            _header(event, "origin"),
        )
    return _handle(event, "POST", action)


def send_email(event: Event, context: Any = None) -> Result:
    def action(body: Dict[str, Any]) -> Dict[str, Any]:
        return notifications_service.send_email(
            to=body.get("to"),
            subject=body.get("subject"),
            html_content=body.get("htmlContent"),
            from_email=body.get("fromEmail"),
            from_name=body.get("fromName"),
        )
    return _handle(event, "POST", action)
