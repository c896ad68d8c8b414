"""
Canaux annexes sans état: relais email (Mailjet) et proxy de chat IA (OpenRouter).
Aucun couplage avec le workflow checkout/remboursement; les clés restent côté serveur.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from backend import config
from backend.errors import ConfigError, ProviderError, ValidationError

logger = logging.getLogger(__name__)

EMAIL_SEND_FAILED = "EMAIL_SEND_FAILED"
CHAT_UPSTREAM_FAILED = "CHAT_UPSTREAM_FAILED"
HTTP_TIMEOUT = 30

# module backend.notifications.service
def send_email(
    *,
    to: Optional[str],
    subject: Optional[str],
    html_content: Optional[str],
    from_email: Optional[str] = None,
    from_name: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Envoie un email HTML via l'API Mailjet v3.1 (POST /send, auth basique clé/secret).
    - Champs requis: to, subject, html_content (400 sinon)
    - Identifiants absents: ConfigError (message générique)
    - Réponse non 2xx ou erreur réseau: ProviderError(EMAIL_SEND_FAILED)
    """
    if not to or not subject or not html_content:
        raise ValidationError("Missing required fields: to, subject, htmlContent", code="MISSING_FIELDS")
    if not config.MAILJET_API_KEY or not config.MAILJET_API_SECRET:
        logger.error("MAILJET_API_KEY / MAILJET_API_SECRET manquants")
        raise ConfigError("Email service is not configured")

    payload = {
        "Messages": [
            {
                "From": {
                    "Email": from_email or config.MAIL_FROM_EMAIL,
                    "Name": from_name or config.MAIL_FROM_NAME,
                },
                "To": [{"Email": to, "Name": to.split("@")[0]}],
                "Subject": subject,
                "HTMLPart": html_content,
            }
        ]
    }
    try:
        resp = httpx.post(
            config.MAILJET_URL,
            json=payload,
            auth=(config.MAILJET_API_KEY, config.MAILJET_API_SECRET),
            timeout=HTTP_TIMEOUT,
        )
    except httpx.HTTPError as e:
        logger.exception("notifications.send_email network error to=%s", to)
        raise ProviderError("Failed to send email", code=EMAIL_SEND_FAILED, details={"message": str(e)}) from e

    if not 200 <= resp.status_code < 300:
        logger.error("notifications.send_email mailjet status=%s body=%s", resp.status_code, resp.text)
        raise ProviderError(
            "Failed to send email",
            code=EMAIL_SEND_FAILED,
            details={"status": resp.status_code, "body": resp.text[:500]},
        )

    logger.info("notifications.send_email sent to=%s", to)
    return {"success": True, "message": "Email sent successfully", "data": resp.json()}


def chat_completion(
    messages: Any,
    model: Optional[str] = None,
    referer: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Proxy OpenRouter chat/completions (la clé API ne quitte jamais le serveur).
    - messages doit être une liste (400 sinon)
    - Statut amont non 2xx: même statut, message générique
    Retour: la réponse JSON du fournisseur, inchangée.
    """
    if not isinstance(messages, list):
        raise ValidationError("Invalid messages format", code="INVALID_MESSAGES")
    if not config.OPENROUTER_API_KEY:
        logger.error("OPENROUTER_API_KEY manquant")
        raise ConfigError("AI service configuration error")

    payload: Dict[str, Any] = {
        "model": model or config.CHAT_DEFAULT_MODEL,
        "messages": messages,
        "temperature": 0.7,
        "max_tokens": 500,
    }
    headers = {
        "Authorization": f"Bearer {config.OPENROUTER_API_KEY}",
        "HTTP-Referer": referer or config.FRONTEND_URL,
        "X-Title": config.CHAT_TITLE,
        "Content-Type": "application/json",
    }
    try:
        resp = httpx.post(config.OPENROUTER_URL, json=payload, headers=headers, timeout=HTTP_TIMEOUT)
    except httpx.HTTPError as e:
        logger.exception("notifications.chat network error")
        raise ProviderError("AI service temporarily unavailable", code=CHAT_UPSTREAM_FAILED, details={"message": str(e)}) from e

    if not 200 <= resp.status_code < 300:
        logger.error("notifications.chat OpenRouter status=%s body=%s", resp.status_code, resp.text)
        raise ProviderError(
            "AI service temporarily unavailable",
            code=CHAT_UPSTREAM_FAILED,
            details={"status": resp.status_code},
            status_code=resp.status_code,
        )
    return resp.json()
