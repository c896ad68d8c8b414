"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
"""
import logging
from typing import Any, Dict, List

import stripe

from backend.errors import ConfigError
from backend.payments.provider import PaymentProviderError

logger = logging.getLogger(__name__)

# module backend.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY.
    - Clé absente: ConfigError (500 générique côté client).
    """
    from backend.config import STRIPE_SECRET_KEY
    if not STRIPE_SECRET_KEY:
        logger.error("STRIPE_SECRET_KEY manquant")
        raise ConfigError("Payment service is not configured")
    stripe.api_key = STRIPE_SECRET_KEY
    return stripe

def _as_dict(obj: Any) -> Dict[str, Any]:
    # stripe retourne des StripeObject; on les aplatit en dict récursivement
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)

def _error_details(e: "stripe.StripeError") -> Dict[str, Any]:
    return {
        "code": getattr(e, "code", None),
        "type": type(e).__name__,
        "decline_code": getattr(e, "decline_code", None),
        "param": getattr(e, "param", None),
        "http_status": getattr(e, "http_status", None),
    }

def _provider_error(action: str, e: "stripe.StripeError") -> PaymentProviderError:
    details = _error_details(e)
    logger.error("stripe.%s failed: %s details=%s", action, getattr(e, "user_message", None) or str(e), details)
    return PaymentProviderError(getattr(e, "user_message", None) or str(e), details)


class StripeProvider:
    """Implémentation de PaymentProvider au-dessus du SDK stripe."""

    def create_session(self, **params: Any) -> Dict[str, Any]:
        """
        Crée une session Stripe Checkout.
        - params: line_items, mode, success_url, cancel_url, metadata, customer_email...
        Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
        """
        require_stripe()
        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            raise _provider_error("checkout.Session.create", e) from e
        return _as_dict(session)

    def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        require_stripe()
        try:
            return _as_dict(stripe.checkout.Session.retrieve(session_id))
        except stripe.StripeError as e:
            raise _provider_error("checkout.Session.retrieve", e) from e

    def retrieve_intent(self, intent_id: str) -> Dict[str, Any]:
        require_stripe()
        try:
            return _as_dict(stripe.PaymentIntent.retrieve(intent_id))
        except stripe.StripeError as e:
            raise _provider_error("PaymentIntent.retrieve", e) from e

    def list_intents(self, *, created_gte: int, created_lte: int, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Liste les PaymentIntents créés dans [created_gte, created_lte] (secondes unix, inclusif).
        Ordre: celui de Stripe (création décroissante); une seule page.
        """
        require_stripe()
        try:
            page = stripe.PaymentIntent.list(
                created={"gte": created_gte, "lte": created_lte},
                limit=limit,
            )
        except stripe.StripeError as e:
            raise _provider_error("PaymentIntent.list", e) from e
        return [_as_dict(pi) for pi in (page.data or [])]

    def create_refund(
        self,
        *,
        payment_intent: str,
        amount: int,
        reason: str,
        metadata: Dict[str, str],
    ) -> Dict[str, Any]:
        require_stripe()
        try:
            refund = stripe.Refund.create(
                payment_intent=payment_intent,
                amount=amount,
                reason=reason,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            raise _provider_error("Refund.create", e) from e
        return _as_dict(refund)


def get_payment_provider() -> StripeProvider:
    """Dépendance FastAPI; surchargée dans les tests via dependency_overrides."""
    return StripeProvider()
