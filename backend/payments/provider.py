"""
Interface étroite du fournisseur de paiement consommée par les orchestrateurs.

Les orchestrateurs (backend.payments.service) ne connaissent que ce protocole;
StripeProvider en est l'adaptateur concret, les tests injectent un faux.
Toutes les méthodes renvoient des dicts simples (pas d'objets SDK).
"""
from typing import Any, Dict, List, Optional, Protocol


class PaymentProviderError(Exception):
    """
    Échec côté fournisseur (réseau, validation, refus).
    details: champs de diagnostic transmis tels quels (code, type, decline_code, param).
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class PaymentProvider(Protocol):
    def create_session(self, **params: Any) -> Dict[str, Any]:
        ...

    def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        ...

    def retrieve_intent(self, intent_id: str) -> Dict[str, Any]:
        ...

    def list_intents(self, *, created_gte: int, created_lte: int, limit: int = 100) -> List[Dict[str, Any]]:
        ...

    def create_refund(
        self,
        *,
        payment_intent: str,
        amount: int,
        reason: str,
        metadata: Dict[str, str],
    ) -> Dict[str, Any]:
        ...
