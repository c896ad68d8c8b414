"""
Module 'payments' (feature-first): point d'entrée public.
Réunit montants, interface fournisseur, adaptateur Stripe et orchestrateurs.
"""

from .amounts import parse_amount, parse_minor_units, to_minor_units, from_minor_units, amounts_match
from .provider import PaymentProvider, PaymentProviderError
from .stripe_client import require_stripe, StripeProvider, get_payment_provider
from .service import (
    create_checkout_session,
    resolve_by_session,
    resolve_by_heuristic,
    process_refund,
)

__all__ = [
    # amounts
    "parse_amount",
    "parse_minor_units",
    "to_minor_units",
    "from_minor_units",
    "amounts_match",
    # provider
    "PaymentProvider",
    "PaymentProviderError",
    # stripe
    "require_stripe",
    "StripeProvider",
    "get_payment_provider",
    # services
    "create_checkout_session",
    "resolve_by_session",
    "resolve_by_heuristic",
    "process_refund",
]
