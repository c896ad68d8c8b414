"""
Montants: parsing à la frontière HTTP et conversion en unités mineures (centimes).
Logique pure (pas de Stripe, pas de DB).
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from backend.errors import ValidationError

INVALID_AMOUNT = "INVALID_AMOUNT"
_CENT = Decimal("0.01")
# Plafond Stripe: 8 chiffres en unités mineures
MAX_AMOUNT = Decimal("999999.99")
_INVALID_MESSAGE = "Invalid amount. Please provide a valid positive number."

# module backend.payments.amounts
def parse_amount(value: Any) -> Decimal:
    """
    Convertit un montant reçu (int, float, Decimal ou chaîne numérique) en Decimal.
    - Refuse bool, None, chaîne vide, non numérique, NaN/Infinity, valeurs <= 0 et > MAX_AMOUNT.
    - Soulève ValidationError(INVALID_AMOUNT) avant tout appel fournisseur.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(_INVALID_MESSAGE, code=INVALID_AMOUNT)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(_INVALID_MESSAGE, code=INVALID_AMOUNT)
    if not amount.is_finite() or amount <= 0 or amount > MAX_AMOUNT:
        raise ValidationError(_INVALID_MESSAGE, code=INVALID_AMOUNT)
    return amount

def to_minor_units(amount: Any) -> int:
    """
    round(amount * 100) en arrondi « half-up » sur la représentation décimale.
    Ex: 49.99 -> 4999, 10.005 -> 1001 (jamais de troncature).
    """
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    try:
        return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise ValidationError(_INVALID_MESSAGE, code=INVALID_AMOUNT)

def parse_minor_units(value: Any) -> int:
    """parse_amount puis to_minor_units; un montant qui s'arrondit à 0 centime est refusé."""
    units = to_minor_units(parse_amount(value))
    if units < 1:
        raise ValidationError("Amount must be at least 0.01.", code=INVALID_AMOUNT)
    return units

def from_minor_units(units: Any) -> float:
    """Centimes -> montant décimal d'affichage (float, 2 décimales)."""
    return float((Decimal(int(units or 0)) / 100).quantize(_CENT))

def amounts_match(intent_units: Any, amount: Decimal) -> bool:
    """Tolérance de rapprochement: |intent/100 - amount| < 0.01."""
    return abs(Decimal(int(intent_units or 0)) / 100 - amount) < _CENT
