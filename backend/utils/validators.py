import json
from typing import Any, Dict, Optional

from fastapi import Request

from backend.errors import ValidationError

async def read_json_body(request: Request) -> Dict[str, Any]:
    """
    Lit le body JSON d'une requête et garantit un objet.
    - Body vide: {}
    - JSON invalide ou non-objet: ValidationError (400)
    """
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object")
    return data

def parse_json_text(text: Optional[str]) -> Dict[str, Any]:
    """Variante synchrone pour les handlers serverless (event['body'])."""
    if not text:
        return {}
    try:
        data = json.loads(text)
    except ValueError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object")
    return data

def as_bool(value: Any) -> bool:
    """Booléen tolérant: true/"true"/"1"/1 => True; le reste => False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return False
