from fastapi import Request, HTTPException, Depends
from typing import Optional, Dict, Any
import logging

from backend.config import ADMIN_EMAILS

logger = logging.getLogger(__name__)

def determine_role(email: Optional[str], metadata: Dict[str, Any] | None) -> str:
    """
    Rôle applicatif: "admin" via app_metadata.role ou ADMIN_EMAILS, sinon "user".
    """
    if str((metadata or {}).get("role", "")).lower() == "admin":
        return "admin"
    if email and email.lower() in ADMIN_EMAILS:
        return "admin"
    return "user"

def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise l'utilisateur issu de supabase.auth.get_user(access_token).
    Le rôle ne vient que d'app_metadata (écrit côté serveur) ou d'ADMIN_EMAILS:
    user_metadata est modifiable par l'utilisateur lui-même.
    """
    from backend.infra.supabase_client import get_supabase
    res = get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None)
    if user is None:
        return {}
    email = getattr(user, "email", None)
    app_metadata = dict(getattr(user, "app_metadata", None) or {})
    return {
        "id": getattr(user, "id", None),
        "email": email,
        "metadata": app_metadata,
        "user_metadata": dict(getattr(user, "user_metadata", None) or {}),
        "role": determine_role(email, app_metadata),
        "token": access_token,
    }

def get_current_user(request: Request) -> Dict[str, Any]:
    token = _bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        user = get_user_from_token(token)
    except Exception:
        logger.exception("security.get_current_user token lookup failed")
        raise HTTPException(status_code=401, detail="Session expired, please sign in again")
    if not user.get("id"):
        raise HTTPException(status_code=401, detail="Session expired, please sign in again")
    return user

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Forbidden")
    return user
