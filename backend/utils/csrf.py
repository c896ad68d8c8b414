# module backend.utils.csrf
"""
Protection CSRF sans stockage serveur.

- CsrfService détient un secret (injecté à la construction) et émet des tokens
  auto-vérifiables: "<sel>-<HMAC-SHA256(secret, sel)>".
- csrf_protect: dépendance FastAPI à poser sur les routes mutatives
  (header X-CSRF-Token, ou champ JSON _csrf en repli).
- Un redémarrage avec un secret généré invalide tous les tokens en circulation;
  fournir CSRF_SECRET pour les conserver.
"""
import base64
import hashlib
import hmac
import json
import logging
import secrets
from typing import Any, Optional

from fastapi import FastAPI, Request

from backend.errors import CsrfError

logger = logging.getLogger(__name__)

CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_BODY_FIELD = "_csrf"
SAFE_METHODS = ("GET", "HEAD", "OPTIONS")
_SALT_BYTES = 8


def _b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


class CsrfService:
    """Émission/validation des tokens CSRF liés à un secret unique."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("secret CSRF requis")
        self._secret = secret.encode("utf-8")

    @classmethod
    def from_config(cls, secret: Optional[str]) -> "CsrfService":
        """
        Construit le service depuis la configuration.
        - secret fourni: tokens valides entre redémarrages
        - secret absent: secret généré pour la durée du processus
        """
        if not secret:
            logger.warning("CSRF_SECRET absent: secret généré, les tokens seront invalidés au redémarrage")
            secret = secrets.token_urlsafe(32)
        return cls(secret)

    def _sign(self, salt: str) -> str:
        digest = hmac.new(self._secret, salt.encode("utf-8"), hashlib.sha256).digest()
        return _b64(digest)

    def issue_token(self) -> str:
        salt = secrets.token_hex(_SALT_BYTES)
        return f"{salt}-{self._sign(salt)}"

    def validate_token(self, token: Any) -> bool:
        """Recalcule la signature; False sur toute entrée mal formée (jamais d'exception)."""
        if not isinstance(token, str) or not token or not token.isascii():
            return False
        salt, sep, signature = token.partition("-")
        if not sep or not salt or not signature:
            return False
        return secrets.compare_digest(self._sign(salt), signature)


def register_csrf_service(app: FastAPI, secret: Optional[str]) -> CsrfService:
    service = CsrfService.from_config(secret)
    app.state.csrf = service
    return service


def get_csrf_service(request: Request) -> CsrfService:
    service = getattr(request.app.state, "csrf", None)
    if service is None:
        # App construite sans factory (tests unitaires): secret éphémère
        service = register_csrf_service(request.app, None)
    return service


async def _token_from_request(request: Request) -> Optional[str]:
    token = request.headers.get(CSRF_HEADER_NAME)
    if token:
        return token
    ctype = request.headers.get("content-type", "")
    if not ctype.startswith("application/json"):
        return None
    try:
        body = json.loads((await request.body()) or b"{}")
    except ValueError:
        return None
    if isinstance(body, dict):
        value = body.get(CSRF_BODY_FIELD)
        return value if isinstance(value, str) else None
    return None


async def csrf_protect(request: Request) -> None:
    """
    Dépendance à utiliser sur les routes sensibles.
    - GET/HEAD/OPTIONS: aucune vérification
    - Sinon: X-CSRF-Token (ou body._csrf) doit être valide, sinon CsrfError (403)
    """
    if request.method.upper() in SAFE_METHODS:
        return
    token = await _token_from_request(request)
    if not get_csrf_service(request).validate_token(token):
        logger.warning("csrf.rejected method=%s path=%s", request.method, request.url.path)
        raise CsrfError()
