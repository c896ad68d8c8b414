"""
Exceptions métier du backend storefront.

Chaque erreur porte un code stable (consommé par le frontend), un statut HTTP
et un dict de détails de diagnostic (masqué en production par le handler).
"""
from typing import Any, Dict, Optional


class StorefrontError(Exception):
    """
    Base de toutes les erreurs métier.

    Attributs:
        message: message lisible renvoyé au client
        code: code stable (ex: INVALID_AMOUNT, REFUND_FAILED)
        status_code: statut HTTP associé
        details: contexte additionnel (ids, erreurs fournisseur...)
    """
    status_code = 500
    default_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.code = code or self.default_code
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.code}', '{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.code}', '{self.message}')"


class ValidationError(StorefrontError):
    """Champ manquant ou mal formé; toujours levée avant tout appel externe."""
    status_code = 400
    default_code = "VALIDATION_ERROR"


class CsrfError(StorefrontError):
    status_code = 403
    default_code = "CSRF_INVALID"

    def __init__(self, message: str = "CSRF token validation failed"):
        super().__init__(message)


class NotFoundError(StorefrontError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(StorefrontError):
    """Transition d'état refusée (commande ou demande de remboursement)."""
    status_code = 409
    default_code = "CONFLICT"


class ProviderError(StorefrontError):
    """Le fournisseur (Stripe, Mailjet, OpenRouter) a rejeté ou raté l'appel."""
    status_code = 500
    default_code = "PROVIDER_ERROR"


class ConfigError(StorefrontError):
    """Secret ou clé requis absent; le message client reste générique."""
    status_code = 500
    default_code = "CONFIG_ERROR"


class PermissionDeniedError(StorefrontError):
    status_code = 403
    default_code = "FORBIDDEN"
