"""
Accès aux données pour la feature 'orders' (table store_orders, client service-role).
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
import logging

import backend.infra.supabase_client as supabase_client
from backend.config import ORDERS_TABLE
from backend.errors import ConfigError

logger = logging.getLogger(__name__)

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

# module backend.orders.repository
def get_order(order_id: str) -> Optional[Dict[str, Any]]:
    """
    Récupère une commande par id.
    - Retourne None si absente ou en cas d'erreur (loggée).
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .select("*")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except ConfigError:
        raise
    except Exception:
        logger.exception("orders.repository.get_order failed order_id=%s", order_id)
        return None

def update_order(order_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Met à jour les champs donnés et horodate updated_at.
    - Retourne la ligne mise à jour, None si aucune ligne ou en cas d'erreur.
    """
    payload = {**fields, "updated_at": _now_iso()}
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .update(payload)
            .eq("id", order_id)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except ConfigError:
        raise
    except Exception:
        logger.exception("orders.repository.update_order failed order_id=%s fields=%s", order_id, list(fields))
        return None

def list_orders_by_refund_status(statuses: Iterable[str], limit: int = 100) -> List[Dict[str, Any]]:
    """
    File des demandes de remboursement (admin), la plus récente d'abord.
    - Liste vide en cas d'erreur (loggée).
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .select("*")
            .in_("refund_status", list(statuses))
            .order("refund_requested_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except ConfigError:
        raise
    except Exception:
        logger.exception("orders.repository.list_orders_by_refund_status failed")
        return []

def list_user_orders(user_id: str, statuses: Iterable[str], limit: int = 100) -> List[Dict[str, Any]]:
    """Commandes d'un client dans les statuts donnés, la plus récente d'abord."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .in_("status", list(statuses))
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except ConfigError:
        raise
    except Exception:
        logger.exception("orders.repository.list_user_orders failed user_id=%s", user_id)
        return []
