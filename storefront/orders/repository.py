"""
Accès aux données pour la feature 'orders' (table `orders`).
Clé d'idempotence: `stripe_session_id` (contrainte UNIQUE côté base).
"""
from typing import Any, Dict, List, Optional, Tuple
import logging

from postgrest.exceptions import APIError

import storefront.infra.supabase_client as supabase_client
from storefront import config

logger = logging.getLogger(__name__)

# module storefront.orders.repository
def find_by_session_id(session_id: str) -> Optional[Dict[str, Any]]:
    """Commande liée à la session Stripe, ou None."""
    res = (
        supabase_client.get_service_supabase()
        .table(config.ORDERS_TABLE)
        .select("*")
        .eq("stripe_session_id", session_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def insert_if_absent(order: Dict[str, Any]) -> Tuple[bool, Dict[str, Any]]:
    """
    Insère la commande si aucune n'existe pour order["stripe_session_id"].
    - Retour: (created, row). created=False si la session était déjà réglée.
    - Une violation d'unicité (livraison concurrente/rejouée) n'est pas une erreur.
    """
    try:
        res = supabase_client.get_service_supabase().table(config.ORDERS_TABLE).insert(order).execute()
    except APIError as e:
        if not supabase_client.is_unique_violation(e):
            raise
        existing = find_by_session_id(order["stripe_session_id"])
        if existing is None:
            raise
        logger.info("orders.repository duplicate insert ignored session_id=%s", order["stripe_session_id"])
        return False, existing
    rows = res.data or []
    return True, (rows[0] if rows else order)

def list_for_user(user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
    """Commandes d'un utilisateur, plus récentes d'abord."""
    res = (
        supabase_client.get_service_supabase()
        .table(config.ORDERS_TABLE)
        .select("id, items, total_amount_minor, stripe_session_id, created_at")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return res.data or []
