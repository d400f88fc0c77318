"""
Accès aux données pour la feature 'coupons' (table `coupons`).

Les opérations qui touchent l'invariant « un seul coupon actif par utilisateur »
sont atomiques côté base:
- deactivate: un seul UPDATE conditionnel (idempotent)
- replace_for_owner: fonction SQL `replace_user_coupon` (delete puis insert, même transaction)
"""
from typing import Any, Dict, Optional
import logging

from postgrest.exceptions import APIError

import storefront.infra.supabase_client as supabase_client
from storefront import config

logger = logging.getLogger(__name__)


class CouponCodeCollision(Exception):
    """Le code généré existe déjà (contrainte UNIQUE sur coupons.code)."""


# module storefront.coupons.repository
def find_active(code: str, user_id: str) -> Optional[Dict[str, Any]]:
    """
    Retourne le coupon actif `code` de l'utilisateur, ou None.
    - L'expiration n'est pas filtrée ici: le moteur de prix la vérifie.
    """
    if not code or not user_id:
        return None
    res = (
        supabase_client.get_service_supabase()
        .table(config.COUPONS_TABLE)
        .select("*")
        .eq("code", code)
        .eq("user_id", user_id)
        .eq("is_active", True)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def get_for_owner(user_id: str) -> Optional[Dict[str, Any]]:
    """Coupon actif courant de l'utilisateur (au plus un), ou None."""
    res = (
        supabase_client.get_service_supabase()
        .table(config.COUPONS_TABLE)
        .select("*")
        .eq("user_id", user_id)
        .eq("is_active", True)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def deactivate(code: str, user_id: str) -> bool:
    """
    Passe is_active=false pour (code, user_id) si le coupon est encore actif.
    - Retour: True si cet appel a consommé le coupon, False s'il était déjà inactif (ou absent).
    - Idempotent: un second appel ne modifie rien et renvoie False.
    """
    res = (
        supabase_client.get_service_supabase()
        .table(config.COUPONS_TABLE)
        .update({"is_active": False})
        .eq("code", code)
        .eq("user_id", user_id)
        .eq("is_active", True)
        .execute()
    )
    return bool(res.data)

def replace_for_owner(user_id: str, coupon: Dict[str, Any]) -> Dict[str, Any]:
    """
    Supprime le coupon existant de l'utilisateur et insère `coupon` (atomique via RPC).
    - Lève CouponCodeCollision si le code est déjà pris.
    - Les autres erreurs PostgREST sont propagées.
    """
    params = {
        "p_user_id": user_id,
        "p_code": coupon["code"],
        "p_discount_percentage": int(coupon["discount_percentage"]),
        "p_expiration_date": coupon["expiration_date"],
    }
    try:
        res = supabase_client.get_service_supabase().rpc(config.REPLACE_COUPON_RPC, params).execute()
    except APIError as e:
        if supabase_client.is_unique_violation(e):
            raise CouponCodeCollision(coupon["code"]) from e
        logger.exception("coupons.repository.replace_for_owner failed user_id=%s", user_id)
        raise
    rows = res.data or []
    if isinstance(rows, list):
        return rows[0] if rows else {**coupon, "user_id": user_id}
    return rows
