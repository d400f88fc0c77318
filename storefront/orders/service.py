from typing import Any, Dict, List

from storefront.payments.pricing import to_major_units
from .repository import list_for_user

def get_user_orders(user_id: str) -> List[Dict[str, Any]]:
    """
    Commandes d'un utilisateur sous une forme normalisée pour le front.
    - Ajoute total_amount (unités majeures) à côté de total_amount_minor.
    """
    orders: List[Dict[str, Any]] = []
    for row in list_for_user(user_id):
        total_minor = int(row.get("total_amount_minor") or 0)
        orders.append({
            "id": row.get("id"),
            "items": row.get("items") or [],
            "total_amount_minor": total_minor,
            "total_amount": to_major_units(total_minor),
            "stripe_session_id": row.get("stripe_session_id"),
            "created_at": row.get("created_at"),
        })
    return orders
