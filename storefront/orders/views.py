from typing import Any, Dict

from fastapi import APIRouter, Depends

from storefront.utils.security import require_user
from storefront.orders.service import get_user_orders

router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])

@router.get("")
def list_my_orders(user: Dict[str, Any] = Depends(require_user)):
    """Commandes de l'utilisateur authentifié (plus récentes d'abord)."""
    return {"orders": get_user_orders(user.get("id"))}
