from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from storefront.utils.security import require_user
from storefront.utils.rate_limit import optional_rate_limit
from storefront.coupons import service as coupons_service

router = APIRouter(prefix="/api/v1/coupons", tags=["Coupons API"])


class ValidateCouponBody(BaseModel):
    code: str


def _public(coupon: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "code": coupon.get("code"),
        "discountPercentage": coupon.get("discount_percentage"),
        "expirationDate": coupon.get("expiration_date"),
        "isActive": bool(coupon.get("is_active")),
    }

# module storefront.coupons.views
@router.get("")
def get_my_coupon(user: dict = Depends(require_user)):
    """Coupon actif de l'utilisateur authentifié, ou null."""
    coupon = coupons_service.get_my_coupon(user.get("id"))
    return _public(coupon) if coupon else None

@router.post("/validate", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
def validate_coupon(body: ValidateCouponBody, user: dict = Depends(require_user)):
    """
    Vérifie qu'un code est utilisable avant le checkout.
    - 400 (coupon_invalid) si inconnu, inactif, expiré ou d'un autre utilisateur
    """
    coupon = coupons_service.validate_coupon(body.code, user.get("id"))
    return {
        "message": "Coupon valide",
        "code": coupon.get("code"),
        "discountPercentage": coupon.get("discount_percentage"),
    }
