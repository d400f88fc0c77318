"""
Cas d'usage 'coupons': génération du coupon fidélité, lecture et validation.
"""
import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from storefront import config
from storefront.errors import CouponInvalid, CouponIssuanceFailed
from storefront.payments import pricing
from . import repository

logger = logging.getLogger(__name__)

_CODE_ALPHABET = string.ascii_uppercase + string.digits

# module storefront.coupons.service
def generate_coupon_code() -> str:
    """Préfixe fixe + suffixe aléatoire alphanumérique en majuscules (ex: GIFT7K2Q9A)."""
    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(config.COUPON_CODE_SUFFIX_LENGTH))
    return f"{config.COUPON_CODE_PREFIX}{suffix}".upper()

def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()

def issue_loyalty_coupon(user_id: str, *, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Remplace le coupon de l'utilisateur par un nouveau coupon fidélité.
    - discount_percentage = LOYALTY_DISCOUNT_PERCENT, expiration = now + LOYALTY_VALIDITY_DAYS
    - Collision de code: nouvelle tentative avec un autre suffixe (bornée)
    - Soulève CouponIssuanceFailed après épuisement des tentatives ou sur erreur du store
    """
    now = now or datetime.now(timezone.utc)
    expiration = now + timedelta(days=config.LOYALTY_VALIDITY_DAYS)
    attempts = max(1, config.COUPON_ISSUANCE_MAX_ATTEMPTS)
    for attempt in range(1, attempts + 1):
        coupon = {
            "code": generate_coupon_code(),
            "user_id": user_id,
            "discount_percentage": config.LOYALTY_DISCOUNT_PERCENT,
            "is_active": True,
            "expiration_date": expiration.isoformat(),
        }
        try:
            created = repository.replace_for_owner(user_id, coupon)
        except repository.CouponCodeCollision:
            logger.warning("coupons.issue collision code=%s attempt=%s user_id=%s", coupon["code"], attempt, user_id)
            continue
        except Exception as e:
            logger.exception("coupons.issue failed user_id=%s", user_id)
            raise CouponIssuanceFailed() from e
        logger.info("coupons.issue loyalty coupon code=%s user_id=%s", created.get("code"), user_id)
        return created
    raise CouponIssuanceFailed(f"Aucun code libre après {attempts} tentatives")

def get_my_coupon(user_id: str) -> Optional[Dict[str, Any]]:
    """Coupon actif de l'utilisateur (au plus un), sans filtrage d'expiration."""
    return repository.get_for_owner(user_id)

def validate_coupon(code: str, user_id: str, *, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Vérifie qu'un code est utilisable par l'utilisateur.
    - Soulève CouponInvalid (code inconnu, inactif, expiré, autre propriétaire)
    """
    normalized = normalize_code(code)
    if not normalized:
        raise CouponInvalid("Code promo manquant")
    coupon = repository.find_active(normalized, user_id)
    if not coupon:
        raise CouponInvalid("Coupon introuvable")
    pricing.check_coupon(coupon, user_id, now)
    return coupon
