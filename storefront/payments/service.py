"""
Cas d'usage 'payments': création de la session de checkout.
Orchestre pricing, coupons (lecture + fidélité), metadata et Stripe.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from storefront import config
from storefront.coupons import repository as coupons_repository
from storefront.coupons import service as coupons_service
from storefront.errors import CouponInvalid, CouponIssuanceFailed, InvalidInput
from . import metadata as meta
from . import pricing
from . import stripe_client

logger = logging.getLogger(__name__)

# module storefront.payments.service
def to_line_items(items: List[Dict[str, Any]], currency: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Construit les line_items Stripe (affichage) à partir des lignes du panier.
    - unit_amount en unités mineures, images si fournie.
    """
    currency = currency or config.CHECKOUT_CURRENCY
    line_items: List[Dict[str, Any]] = []
    for item in items:
        product_data: Dict[str, Any] = {"name": item.get("name") or "Article"}
        if item.get("image"):
            product_data["images"] = [item["image"]]
        line_items.append({
            "quantity": item["quantity"],
            "price_data": {
                "currency": currency,
                "unit_amount": item["unit_price_minor"],
                "product_data": product_data,
            },
        })
    return line_items

def resolve_coupon(
    coupon_code: Optional[str],
    user_id: str,
    items: List[Dict[str, Any]],
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """
    Retourne le coupon applicable, ou None.
    Code inconnu, expiré ou invalide => pas de remise (non bloquant, journalisé).
    """
    code = coupons_service.normalize_code(coupon_code)
    if not code:
        return None
    coupon = coupons_repository.find_active(code, user_id)
    if not coupon:
        logger.warning("payments.checkout coupon ignored (not found) code=%s user_id=%s", code, user_id)
        return None
    try:
        pricing.compute_total(items, coupon, owner_id=user_id, now=now)
    except CouponInvalid as e:
        logger.warning("payments.checkout coupon ignored (%s) code=%s user_id=%s", e.message, code, user_id)
        return None
    return coupon

def maybe_issue_loyalty_coupon(user_id: str, total_amount_minor: int) -> Optional[Dict[str, Any]]:
    """
    Coupon fidélité si total >= LOYALTY_THRESHOLD_MINOR.
    Émis dès la création de la session (même si le paiement est ensuite abandonné).
    Un échec d'émission est journalisé et n'interrompt jamais le checkout.
    """
    if total_amount_minor < config.LOYALTY_THRESHOLD_MINOR:
        return None
    try:
        return coupons_service.issue_loyalty_coupon(user_id)
    except CouponIssuanceFailed:
        logger.exception("payments.checkout loyalty coupon failed user_id=%s total=%s", user_id, total_amount_minor)
        return None

def create_checkout_session(
    user_id: str,
    items: List[Dict[str, Any]],
    coupon_code: Optional[str] = None,
    *,
    success_url: str,
    cancel_url: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Prépare la session Stripe à partir d'un user_id et d'un panier.
    - items: [{"product_id", "name", "unit_price_minor", "quantity", "image"}]
    - success_url et cancel_url sont fournis par l'appelant (vue)
    Retour: {session_id, url, total_amount_minor, total_amount_major, coupon_applied, loyalty_coupon}
    """
    if not items:
        raise InvalidInput("Panier vide")
    pricing.validate_items(items)
    # Vérifié en premier: aucun accès aux stores si le paiement est indisponible
    stripe_client.require_stripe()

    coupon = resolve_coupon(coupon_code, user_id, items, now)
    total = pricing.compute_total(items, coupon, owner_id=user_id, now=now)
    metadata = meta.make_metadata(user_id, items, total, coupon["code"] if coupon else None)

    discounts = []
    if coupon:
        discounts.append({"coupon": stripe_client.create_discount(coupon["discount_percentage"])})

    session = stripe_client.create_session(
        line_items=to_line_items(items),
        success_url=success_url,
        cancel_url=cancel_url,
        metadata=metadata,
        discounts=discounts,
    )
    logger.info(
        "payments.checkout session created id=%s user_id=%s total=%s coupon=%s",
        session.get("id"), user_id, total, coupon["code"] if coupon else None,
    )

    loyalty = maybe_issue_loyalty_coupon(user_id, total)
    return {
        "session_id": session.get("id"),
        "url": session.get("url"),
        "total_amount_minor": total,
        "total_amount_major": pricing.to_major_units(total),
        "coupon_applied": coupon["code"] if coupon else None,
        "loyalty_coupon": loyalty,
    }
