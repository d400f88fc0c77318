"""
Moteur de prix pur (pas de Stripe, pas de DB).

Toute l'arithmétique monétaire se fait en entiers (unités mineures, ex: cents):
- sous-total = somme(unit_price_minor * quantity)
- remise = floor(sous-total * pourcentage / 100), jamais d'arrondi supérieur
- total = max(sous-total - remise, 0)
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from storefront.errors import CouponInvalid, InvalidInput

# module storefront.payments.pricing
def to_minor_units(price: Any) -> int:
    """
    Convertit un prix en unités majeures (str|int|float|Decimal) en unités mineures.
    - Passe par Decimal(str(...)) pour éviter les erreurs binaires des floats (19.99 -> 1999).
    - Soulève InvalidInput si le prix n'est pas un nombre.
    """
    try:
        amount = Decimal(str(price))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput(f"Prix invalide: {price!r}")
    if not amount.is_finite():
        raise InvalidInput(f"Prix invalide: {price!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def to_major_units(amount_minor: int) -> float:
    """Montant lisible (ex: 9000 -> 90.0), pour l'affichage uniquement."""
    return float(Decimal(int(amount_minor)) / 100)

def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse un timestamp ISO (Supabase) ou datetime; None si absent/illisible. Toujours timezone-aware (UTC par défaut)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value).strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

def validate_items(items: List[Dict[str, Any]]) -> None:
    """
    Valide les lignes du panier.
    - InvalidInput si la liste est vide, si unit_price_minor < 0 ou quantity < 1.
    """
    if not items:
        raise InvalidInput("Panier vide")
    for item in items:
        price = item.get("unit_price_minor")
        qty = item.get("quantity")
        if isinstance(price, bool) or not isinstance(price, int):
            raise InvalidInput("unit_price_minor doit être un entier")
        if isinstance(qty, bool) or not isinstance(qty, int):
            raise InvalidInput("quantity doit être un entier")
        if price < 0:
            raise InvalidInput("Prix négatif interdit")
        if qty < 1:
            raise InvalidInput("Quantité invalide (minimum 1)")

def subtotal(items: List[Dict[str, Any]]) -> int:
    validate_items(items)
    return sum(item["unit_price_minor"] * item["quantity"] for item in items)

def check_coupon(coupon: Dict[str, Any], owner_id: Optional[str], now: Optional[datetime] = None) -> None:
    """
    Vérifie qu'un coupon est applicable:
    - is_active == True
    - expiration_date strictement dans le futur
    - user_id identique à l'acheteur
    Soulève CouponInvalid sinon; l'appelant décide d'ignorer ou non le code.
    """
    now = now or datetime.now(timezone.utc)
    if not coupon.get("is_active"):
        raise CouponInvalid("Coupon inactif")
    expires_at = parse_timestamp(coupon.get("expiration_date"))
    if expires_at is None or expires_at <= now:
        raise CouponInvalid("Coupon expiré")
    if not owner_id or str(coupon.get("user_id")) != str(owner_id):
        raise CouponInvalid("Coupon appartenant à un autre utilisateur")
    percent = coupon.get("discount_percentage")
    if isinstance(percent, bool) or not isinstance(percent, int) or not 0 <= percent <= 100:
        raise CouponInvalid("Pourcentage de remise invalide")

def discount_amount(total_minor: int, discount_percentage: int) -> int:
    """Remise arrondie à l'inférieur pour ne jamais surfacturer (9999 à 10% -> 999)."""
    return (int(total_minor) * int(discount_percentage)) // 100

def compute_total(
    items: List[Dict[str, Any]],
    coupon: Optional[Dict[str, Any]] = None,
    *,
    owner_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Calcule le montant à débiter (unités mineures).
    - items: [{"unit_price_minor": int, "quantity": int, ...}]
    - coupon: ligne `coupons` optionnelle, validée via check_coupon
    - Déterministe: mêmes entrées => même sortie.
    """
    total = subtotal(items)
    if coupon is None:
        return total
    check_coupon(coupon, owner_id, now)
    total -= discount_amount(total, coupon["discount_percentage"])
    return max(total, 0)
