"""
Sérialisation/désérialisation des métadonnées Stripe d'une session de checkout.

La session Stripe est le seul support d'état entre la création du checkout et
la confirmation: elle doit suffire à reconstruire la commande sans relire le
catalogue. Format (Dict[str, str], transmis tel quel par Stripe):
    user_id, coupon_code ("" si aucun), total_amount_minor,
    items_chunks = n, items_0 .. items_{n-1}
Les items sont un JSON compact [{"id", "quantity", "unit_price_minor"}]
découpé en morceaux de 500 caractères (limite Stripe par valeur, 50 clés max).
"""
import json
from typing import Any, Dict, List, Optional, Tuple

from storefront.errors import InvalidInput

MAX_VALUE_LENGTH = 500
MAX_KEYS = 50
_FIXED_KEYS = ("user_id", "coupon_code", "total_amount_minor", "items_chunks")

# module storefront.payments.metadata
def snapshot_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Fige {id, quantity, unit_price_minor} pour chaque ligne (ordre conservé)."""
    return [
        {
            "id": str(item.get("product_id") or item.get("id") or ""),
            "quantity": int(item["quantity"]),
            "unit_price_minor": int(item["unit_price_minor"]),
        }
        for item in items
    ]

def make_metadata(
    user_id: str,
    items: List[Dict[str, Any]],
    total_amount_minor: int,
    coupon_code: Optional[str] = None,
) -> Dict[str, str]:
    """
    Construit les métadonnées de session.
    - Soulève InvalidInput si le panier dépasse la capacité des métadonnées Stripe.
    """
    payload = json.dumps(snapshot_items(items), separators=(",", ":"))
    chunks = [payload[i:i + MAX_VALUE_LENGTH] for i in range(0, len(payload), MAX_VALUE_LENGTH)] or ["[]"]
    if len(chunks) + len(_FIXED_KEYS) > MAX_KEYS:
        raise InvalidInput("Panier trop volumineux pour une seule session de paiement")
    metadata = {
        "user_id": str(user_id),
        "coupon_code": coupon_code or "",
        "total_amount_minor": str(int(total_amount_minor)),
        "items_chunks": str(len(chunks)),
    }
    for index, chunk in enumerate(chunks):
        metadata[f"items_{index}"] = chunk
    return metadata

def parse_items(meta: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Recompose la liste d'items depuis les morceaux items_0..items_{n-1}.
    - Soulève InvalidInput si un morceau manque ou si le JSON est illisible.
    """
    try:
        count = int(meta.get("items_chunks") or 0)
    except (TypeError, ValueError):
        raise InvalidInput("Métadonnées de session illisibles (items_chunks)")
    if count <= 0:
        raise InvalidInput("Métadonnées de session sans articles")
    parts = []
    for index in range(count):
        part = meta.get(f"items_{index}")
        if part is None:
            raise InvalidInput(f"Métadonnées de session incomplètes (items_{index})")
        parts.append(str(part))
    try:
        raw_items = json.loads("".join(parts))
    except ValueError:
        raise InvalidInput("Métadonnées de session illisibles (items)")
    if not isinstance(raw_items, list) or not raw_items:
        raise InvalidInput("Métadonnées de session sans articles")
    items = []
    for raw in raw_items:
        try:
            items.append({
                "product_id": str(raw["id"]),
                "quantity": int(raw["quantity"]),
                "unit_price_minor": int(raw["unit_price_minor"]),
            })
        except (KeyError, TypeError, ValueError):
            raise InvalidInput("Métadonnées de session illisibles (article)")
    return items

def extract_metadata_from_session(session: Dict[str, Any]) -> Tuple[str, Optional[str], List[Dict[str, Any]]]:
    """
    Extrait (user_id, coupon_code, items) depuis une session Stripe Checkout.
    - coupon_code vaut None si vide
    - Soulève InvalidInput si user_id est absent (session non créée par ce service)
    """
    meta = (session or {}).get("metadata") or {}
    user_id = (meta.get("user_id") or "").strip()
    if not user_id:
        raise InvalidInput("Métadonnées de session sans utilisateur")
    coupon_code = (meta.get("coupon_code") or "").strip() or None
    return user_id, coupon_code, parse_items(meta)

def extract_session_id(event: Dict[str, Any]) -> Optional[str]:
    """Identifiant de session depuis un event Stripe (webhook checkout.session.*)."""
    data_obj = (event or {}).get("data", {}).get("object", {}) if isinstance(event, dict) else {}
    return (data_obj or {}).get("id")
