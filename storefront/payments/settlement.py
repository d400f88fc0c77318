"""
Règlement d'une session de checkout (confirmation de paiement).

Machine à états:
    PENDING -> PROCESSOR_CONFIRMED -> ORDER_CREATED (terminal)
    PENDING -> NOT_PAID (terminal, sans effet)

La commande est créée au plus une fois par session (idempotence par
stripe_session_id). Coupon et commande vivent dans deux tables sans
transaction commune: si l'insert de la commande échoue après la
désactivation du coupon, SettlementPersistenceError est levée et la
requête peut être rejouée telle quelle.
"""
import logging
from typing import Any, Dict, Optional

from storefront.coupons import repository as coupons_repository
from storefront.errors import SessionOwnershipMismatch, SettlementPersistenceError
from storefront.orders import repository as orders_repository
from . import metadata as meta
from . import stripe_client

logger = logging.getLogger(__name__)

PENDING = "PENDING"
PROCESSOR_CONFIRMED = "PROCESSOR_CONFIRMED"
ORDER_CREATED = "ORDER_CREATED"
NOT_PAID = "NOT_PAID"

# Session à 0 (coupon 100%): Stripe la clôt en "no_payment_required"
SETTLED_PAYMENT_STATUSES = ("paid", "no_payment_required")

# module storefront.payments.settlement
def build_order(session_id: str, session: Dict[str, Any], user_id: str, items) -> Dict[str, Any]:
    """
    Commande reconstruite uniquement depuis la session:
    - items: snapshot des métadonnées (jamais le catalogue courant)
    - total_amount_minor: montant payé rapporté par Stripe (fait foi)
    """
    return {
        "user_id": user_id,
        "items": items,
        "total_amount_minor": int(session.get("amount_total") or 0),
        "stripe_session_id": session_id,
    }

def confirm_settlement(session_id: str, *, current_user_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Confirme la session Stripe et crée la commande (exactement une fois).
    - current_user_id: si fourni, la session doit appartenir à cet utilisateur (403 sinon)
    Retour:
      {"success": True, "order_id": ..., "created": bool, "state": ORDER_CREATED}
      {"success": False, "reason": "not_paid", "payment_status": ..., "state": NOT_PAID}
    """
    logger.info("payments.settlement state=%s session_id=%s", PENDING, session_id)
    session = stripe_client.get_session(session_id)

    payment_status = session.get("payment_status") or ""
    if payment_status not in SETTLED_PAYMENT_STATUSES:
        logger.info("payments.settlement not paid session_id=%s payment_status=%s", session_id, payment_status)
        return {"success": False, "reason": "not_paid", "payment_status": payment_status, "state": NOT_PAID}

    user_id, coupon_code, items = meta.extract_metadata_from_session(session)
    logger.info("payments.settlement state=%s session_id=%s payment_status=%s", PROCESSOR_CONFIRMED, session_id, payment_status)
    if current_user_id and user_id != current_user_id:
        raise SessionOwnershipMismatch()

    existing = orders_repository.find_by_session_id(session_id)
    if existing:
        logger.info("payments.settlement already settled session_id=%s order_id=%s", session_id, existing.get("id"))
        return {"success": True, "order_id": existing.get("id"), "created": False, "state": ORDER_CREATED}

    try:
        if coupon_code and not coupons_repository.deactivate(coupon_code, user_id):
            # coupon déjà consommé ou retiré: la remise a tout de même été accordée
            logger.warning(
                "payments.settlement coupon already inactive, requires reconciliation "
                "session_id=%s code=%s metadata=%s",
                session_id, coupon_code, session.get("metadata"),
            )
        created, order = orders_repository.insert_if_absent(build_order(session_id, session, user_id, items))
    except Exception as e:
        logger.exception(
            "payments.settlement persistence failed session_id=%s metadata=%s",
            session_id, session.get("metadata"),
        )
        raise SettlementPersistenceError(session_id=session_id) from e

    if created:
        logger.info(
            "payments.settlement order created session_id=%s order_id=%s user_id=%s total=%s",
            session_id, order.get("id"), user_id, order.get("total_amount_minor"),
        )
    return {"success": True, "order_id": order.get("id"), "created": created, "state": ORDER_CREATED}
