import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from storefront import config
from storefront.utils.security import require_user
from storefront.utils.rate_limit import optional_rate_limit
from storefront.payments import pricing
from storefront.payments import metadata as payments_metadata
from storefront.payments import stripe_client
from storefront.payments import service as payments_service
from storefront.payments import settlement

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])


class CartProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id", "productId"))
    name: str = "Article"
    price: Decimal
    quantity: int = 1
    image: Optional[str] = None


class CheckoutSessionBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    products: List[CartProduct] = Field(default_factory=list, validation_alias=AliasChoices("products", "items"))
    coupon_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("couponCode", "coupon_code"))


class ConfirmBody(BaseModel):
    session_id: str = Field(validation_alias=AliasChoices("sessionId", "session_id"), min_length=1)


def _to_line_item(product: CartProduct) -> Dict[str, Any]:
    return {
        "product_id": product.id,
        "name": product.name,
        "unit_price_minor": pricing.to_minor_units(product.price),
        "quantity": product.quantity,
        "image": product.image,
    }

# module storefront.payments.views
@router.post("/session", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_checkout_session(body: CheckoutSessionBody, user: dict = Depends(require_user)):
    """
    Crée une session Checkout Stripe pour le panier de l'utilisateur authentifié.
    - Entrée JSON: {"products": [{"id", "name", "price", "quantity", "image"}], "couponCode": "..."}
    - Prix en unités majeures, convertis en unités mineures avant tout calcul
    - Erreurs: 400 panier invalide, 503 service de paiement indisponible
    """
    items = [_to_line_item(p) for p in body.products]
    success_url = f"{config.CLIENT_URL}{config.CHECKOUT_SUCCESS_PATH}?session_id={{CHECKOUT_SESSION_ID}}"
    cancel_url = f"{config.CLIENT_URL}{config.CHECKOUT_CANCEL_PATH}"
    result = payments_service.create_checkout_session(
        user.get("id"),
        items,
        body.coupon_code,
        success_url=success_url,
        cancel_url=cancel_url,
    )
    return {
        "sessionId": result["session_id"],
        "url": result["url"],
        "totalAmountMinor": result["total_amount_minor"],
        "totalAmountMajor": result["total_amount_major"],
        "couponApplied": result["coupon_applied"],
    }

@router.post("/confirm")
def confirm_checkout(body: ConfirmBody, user: dict = Depends(require_user)):
    """
    Confirme la session Stripe (retour de redirection) et crée la commande.
    - Idempotent: rappeler avec la même session renvoie la même commande
    - {"success": false, "reason": "not_paid"} si le paiement n'est pas encore confirmé
    - Erreurs: 403 session d'un autre utilisateur, 500 échec d'enregistrement, 503 Stripe indisponible
    """
    result = settlement.confirm_settlement(body.session_id, current_user_id=user.get("id"))
    if not result["success"]:
        return {"success": False, "reason": result["reason"], "paymentStatus": result.get("payment_status")}
    return {
        "success": True,
        "message": "Paiement confirmé, commande créée et coupon désactivé le cas échéant.",
        "orderId": result["order_id"],
    }

@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request):
    """
    Webhook Stripe: checkout.session.completed / async_payment_succeeded déclenchent le même règlement.
    - Signature: stripe_client.parse_event (Stripe-Signature + STRIPE_WEBHOOK_SECRET)
    - Réponses: {"status": "ok", "orderId", "created"} ou {"status": "ignored"}
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    event = await run_in_threadpool(stripe_client.parse_event, payload, sig_header)
    if event.get("type") not in ("checkout.session.completed", "checkout.session.async_payment_succeeded"):
        return {"status": "ignored"}
    session_id = payments_metadata.extract_session_id(event)
    if not session_id:
        return {"status": "ignored"}
    result = await run_in_threadpool(settlement.confirm_settlement, session_id)
    logger.info("payments.webhook session_id=%s result=%s", session_id, result.get("state"))
    if not result["success"]:
        return {"status": "pending", "reason": result["reason"]}
    return {"status": "ok", "orderId": result["order_id"], "created": result["created"]}
