"""
Adaptateur Stripe: centralise les appels, la configuration et la traduction des erreurs Stripe.

Aucune exception Stripe ne sort de ce module: elles sont converties en
PaymentServiceUnavailable / InvalidInput avec un code stable.
"""
import logging
from typing import Any, Dict, List, Optional

import stripe

from storefront import config
from storefront.errors import CheckoutError, InvalidInput, PaymentServiceUnavailable

logger = logging.getLogger(__name__)

# module storefront.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key, le timeout HTTP et les retries réseau.
    - Soulève PaymentServiceUnavailable si STRIPE_SECRET_KEY est absent.
    """
    if not config.STRIPE_SECRET_KEY:
        raise PaymentServiceUnavailable(
            "Service de paiement non configuré (STRIPE_SECRET_KEY manquant)",
            code="processor_not_configured",
        )
    if stripe.api_key != config.STRIPE_SECRET_KEY:
        stripe.api_key = config.STRIPE_SECRET_KEY
        stripe.max_network_retries = config.STRIPE_MAX_NETWORK_RETRIES
        stripe.default_http_client = stripe.RequestsClient(timeout=config.STRIPE_TIMEOUT_SECONDS)
    return stripe

def translate_stripe_error(exc: Exception) -> CheckoutError:
    """
    Convertit une erreur Stripe en erreur de la taxonomie.
    - Connexion/timeout -> processor_unreachable (503)
    - Authentification/permission -> processor_misconfigured (503)
    - Rate limit -> processor_busy (503)
    - Requête invalide -> processor_rejected_request (400)
    - Autres -> processor_error (503)
    """
    if isinstance(exc, stripe.APIConnectionError):
        return PaymentServiceUnavailable("Impossible de joindre le service de paiement", code="processor_unreachable")
    if isinstance(exc, (stripe.AuthenticationError, stripe.PermissionError)):
        return PaymentServiceUnavailable("Service de paiement mal configuré", code="processor_misconfigured")
    if isinstance(exc, stripe.RateLimitError):
        return PaymentServiceUnavailable("Service de paiement surchargé, réessayez", code="processor_busy")
    if isinstance(exc, stripe.InvalidRequestError):
        return InvalidInput("Requête refusée par le service de paiement", code="processor_rejected_request")
    return PaymentServiceUnavailable("Erreur du service de paiement", code="processor_error")

def _as_dict(obj: Any) -> Dict[str, Any]:
    # StripeObject -> dict récursif (metadata incluses); les dicts (tests) passent tels quels
    if isinstance(obj, stripe.StripeObject):
        return obj.to_dict()
    return dict(obj)

def _call(action: str, fn, *args, **kwargs) -> Dict[str, Any]:
    try:
        return _as_dict(fn(*args, **kwargs))
    except stripe.StripeError as e:
        logger.warning("stripe.%s failed type=%s code=%s", action, type(e).__name__, getattr(e, "code", None))
        raise translate_stripe_error(e) from e

def create_discount(percent_off: int) -> str:
    """Crée un coupon Stripe à usage unique (duration="once") et retourne son id."""
    require_stripe()
    coupon = _call("create_discount", stripe.Coupon.create, percent_off=int(percent_off), duration="once")
    return coupon["id"]

def create_session(
    *,
    line_items: List[Dict[str, Any]],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, str],
    discounts: Optional[List[Dict[str, Any]]] = None,
    mode: str = "payment",
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout.
    - line_items: lignes Stripe (price_data/quantity)
    - discounts: [{"coupon": "<id>"}] si un coupon s'applique
    - metadata: voir storefront.payments.metadata.make_metadata
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
    """
    require_stripe()
    params: Dict[str, Any] = {
        "line_items": line_items,
        "mode": mode,
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
        "payment_method_types": ["card"],
    }
    if discounts:
        params["discounts"] = discounts
    return _call("create_session", stripe.checkout.Session.create, **params)

def get_session(session_id: str) -> Dict[str, Any]:
    """
    Récupère une session Stripe Checkout par son identifiant.
    Retour: dict session incluant "id", "payment_status", "amount_total", "metadata".
    """
    require_stripe()
    return _call("get_session", stripe.checkout.Session.retrieve, session_id)

def parse_event(payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
    """
    Valide un événement Stripe signé (webhook) et le retourne sous forme de dict.
    - Soulève InvalidInput si la signature ou le payload est invalide.
    """
    require_stripe()
    if not config.STRIPE_WEBHOOK_SECRET:
        raise PaymentServiceUnavailable("Secret webhook Stripe manquant", code="processor_not_configured")
    try:
        event = stripe.Webhook.construct_event(payload, sig_header or "", config.STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("stripe.webhook invalid signature or payload: %s", type(e).__name__)
        raise InvalidInput("Webhook Stripe invalide", code="invalid_webhook") from e
    return _as_dict(event)
