"""
Taxonomie fermée des erreurs du checkout.

Chaque erreur porte un code stable (`code`), un message lisible (`message`)
et le statut HTTP associé (`status_code`). Les handlers FastAPI
(storefront.app_setup.exceptions) les rendent en JSON {"detail", "code"}.
"""
from typing import Any, Dict, Optional


class CheckoutError(Exception):
    status_code = 500
    default_code = "checkout_error"
    default_message = "Erreur de checkout"

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class InvalidInput(CheckoutError):
    """Erreur de l'appelant (panier vide, prix négatif, quantité < 1...)."""
    status_code = 400
    default_code = "invalid_input"
    default_message = "Requête invalide"


class CouponInvalid(CheckoutError):
    """Coupon inactif, expiré ou appartenant à un autre utilisateur."""
    status_code = 400
    default_code = "coupon_invalid"
    default_message = "Coupon invalide ou expiré"


class SessionOwnershipMismatch(CheckoutError):
    status_code = 403
    default_code = "session_forbidden"
    default_message = "Session appartenant à un autre utilisateur"


class PaymentServiceUnavailable(CheckoutError):
    """Prestataire de paiement injoignable ou mal configuré (réessayable)."""
    status_code = 503
    default_code = "payment_service_unavailable"
    default_message = "Service de paiement indisponible"


class CouponIssuanceFailed(CheckoutError):
    """Échec de création du coupon fidélité (journalisé, ne bloque pas le checkout)."""
    status_code = 500
    default_code = "coupon_issuance_failed"
    default_message = "Impossible de générer le coupon fidélité"


class SettlementPersistenceError(CheckoutError):
    """
    Écriture de la commande impossible après désactivation du coupon.
    Fenêtre d'échec partiel: la requête peut être rejouée (idempotence par session).
    """
    status_code = 500
    default_code = "settlement_persistence_error"
    default_message = "Paiement confirmé mais enregistrement de la commande impossible"

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None, session_id: Optional[str] = None):
        super().__init__(message, code=code)
        self.session_id = session_id
