"""
Module 'payments' (feature-first): point d'entrée public.
Réunit moteur de prix, metadata Stripe, client Stripe, création de session et règlement.
"""

from .pricing import compute_total, to_minor_units, to_major_units, discount_amount
from .metadata import make_metadata, extract_metadata_from_session, parse_items

__all__ = [
    # pricing
    "compute_total",
    "to_minor_units",
    "to_major_units",
    "discount_amount",
    # metadata
    "make_metadata",
    "extract_metadata_from_session",
    "parse_items",
]
