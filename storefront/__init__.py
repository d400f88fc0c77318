"""Storefront checkout: règlement des paiements et cycle de vie des coupons."""
