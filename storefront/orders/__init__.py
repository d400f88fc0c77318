"""Module 'orders': store append-only des commandes réglées."""
