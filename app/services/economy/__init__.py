"""Point economy module."""

from app.services.economy.ledger import credit, debit, get_balance, try_debit

__all__ = ["credit", "debit", "get_balance", "try_debit"]
