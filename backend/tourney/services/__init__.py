"""Service layer."""

from tourney.services.ledger import LedgerService

__all__ = ["LedgerService"]
