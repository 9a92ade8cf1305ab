"""Database models."""

from tourney.models.base import Base, TimestampMixin, UUIDMixin
from tourney.models.ledger import LedgerEntry, LedgerEntryType
from tourney.models.structure import PayoutStructureRecord, StructureRecord
from tourney.models.tournament import Tournament, TournamentRegistration

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    # Structures
    "StructureRecord",
    "PayoutStructureRecord",
    # Tournament
    "Tournament",
    "TournamentRegistration",
    # Ledger
    "LedgerEntry",
    "LedgerEntryType",
]
