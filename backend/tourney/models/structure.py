"""Blind structure and payout structure configuration rows."""

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tourney.models.base import Base, TimestampMixin, UUIDMixin
from tourney.tournament.models import (
    PayoutAllocation,
    PayoutStructure,
    StructureItem,
    TournamentStructure,
)


class StructureRecord(Base, UUIDMixin, TimestampMixin):
    """Blind structure (levels and breaks)."""

    __tablename__ = "tournament_structures"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    starting_chips: Mapped[int] = mapped_column(default=0, nullable=False)
    rebuy_limit: Mapped[int] = mapped_column(default=0, nullable=False)
    last_rebuy_level: Mapped[int] = mapped_column(default=0, nullable=False)

    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    """
    Items structure:
    [
        {"type": "Level", "duration": 20, "level": 1, "small_blind": 100, "big_blind": 200, "ante": 0},
        {"type": "Break", "duration": 10},
        ...
    ]
    """

    def to_structure(self) -> TournamentStructure:
        return TournamentStructure(
            id=self.id,
            name=self.name,
            starting_chips=self.starting_chips,
            rebuy_limit=self.rebuy_limit,
            last_rebuy_level=self.last_rebuy_level,
            items=tuple(StructureItem.from_dict(item) for item in self.items or ()),
        )


class PayoutStructureRecord(Base, UUIDMixin, TimestampMixin):
    """Payout model: weighted allocations."""

    __tablename__ = "payout_structures"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    allocations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    """
    Allocations structure:
    [
        {"name": "Main Pot", "type": "CustomMatrix", "percent": 95,
         "rules": [{"min_players": 2, "max_players": 10, "places_paid": 3, "percentages": [50, 30, 20]}]},
        {"name": "High Hand", "type": "ICM", "percent": 5, "rules": []},
    ]
    """

    def to_payout_structure(self) -> PayoutStructure:
        return PayoutStructure(
            id=self.id,
            name=self.name,
            allocations=tuple(
                PayoutAllocation.from_dict(a) for a in self.allocations or ()
            ),
        )
