"""Member financial ledger.

Every balance movement is one row. Tournament wins are unique per
(tournament, member, type) so a re-run of settlement cannot credit twice.
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tourney.models.base import Base, TimestampMixin, UUIDMixin


class LedgerEntryType(str, Enum):
    """Ledger entry types."""

    WIN = "win"
    BUY_IN = "buy_in"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"

    @property
    def sign(self) -> int:
        """+1 for credits, -1 for debits."""
        return 1 if self in (LedgerEntryType.WIN, LedgerEntryType.DEPOSIT) else -1


class LedgerEntry(Base, UUIDMixin, TimestampMixin):
    """One credit or debit on a member balance."""

    __tablename__ = "ledger_entries"
    __table_args__ = (
        UniqueConstraint(
            "tournament_id",
            "member_id",
            "entry_type",
            name="uq_ledger_tournament_member_type",
        ),
    )

    member_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    tournament_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        index=True,
        comment="Related tournament for win/buy-in entries",
    )
    entry_type: Mapped[str] = mapped_column(String(20), nullable=False)

    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        comment="Always positive; direction comes from entry_type",
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @property
    def signed_amount(self) -> Decimal:
        return Decimal(self.amount) * LedgerEntryType(self.entry_type).sign

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.id[:8]}... "
            f"type={self.entry_type} amount={self.amount}>"
        )
