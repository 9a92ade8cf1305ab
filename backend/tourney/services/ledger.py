"""Ledger Service for member balance entries.

Features:
- Idempotent tournament win credits keyed by (tournament, member, WIN)
- Balance computed from the entry history
- Runs inside the caller's transaction (flush only, never commit)
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.logging_config import get_logger
from tourney.models.ledger import LedgerEntry, LedgerEntryType
from tourney.utils.errors import LedgerError

logger = get_logger(__name__)


class LedgerService:
    """Ledger service for member balance operations.

    The service never commits. Settlement writes ledger entries in the same
    transaction as ranks and prizes, so either all of them land or none do.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_entry(
        self,
        member_id: str,
        tournament_id: str,
        entry_type: LedgerEntryType,
    ) -> LedgerEntry | None:
        result = await self.session.execute(
            select(LedgerEntry).where(
                LedgerEntry.member_id == member_id,
                LedgerEntry.tournament_id == tournament_id,
                LedgerEntry.entry_type == entry_type.value,
            )
        )
        return result.scalar_one_or_none()

    async def credit_win(
        self,
        member_id: str,
        tournament_id: str,
        amount: Decimal,
        *,
        description: str | None = None,
    ) -> LedgerEntry | None:
        """Credit a tournament prize.

        Args:
            member_id: Member ID
            tournament_id: Tournament the prize comes from
            amount: Prize amount (> 0)
            description: Optional description

        Returns:
            The new entry, or None if this win was already credited

        Raises:
            LedgerError: If the amount is not positive or the write fails
        """
        if amount <= 0:
            raise LedgerError(
                "Win amount must be positive",
                details={"member_id": member_id, "amount": str(amount)},
            )

        existing = await self.find_entry(member_id, tournament_id, LedgerEntryType.WIN)
        if existing is not None:
            logger.info(
                "ledger_win_already_credited",
                member_id=member_id,
                tournament_id=tournament_id,
                entry_id=existing.id,
            )
            return None

        entry = LedgerEntry(
            member_id=member_id,
            tournament_id=tournament_id,
            entry_type=LedgerEntryType.WIN.value,
            amount=amount,
            description=description,
        )
        self.session.add(entry)

        try:
            await self.session.flush()
        except IntegrityError as e:
            raise LedgerError(
                f"Could not write win entry for member {member_id}",
                details={"member_id": member_id, "tournament_id": tournament_id},
            ) from e

        logger.info(
            "ledger_win_credited",
            member_id=member_id,
            tournament_id=tournament_id,
            amount=str(amount),
        )
        return entry

    async def get_balance(self, member_id: str) -> Decimal:
        """Member balance: credits minus debits over all entries."""
        result = await self.session.execute(
            select(LedgerEntry).where(LedgerEntry.member_id == member_id)
        )
        return sum(
            (entry.signed_amount for entry in result.scalars()),
            Decimal(0),
        )

    async def entries_for_tournament(self, tournament_id: str) -> list[LedgerEntry]:
        result = await self.session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.tournament_id == tournament_id)
            .order_by(LedgerEntry.created_at, LedgerEntry.id)
        )
        return list(result.scalars())
