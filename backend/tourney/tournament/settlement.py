"""
Tournament Settlement Service.

토너먼트 종료 시 최종 칩 카운트로 순위와 상금을 확정.

Features:
- 칩 밸런스 게이트 (발행 칩 != 집계 칩 이면 정산 거부, 아무것도 변경하지 않음)
- 칩 수 기준 순위 (동률은 등록 순서 유지)
- 다중 분배 모델 (CustomMatrix / ICM / ChipEV) 가중 합산
- 단위 반올림 후 상금풀과 정확히 일치
- 원자적 트랜잭션 처리 (순위, 상금, 상태, 원장 기록을 한 번에 커밋)

Usage:
    settlement = TournamentSettlement(session)
    summary = await settlement.settle_tournament(tournament_id)
"""

import asyncio
from collections import Counter
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tourney.config import Settings, get_settings
from tourney.logging_config import bind_context, get_logger, unbind_context
from tourney.models.base import utcnow
from tourney.models.structure import PayoutStructureRecord, StructureRecord
from tourney.models.tournament import Tournament
from tourney.services.ledger import LedgerService
from tourney.utils.errors import (
    AlreadySettledError,
    ChipImbalanceError,
    DuplicateRegistrationError,
    InvalidTournamentStatus,
    PayoutError,
    SettlementCancelledError,
    TournamentNotFoundError,
)
from .equity import ICM_MAX_PLAYERS
from .models import (
    ChipBalance,
    PayoutStructure,
    Registration,
    SettlementResult,
    SettlementSummary,
    TournamentInfo,
    TournamentStatus,
    TournamentStructure,
    transition_status,
)
from .payouts import combine_allocations, validate_payout_rules
from .rounding import reconcile_amounts, to_decimal

logger = get_logger(__name__)


# =============================================================================
# Pure calculation
# =============================================================================


def active_registrations(registrations: Iterable[Registration]) -> List[Registration]:
    return [r for r in registrations if not r.is_cancelled]


def check_chip_balance(
    registrations: Iterable[Registration], starting_chips: int
) -> ChipBalance:
    """Compare chips issued by buy-ins with chips counted at the end."""
    active = active_registrations(registrations)
    return ChipBalance(
        chips_issued=sum(r.buy_in_count for r in active) * starting_chips,
        chips_counted=sum(r.final_chip_count for r in active),
    )


def check_unique_members(registrations: Iterable[Registration]) -> None:
    """Active registrations must belong to distinct members."""
    counts = Counter(r.member_id for r in active_registrations(registrations))
    duplicates = sorted(member for member, count in counts.items() if count > 1)
    if duplicates:
        raise DuplicateRegistrationError(duplicates)


def calculate_prize_pool(
    registrations: Iterable[Registration], buy_in: Decimal
) -> Decimal:
    active = active_registrations(registrations)
    return sum(r.buy_in_count for r in active) * to_decimal(buy_in)


def rank_registrations(registrations: Iterable[Registration]) -> List[Registration]:
    """Non-cancelled registrations by final chips, descending.

    The sort is stable: equal chip counts keep their input order
    (registration order when loaded from the database).
    """
    return sorted(
        active_registrations(registrations),
        key=lambda r: r.final_chip_count,
        reverse=True,
    )


def _check_payout_rules(
    payout_structure: Optional[PayoutStructure], strict: bool
) -> None:
    if not payout_structure:
        return

    for allocation in payout_structure.allocations:
        if not allocation.rules:
            continue
        validation = validate_payout_rules(allocation.rules)
        if validation.is_valid:
            continue
        if strict:
            raise PayoutError(
                validation.error or "Invalid payout rules",
                details={
                    "payout_structure_id": payout_structure.id,
                    "allocation": allocation.name,
                },
            )
        logger.warning(
            "payout_rules_invalid",
            payout_structure_id=payout_structure.id,
            allocation=allocation.name,
            error=validation.error,
        )


def calculate_results(
    tournament: TournamentInfo,
    registrations: Sequence[Registration],
    payout_structure: Optional[PayoutStructure],
    *,
    rounding_unit: Decimal = Decimal("1"),
    icm_max_players: int = ICM_MAX_PLAYERS,
    strict_validation: bool = False,
    check_balance: bool = True,
) -> List[SettlementResult]:
    """Rank players and compute prizes.

    Args:
        tournament: Tournament metadata (buy-in, starting chips)
        registrations: All registrations, cancelled included
        payout_structure: Distribution models; None means winner takes all
        rounding_unit: Prizes are rounded to multiples of this
        icm_max_players: Largest field computed with exact ICM
        strict_validation: Raise on payout rules that do not sum to 100%
        check_balance: Enforce the chip balance gate

    Returns:
        One result per non-cancelled registration, in rank order

    Raises:
        ChipImbalanceError: Counted chips differ from chips issued
        DuplicateRegistrationError: A member has two active registrations
        PayoutError: Invalid payout configuration
    """
    if check_balance:
        balance = check_chip_balance(registrations, tournament.starting_chips)
        if not balance.is_balanced:
            raise ChipImbalanceError(balance.chips_issued, balance.chips_counted)

    check_unique_members(registrations)
    _check_payout_rules(payout_structure, strict_validation)

    ranked = rank_registrations(registrations)
    if not ranked:
        return []

    pool = calculate_prize_pool(registrations, tournament.buy_in)
    chip_counts = [r.final_chip_count for r in ranked]
    percentages = combine_allocations(
        payout_structure, chip_counts, icm_max_players=icm_max_players
    )

    player_count = len(ranked)
    if len(percentages) > player_count:
        logger.warning(
            "payout_places_exceed_players",
            places=len(percentages),
            players=player_count,
            dropped_percent=sum(percentages[player_count:]),
        )
    percentages = (percentages + [0.0] * player_count)[:player_count]

    raw_amounts = [pool * to_decimal(pct) / 100 for pct in percentages]
    prizes = reconcile_amounts(raw_amounts, rounding_unit, pool)

    return [
        SettlementResult(
            registration_id=reg.id,
            member_id=reg.member_id,
            rank=index + 1,
            prize=prize,
            final_chip_count=reg.final_chip_count,
            percentage=round(pct, 4),
        )
        for index, (reg, prize, pct) in enumerate(zip(ranked, prizes, percentages))
    ]


def preview_payouts(
    tournament: TournamentInfo,
    registrations: Sequence[Registration],
    payout_structure: Optional[PayoutStructure],
    **kwargs,
) -> List[SettlementResult]:
    """Estimated prizes while chip counts are still being entered."""
    return calculate_results(
        tournament, registrations, payout_structure, check_balance=False, **kwargs
    )


# =============================================================================
# Orchestration
# =============================================================================


class TournamentSettlement:
    """
    토너먼트 정산 서비스.

    칩 밸런스를 확인하고 순위/상금을 계산한 뒤, 등록 정보와 토너먼트 상태,
    원장 WIN 기록을 하나의 트랜잭션으로 커밋합니다.
    """

    def __init__(
        self,
        session: AsyncSession,
        ledger: Optional[LedgerService] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize settlement service.

        Args:
            session: Database session (the service commits or rolls back)
            ledger: Ledger service; defaults to one bound to ``session``
            settings: Settings override
        """
        self.session = session
        self.ledger = ledger or LedgerService(session)
        self.settings = settings or get_settings()

    async def load_tournament(
        self, tournament_id: str, *, for_update: bool = False
    ) -> Tournament:
        stmt = (
            select(Tournament)
            .where(Tournament.id == tournament_id)
            .options(selectinload(Tournament.registrations))
        )
        if for_update:
            stmt = stmt.with_for_update()

        tournament = (await self.session.execute(stmt)).scalar_one_or_none()
        if tournament is None:
            raise TournamentNotFoundError(tournament_id)
        return tournament

    async def load_structures(
        self, tournament: Tournament
    ) -> Tuple[Optional[TournamentStructure], Optional[PayoutStructure]]:
        structure = None
        payout_structure = None
        if tournament.structure_id:
            record = await self.session.get(StructureRecord, tournament.structure_id)
            structure = record.to_structure() if record else None
        if tournament.payout_structure_id:
            record = await self.session.get(
                PayoutStructureRecord, tournament.payout_structure_id
            )
            payout_structure = record.to_payout_structure() if record else None
        return structure, payout_structure

    def _calculation_options(self) -> dict:
        return {
            "rounding_unit": self.settings.payout_rounding_unit,
            "icm_max_players": self.settings.icm_max_players,
            "strict_validation": self.settings.strict_payout_validation,
        }

    async def chip_balance(self, tournament_id: str) -> ChipBalance:
        tournament = await self.load_tournament(tournament_id)
        return check_chip_balance(
            [r.to_registration() for r in tournament.registrations],
            tournament.starting_chips,
        )

    async def preview(self, tournament_id: str) -> List[SettlementResult]:
        """예상 상금 (칩 밸런스 게이트 없이)."""
        tournament = await self.load_tournament(tournament_id)
        _, payout_structure = await self.load_structures(tournament)
        return preview_payouts(
            tournament.to_info(),
            [r.to_registration() for r in tournament.registrations],
            payout_structure,
            **self._calculation_options(),
        )

    @staticmethod
    def _check_cancelled(
        cancel_event: Optional[asyncio.Event], tournament_id: str
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise SettlementCancelledError(tournament_id)

    async def settle_tournament(
        self,
        tournament_id: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SettlementSummary:
        """
        토너먼트 정산 (원자적 처리).

        Args:
            tournament_id: Tournament ID
            cancel_event: Set it to abort before anything is committed

        Returns:
            SettlementSummary with per-registration results

        Raises:
            TournamentNotFoundError: Unknown tournament
            AlreadySettledError: Tournament is already completed
            InvalidTournamentStatus: Tournament is not in progress
            ChipImbalanceError: Chip counts do not balance
            DuplicateRegistrationError: A member has two active registrations
            SettlementCancelledError: ``cancel_event`` was set
        """
        bind_context(tournament_id=tournament_id)
        try:
            return await self._settle(tournament_id, cancel_event)
        finally:
            unbind_context("tournament_id")

    async def _settle(
        self,
        tournament_id: str,
        cancel_event: Optional[asyncio.Event],
    ) -> SettlementSummary:
        logger.info("settlement_started")

        try:
            tournament = await self.load_tournament(tournament_id, for_update=True)
            status = tournament.status_enum

            if status is TournamentStatus.COMPLETED:
                raise AlreadySettledError(tournament_id)
            if status is not TournamentStatus.IN_PROGRESS:
                raise InvalidTournamentStatus(
                    f"Tournament must be in progress to settle (is {status.value})",
                    current=status.value,
                    expected=TournamentStatus.IN_PROGRESS.value,
                )

            info = tournament.to_info()
            registrations = [r.to_registration() for r in tournament.registrations]
            _, payout_structure = await self.load_structures(tournament)

            results = calculate_results(
                info,
                registrations,
                payout_structure,
                **self._calculation_options(),
            )
            self._check_cancelled(cancel_event, tournament_id)

            summary = SettlementSummary(
                tournament_id=tournament_id,
                total_prize_pool=calculate_prize_pool(registrations, info.buy_in),
                results=results,
            )

            # 순위/상금 기록
            rows = {r.id: r for r in tournament.registrations}
            for result in results:
                row = rows[result.registration_id]
                row.rank = result.rank
                row.prize = result.prize

            tournament.status = transition_status(
                status, TournamentStatus.COMPLETED
            ).value
            tournament.ended_at = utcnow()

            # 원장 WIN 기록
            for result in results:
                if result.prize <= 0:
                    continue
                entry = await self.ledger.credit_win(
                    result.member_id,
                    tournament_id,
                    result.prize,
                    description=f"Win: {info.name} (Rank {result.rank})",
                )
                if entry is None:
                    continue
                summary.ledger_entries_created += 1
                summary.total_paid += result.prize

            await self.session.flush()
            self._check_cancelled(cancel_event, tournament_id)
            await self.session.commit()

        except ChipImbalanceError as e:
            await self.session.rollback()
            logger.warning(
                "settlement_refused_chip_imbalance",
                chips_issued=e.chips_issued,
                chips_counted=e.chips_counted,
                difference=e.difference,
            )
            raise
        except Exception as e:
            await self.session.rollback()
            logger.error("settlement_failed", error=str(e))
            raise

        logger.info(
            "tournament_settled",
            total_prize_pool=str(summary.total_prize_pool),
            total_paid=str(summary.total_paid),
            players=len(results),
            ledger_entries=summary.ledger_entries_created,
        )
        return summary
