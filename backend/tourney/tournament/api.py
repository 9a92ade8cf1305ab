"""
Tournament API Router.

토너먼트 시계 조회, 칩 밸런스 확인, 예상 상금, 정산 엔드포인트.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from tourney.config import Settings, get_settings
from tourney.utils.db import get_db
from .blind_clock import build_clock_display, resolve_clock
from .models import SettlementResult
from .settlement import TournamentSettlement


# =============================================================================
# Response Models
# =============================================================================


class ClockResponse(BaseModel):
    """시계 상태 + 표시 필드."""

    tournament_id: str
    now: datetime
    has_started: bool
    current_index: int
    seconds_remaining: int
    is_break: bool
    is_finished: bool
    countdown: str
    level_number: Optional[int] = None
    current_blinds: str
    current_ante: int
    next_blinds: str
    next_ante: str
    seconds_to_next_break: Optional[int] = None


class ChipBalanceResponse(BaseModel):
    tournament_id: str
    chips_issued: int
    chips_counted: int
    difference: int
    is_balanced: bool


class PayoutResultResponse(BaseModel):
    registration_id: str
    member_id: str
    rank: int
    prize: Decimal
    final_chip_count: int
    percentage: float

    @classmethod
    def from_result(cls, result: SettlementResult) -> "PayoutResultResponse":
        return cls(**result.to_dict())


class PayoutPreviewResponse(BaseModel):
    tournament_id: str
    results: List[PayoutResultResponse]


class SettlementResponse(BaseModel):
    """정산 결과 응답."""

    tournament_id: str
    total_prize_pool: Decimal
    total_paid: Decimal
    ledger_entries_created: int
    settled_at: datetime
    results: List[PayoutResultResponse]


# =============================================================================
# Router
# =============================================================================

router = APIRouter(prefix="/tournaments", tags=["Tournaments"])


def get_settlement(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> TournamentSettlement:
    return TournamentSettlement(db, settings=settings)


@router.get("/{tournament_id}/clock", response_model=ClockResponse)
async def get_clock(
    tournament_id: str,
    now: Optional[datetime] = Query(
        default=None, description="Evaluate the clock at this time (default: server time)"
    ),
    settlement: TournamentSettlement = Depends(get_settlement),
):
    """현재 블라인드 레벨 / 브레이크와 남은 시간."""
    tournament = await settlement.load_tournament(tournament_id)
    structure, _ = await settlement.load_structures(tournament)

    at = now or datetime.now()
    if at.tzinfo is not None:
        # 시작 시각은 로컬 naive datetime
        at = at.astimezone().replace(tzinfo=None)
    fallback_minutes = (
        tournament.blind_level_minutes
        or settlement.settings.default_blind_level_minutes
    )
    state = resolve_clock(at, tournament.start, structure, fallback_minutes)
    display = build_clock_display(state, structure)

    return ClockResponse(
        tournament_id=tournament_id,
        now=at,
        **state.to_dict(),
        **display.to_dict(),
    )


@router.get("/{tournament_id}/chip-balance", response_model=ChipBalanceResponse)
async def get_chip_balance(
    tournament_id: str,
    settlement: TournamentSettlement = Depends(get_settlement),
):
    """발행 칩 vs 집계 칩."""
    balance = await settlement.chip_balance(tournament_id)
    return ChipBalanceResponse(tournament_id=tournament_id, **balance.to_dict())


@router.get("/{tournament_id}/payouts/preview", response_model=PayoutPreviewResponse)
async def preview_payouts(
    tournament_id: str,
    settlement: TournamentSettlement = Depends(get_settlement),
):
    """칩 카운트 입력 중 예상 상금 (밸런스 검사 없음)."""
    results = await settlement.preview(tournament_id)
    return PayoutPreviewResponse(
        tournament_id=tournament_id,
        results=[PayoutResultResponse.from_result(r) for r in results],
    )


@router.post("/{tournament_id}/settle", response_model=SettlementResponse)
async def settle_tournament(
    tournament_id: str,
    settlement: TournamentSettlement = Depends(get_settlement),
):
    """토너먼트 정산: 순위/상금 확정, 상태 Completed, 원장 WIN 기록."""
    summary = await settlement.settle_tournament(tournament_id)
    return SettlementResponse(
        tournament_id=summary.tournament_id,
        total_prize_pool=summary.total_prize_pool,
        total_paid=summary.total_paid,
        ledger_entries_created=summary.ledger_entries_created,
        settled_at=summary.settled_at,
        results=[PayoutResultResponse.from_result(r) for r in summary.results],
    )
