"""
Tournament engine.

Pure calculation modules:
- blind_clock: 벽시계 기반 블라인드 시계
- equity: ICM / ChipEV 지분 계산
- payouts: 상금 규칙 선택, 재분배, 할당 합산
- rounding: 단위 반올림 및 합계 보정

settlement (DB 정산) 과 api (FastAPI router) 는 ORM 에 의존하므로
직접 import 한다.
"""

from .models import (
    AllocationKind,
    ChipBalance,
    ClockState,
    PayoutAllocation,
    PayoutRule,
    PayoutStructure,
    Registration,
    RegistrationStatus,
    SettlementResult,
    SettlementSummary,
    StructureItem,
    StructureItemKind,
    TournamentInfo,
    TournamentStatus,
    TournamentStructure,
    transition_status,
)
from .blind_clock import (
    ClockDisplay,
    ClockTicker,
    build_clock_display,
    format_countdown,
    resolve_clock,
    seconds_to_next_break,
)
from .equity import ICM_MAX_PLAYERS, chip_ev_equity, icm_equity, icm_rank_probabilities
from .payouts import (
    combine_allocations,
    payout_distribution,
    redistribute,
    resolve_distribution,
    select_rule,
    validate_payout_rules,
)
from .rounding import reconcile_amounts, round_to_unit, to_decimal

__all__ = [
    # Models
    "AllocationKind",
    "ChipBalance",
    "ClockState",
    "PayoutAllocation",
    "PayoutRule",
    "PayoutStructure",
    "Registration",
    "RegistrationStatus",
    "SettlementResult",
    "SettlementSummary",
    "StructureItem",
    "StructureItemKind",
    "TournamentInfo",
    "TournamentStatus",
    "TournamentStructure",
    "transition_status",
    # Clock
    "ClockDisplay",
    "ClockTicker",
    "build_clock_display",
    "format_countdown",
    "resolve_clock",
    "seconds_to_next_break",
    # Equity
    "ICM_MAX_PLAYERS",
    "chip_ev_equity",
    "icm_equity",
    "icm_rank_probabilities",
    # Payouts
    "combine_allocations",
    "payout_distribution",
    "redistribute",
    "resolve_distribution",
    "select_rule",
    "validate_payout_rules",
    # Rounding
    "reconcile_amounts",
    "round_to_unit",
    "to_decimal",
]
