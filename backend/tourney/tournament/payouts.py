"""
Payout distribution: rule selection, redistribution and allocation combining.

All vectors here are percentages of the total prize pool. Rank-indexed
vectors (custom matrices, ICM targets) and player-indexed vectors (ICM and
ChipEV equity) are summed position by position, which is only meaningful
when players are ordered by chip count descending; combine_allocations
enforces that ordering.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from tourney.logging_config import get_logger
from tourney.utils.errors import PayoutError
from .equity import ICM_MAX_PLAYERS, chip_ev_equity, icm_equity
from .models import AllocationKind, PayoutAllocation, PayoutRule, PayoutStructure

logger = get_logger(__name__)

WINNER_TAKES_ALL = (100.0,)

# 합계 100% 허용 오차
PERCENT_SUM_TOLERANCE = 0.1


@dataclass(frozen=True)
class RuleValidation:
    is_valid: bool
    error: Optional[str] = None


def validate_payout_rules(rules: Sequence[PayoutRule]) -> RuleValidation:
    """Check that every rule sums to 100% and pays in descending order."""
    for rule in rules:
        total = sum(rule.percentages)
        if abs(total - 100) > PERCENT_SUM_TOLERANCE:
            return RuleValidation(
                is_valid=False,
                error=f"Total: {round(total)}% (Must be 100%)",
            )

    for rule in rules:
        for higher, lower in zip(rule.percentages, rule.percentages[1:]):
            if higher < lower:
                return RuleValidation(
                    is_valid=False,
                    error="Payout percentages must be in descending order",
                )

    return RuleValidation(is_valid=True)


def select_rule(
    rules: Sequence[PayoutRule], entrant_count: int
) -> Optional[PayoutRule]:
    """First rule whose player band contains ``entrant_count``.

    Falls back to the first configured rule when no band matches.
    """
    if not rules:
        return None

    for rule in rules:
        if rule.matches(entrant_count):
            return rule

    logger.warning(
        "payout_rule_fallback",
        entrant_count=entrant_count,
        bands=[(r.min_players, r.max_players) for r in rules],
    )
    return rules[0]


def redistribute(percentages: Sequence[float], entrant_count: int) -> List[float]:
    """Fold unpayable places into the places that exist.

    When a rule pays more places than there are entrants, the percentages of
    the missing places are split evenly over the paid ones.
    """
    percentages = list(percentages)
    if entrant_count <= 0 or entrant_count >= len(percentages):
        return percentages

    assignable = percentages[:entrant_count]
    excess = sum(percentages[entrant_count:])
    if excess == 0:
        return assignable

    boost = excess / entrant_count
    return [p + boost for p in assignable]


def resolve_distribution(
    allocation: PayoutAllocation, entrant_count: int
) -> List[float]:
    """Rank-indexed percentages of one allocation for a field size."""
    rule = select_rule(allocation.rules, entrant_count)
    percentages = rule.percentages if rule else WINNER_TAKES_ALL
    return redistribute(percentages, entrant_count)


def _ensure_rank_order(chip_counts: Sequence[int]) -> None:
    for index, (higher, lower) in enumerate(zip(chip_counts, chip_counts[1:])):
        if higher < lower:
            raise PayoutError(
                "Chip counts must be sorted in descending order (rank order)",
                details={"index": index + 1, "chip_counts": list(chip_counts)},
            )


def _add_weighted(total: List[float], vector: Sequence[float], weight: float) -> None:
    if len(total) < len(vector):
        total.extend([0.0] * (len(vector) - len(total)))
    for index, pct in enumerate(vector):
        total[index] += pct * weight


def _check_pool_shares(structure: PayoutStructure) -> None:
    share_total = sum(a.percent_of_pool for a in structure.allocations)
    if abs(share_total - 100) > PERCENT_SUM_TOLERANCE:
        logger.warning(
            "allocation_share_mismatch",
            payout_structure_id=structure.id,
            share_total=share_total,
        )


def combine_allocations(
    structure: Optional[PayoutStructure],
    chip_counts: Sequence[int],
    icm_max_players: int = ICM_MAX_PLAYERS,
) -> List[float]:
    """Weighted sum of every allocation's distribution.

    Args:
        structure: Payout structure; None means winner takes all
        chip_counts: Final chips per player, in rank order (descending)
        icm_max_players: Largest field computed with exact ICM

    Returns:
        Percent of the total pool per rank / player position
    """
    _ensure_rank_order(chip_counts)

    if not structure or not structure.allocations:
        return list(WINNER_TAKES_ALL)

    _check_pool_shares(structure)

    entrant_count = len(chip_counts)
    combined: List[float] = []

    for allocation in structure.allocations:
        if allocation.kind is AllocationKind.CUSTOM_MATRIX:
            vector = resolve_distribution(allocation, entrant_count)
        elif allocation.kind is AllocationKind.ICM:
            targets = resolve_distribution(allocation, entrant_count)
            vector = icm_equity(chip_counts, targets, max_players=icm_max_players)
        else:
            vector = chip_ev_equity(chip_counts)

        _add_weighted(combined, vector, allocation.percent_of_pool / 100)

    return combined or list(WINNER_TAKES_ALL)


def payout_distribution(
    structure: Optional[PayoutStructure], player_count: int
) -> List[float]:
    """Rank percentage table for a field size, rounded to 2 decimals.

    Stack-dependent allocations contribute their target table: ICM its
    resolved target payouts, ChipEV winner-takes-all.
    """
    if not structure or not structure.allocations:
        return list(WINNER_TAKES_ALL)

    totals: List[float] = []
    for allocation in structure.allocations:
        if allocation.kind is AllocationKind.CHIP_EV:
            vector = list(WINNER_TAKES_ALL)
        else:
            vector = resolve_distribution(allocation, player_count)
        _add_weighted(totals, vector, allocation.percent_of_pool / 100)

    return [round(p, 2) for p in totals]
