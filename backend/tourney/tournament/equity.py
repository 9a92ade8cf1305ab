"""
Equity Calculator - ICM and ChipEV.

칩 스택으로부터 플레이어별 상금 지분(%)을 계산.

ICM (Independent Chip Model):
─────────────────────────────────────────────────────────────────────────────────

1위부터 순서대로 남은 플레이어 중 한 명을 chips / 남은 칩 합계 확률로 뽑는다.
경로 확률은 "이미 순위가 정해진 플레이어 집합"에만 의존하므로
집합(bitmask) 단위로 확률을 누적하면 모든 순열을 나열한 것과 같은 값이 나온다.

남은 칩 합계가 0 이 되면 (칩 0 플레이어만 남은 경우) 남은 순위 확률을
남은 플레이어에게 균등 분배한다. 하위 순열을 전개하지 않는 근사이며
결과 수치에 영향을 주므로 그대로 유지한다.

플레이어 수가 max_players 를 넘으면 ChipEV 로 대체하고 경고를 남긴다.

─────────────────────────────────────────────────────────────────────────────────
"""

from collections import defaultdict
from typing import Dict, List, Sequence

from tourney.logging_config import get_logger
from tourney.utils.errors import PayoutError

logger = get_logger(__name__)

# 정확한 ICM 계산 상한 (9! 경로)
ICM_MAX_PLAYERS = 9


def _validate_chips(chip_counts: Sequence[int]) -> List[int]:
    chips = list(chip_counts)
    if any(c < 0 for c in chips):
        raise PayoutError(
            "Chip counts cannot be negative",
            details={"chip_counts": chips},
        )
    return chips


def chip_ev_equity(chip_counts: Sequence[int]) -> List[float]:
    """Equity proportional to chip share, in percent.

    Float vector: sums to 100 within float tolerance, not exactly.
    Prize amounts are made exact later by ``reconcile_amounts``.
    Returns all zeros when no chips are in play.
    """
    chips = _validate_chips(chip_counts)
    total = sum(chips)
    if total == 0:
        return [0.0] * len(chips)
    return [c / total * 100 for c in chips]


def icm_rank_probabilities(chip_counts: Sequence[int]) -> List[List[float]]:
    """Probability matrix ``P[player][rank]`` (rank 0 = 1st place)."""
    chips = _validate_chips(chip_counts)
    n = len(chips)
    probs = [[0.0] * n for _ in range(n)]
    if n == 0:
        return probs

    # placed-player bitmask -> probability of reaching it
    reach: Dict[int, float] = {0: 1.0}

    for depth in range(n):
        next_reach: Dict[int, float] = defaultdict(float)

        for mask, path_prob in reach.items():
            remaining = [i for i in range(n) if not mask & (1 << i)]
            remaining_total = sum(chips[i] for i in remaining)

            if remaining_total == 0:
                # 칩 0 플레이어만 남음: 남은 순위를 균등 분배
                share = path_prob / len(remaining)
                for i in remaining:
                    for rank in range(depth, n):
                        probs[i][rank] += share
                continue

            for i in remaining:
                if chips[i] == 0:
                    continue
                p = path_prob * chips[i] / remaining_total
                probs[i][depth] += p
                next_reach[mask | (1 << i)] += p

        reach = next_reach

    return probs


def icm_equity(
    chip_counts: Sequence[int],
    prize_percents: Sequence[float],
    max_players: int = ICM_MAX_PLAYERS,
) -> List[float]:
    """ICM equity per player, in percent of the pool.

    Args:
        chip_counts: Chips per player
        prize_percents: Rank-indexed prize table; padded with 0 up to N,
            entries beyond N are ignored
        max_players: Largest field computed exactly

    Returns:
        Equity per player, summing to the prize table total
    """
    chips = _validate_chips(chip_counts)
    n = len(chips)
    if n == 0:
        return []

    prizes = list(prize_percents[:n]) + [0.0] * max(0, n - len(prize_percents))
    prize_total = sum(prizes)

    if sum(chips) == 0:
        return [prize_total / n] * n

    if n > max_players:
        logger.warning(
            "icm_degraded_to_chip_ev",
            players=n,
            max_players=max_players,
        )
        return [share * prize_total / 100 for share in chip_ev_equity(chips)]

    probs = icm_rank_probabilities(chips)
    return [
        sum(probs[player][rank] * prizes[rank] for rank in range(n))
        for player in range(n)
    ]
