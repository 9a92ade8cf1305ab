"""
Rounding Reconciler.

상금을 단위 금액(예: 100)의 배수로 반올림한 뒤, 합계가 상금풀과
정확히 일치하도록 차액을 마지막 비영(非0) 항목에 반영한다.

Amounts are Decimal end to end; floats are converted through ``str`` so
``333.33`` stays ``333.33``.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import List, Sequence, Union

from tourney.utils.errors import PayoutError

Amount = Union[Decimal, int, float, str]


def to_decimal(value: Amount) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_to_unit(amount: Decimal, unit: Decimal) -> Decimal:
    """Nearest multiple of ``unit``, halves rounded up."""
    return (amount / unit).quantize(Decimal(1), rounding=ROUND_HALF_UP) * unit


def reconcile_amounts(
    raw_amounts: Sequence[Amount],
    unit: Amount,
    target: Amount,
) -> List[Decimal]:
    """Round amounts to ``unit`` and force the sum to equal ``target``.

    The whole difference goes to the last entry with a nonzero rounded
    amount (index 0 if every entry rounded to zero). That entry may end up
    off the unit grid; the sum is always exact. If a negative difference is
    larger than that entry, the rest is taken from the entries before it so
    no prize goes below zero.

    Args:
        raw_amounts: Fractional currency amounts (percentage x pool)
        unit: Rounding unit, > 0
        target: Exact total (the prize pool), >= 0

    Returns:
        Reconciled amounts, same length as ``raw_amounts``
    """
    unit = to_decimal(unit)
    target = to_decimal(target)
    if unit <= 0:
        raise PayoutError("Rounding unit must be positive", details={"unit": str(unit)})
    if target < 0:
        raise PayoutError("Prize pool cannot be negative", details={"target": str(target)})

    amounts = [to_decimal(a) for a in raw_amounts]
    if any(a < 0 for a in amounts):
        raise PayoutError("Prize amounts cannot be negative")
    if not amounts:
        return []
    if target == 0:
        return [Decimal(0)] * len(amounts)

    rounded = [round_to_unit(a, unit) for a in amounts]
    diff = target - sum(rounded)
    if diff == 0:
        return rounded

    nonzero = [i for i in range(len(rounded) - 1, -1, -1) if rounded[i] != 0]
    if not nonzero:
        rounded[0] += diff
        return rounded

    if diff > 0:
        rounded[nonzero[0]] += diff
        return rounded

    # 음수 차액: 뒤에서부터 0 아래로 내려가지 않게 차감
    for index in nonzero:
        take = min(rounded[index], -diff)
        rounded[index] -= take
        diff += take
        if diff == 0:
            break

    return rounded
