"""
Rounding Reconciler Tests.

단위 반올림 후 합계 보정 테스트.
"""

from decimal import Decimal

import pytest
from hypothesis import given, strategies as st

from tourney.tournament.rounding import reconcile_amounts, round_to_unit, to_decimal
from tourney.utils.errors import PayoutError


def D(values):
    return [Decimal(str(v)) for v in values]


class TestRoundToUnit:
    def test_half_up(self):
        assert round_to_unit(Decimal("150"), Decimal("100")) == Decimal("200")
        assert round_to_unit(Decimal("2.5"), Decimal("1")) == Decimal("3")
        assert round_to_unit(Decimal("149.99"), Decimal("100")) == Decimal("100")

    def test_cents(self):
        assert round_to_unit(Decimal("333.335"), Decimal("0.01")) == Decimal("333.34")

    def test_float_goes_through_str(self):
        assert to_decimal(333.33) == Decimal("333.33")


class TestReconcileAmounts:
    """합계 == 상금풀 보정 테스트."""

    def test_diff_goes_to_last_entry(self):
        result = reconcile_amounts([333.33, 333.33, 333.34], 100, 1000)

        assert result == D([300, 300, 400])

    def test_diff_skips_trailing_zeros(self):
        result = reconcile_amounts([540, 440, 0], 100, 1000)

        assert result == D([500, 500, 0])

    def test_negative_diff(self):
        result = reconcile_amounts([150, 150], 100, 250)

        assert result == D([200, 50])

    def test_negative_diff_never_below_zero(self):
        """음수 차액이 마지막 항목보다 크면 앞 항목에서 차감."""
        result = reconcile_amounts([0.6, 0.6, 0.6], 1, 1)

        assert result == D([1, 0, 0])
        assert all(amount >= 0 for amount in result)

    def test_everything_rounded_to_zero(self):
        result = reconcile_amounts([0.2, 0.2], 1, 1)

        assert result == D([1, 0])

    def test_exact_amounts_untouched(self):
        assert reconcile_amounts([500, 300, 200], 100, 1000) == D([500, 300, 200])

    def test_empty(self):
        assert reconcile_amounts([], 100, 0) == []

    def test_zero_target(self):
        assert reconcile_amounts([0, 0, 0], 100, 0) == D([0, 0, 0])

    def test_negative_target_rejected(self):
        with pytest.raises(PayoutError):
            reconcile_amounts([100], 1, -100)

    def test_non_positive_unit_rejected(self):
        with pytest.raises(PayoutError):
            reconcile_amounts([100], 0, 100)

    def test_negative_amount_rejected(self):
        with pytest.raises(PayoutError):
            reconcile_amounts([100, -1], 1, 99)

    @given(
        amounts=st.lists(
            st.decimals(
                min_value=0, max_value=100_000, places=2, allow_nan=False, allow_infinity=False
            ),
            min_size=1,
            max_size=12,
        ),
        unit=st.sampled_from([Decimal("0.01"), Decimal("1"), Decimal("10"), Decimal("100")]),
    )
    def test_sum_always_matches_target(self, amounts, unit):
        target = sum(amounts, Decimal(0))

        result = reconcile_amounts(amounts, unit, target)

        assert len(result) == len(amounts)
        assert sum(result, Decimal(0)) == target
        assert all(amount >= 0 for amount in result)
