"""Tests for the credit installment schedule."""

from datetime import date
from decimal import Decimal

import pytest

from salesdesk.services.fulfillment.installments import (
    add_months,
    build_installment_schedule,
)


class TestAddMonths:
    @pytest.mark.parametrize(
        "start,months,expected",
        [
            (date(2026, 1, 15), 1, date(2026, 2, 15)),
            (date(2026, 1, 31), 1, date(2026, 2, 28)),
            (date(2028, 1, 31), 1, date(2028, 2, 29)),
            (date(2026, 11, 30), 3, date(2027, 2, 28)),
            (date(2026, 5, 10), 0, date(2026, 5, 10)),
            (date(2026, 12, 1), 12, date(2027, 12, 1)),
        ],
    )
    def test_add_months(self, start: date, months: int, expected: date) -> None:
        assert add_months(start, months) == expected


class TestBuildInstallmentSchedule:
    def test_even_split(self) -> None:
        schedule = build_installment_schedule(
            Decimal("529.20"), 2, date(2026, 3, 10)
        )

        assert schedule == [
            (1, date(2026, 4, 10), Decimal("264.60")),
            (2, date(2026, 5, 10), Decimal("264.60")),
        ]

    def test_remainder_goes_to_last_term(self) -> None:
        schedule = build_installment_schedule(Decimal("100.00"), 3, date(2026, 1, 1))
        amounts = [amount for _, _, amount in schedule]

        assert amounts == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
        assert sum(amounts) == Decimal("100.00")

    def test_offset_months(self) -> None:
        schedule = build_installment_schedule(
            Decimal("90"), 3, date(2026, 1, 20), offset_months=0
        )
        assert [due for _, due, _ in schedule] == [
            date(2026, 1, 20),
            date(2026, 2, 20),
            date(2026, 3, 20),
        ]

    def test_no_terms(self) -> None:
        assert build_installment_schedule(Decimal("10"), 0, date(2026, 1, 1)) == []

    def test_small_total_over_many_terms(self) -> None:
        schedule = build_installment_schedule(Decimal("0.15"), 30, date(2026, 1, 31))
        amounts = [amount for _, _, amount in schedule]

        assert len(schedule) == 30
        assert all(amount >= 0 for amount in amounts)
        assert amounts[-1] == Decimal("0.15")
        assert sum(amounts) == Decimal("0.15")
        assert schedule[-1][1] == date(2028, 7, 31)

    @pytest.mark.parametrize(
        "total,terms",
        [("0.99", 7), ("10.05", 6), ("1.00", 60), ("529.21", 24)],
    )
    def test_terms_never_negative_and_sum_to_total(self, total: str, terms: int) -> None:
        amounts = [
            amount
            for _, _, amount in build_installment_schedule(
                Decimal(total), terms, date(2026, 1, 1)
            )
        ]

        assert all(amount >= 0 for amount in amounts)
        assert sum(amounts) == Decimal(total)
