"""
Credit installment schedule.

Term k falls due ``offset + k - 1`` months after completion. Every term is
the per-term amount rounded down to cents, except the last, which takes the
remainder so the schedule sums exactly to the rounded grand total and no
term is negative.
"""

import calendar
from datetime import date
from decimal import ROUND_DOWN, Decimal

from salesdesk.services.pricing.calculator import round_money

_CENT = Decimal("0.01")


def add_months(start: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the target month's end."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def build_installment_schedule(
    grand_total: Decimal,
    term_count: int,
    start: date,
    offset_months: int = 1,
) -> list[tuple[int, date, Decimal]]:
    """
    Split a grand total into monthly installments.

    Args:
        grand_total: Amount to schedule, already rounded to cents
        term_count: Number of installments
        start: Completion date
        offset_months: Months until the first term falls due

    Returns:
        List of (term_no, due_date, amount_due)
    """
    if term_count < 1:
        return []

    total = round_money(grand_total)
    per_term = (total / Decimal(term_count)).quantize(_CENT, rounding=ROUND_DOWN)
    last = total - per_term * (term_count - 1)

    schedule = []
    for term_no in range(1, term_count + 1):
        amount = last if term_no == term_count else per_term
        due = add_months(start, offset_months + term_no - 1)
        schedule.append((term_no, due, amount))
    return schedule
