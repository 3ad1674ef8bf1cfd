"""
Credit-Card Billing Cycle

Which invoice a card purchase lands on, and when that invoice is due.

    closing 15 / due 10:
        bought on Mar 10 -> March statement -> due Apr 10
        bought on Mar 20 -> April statement -> due May 10

Days past the end of a month are clipped (due 31 in February -> Feb 28/29).
"""

import calendar
from datetime import date
from typing import Optional

from dateutil.relativedelta import relativedelta

from chatledger.models.transaction import ClosingPolicy


def clipped(year: int, month: int, day: int) -> date:
    """`day` of the given month, or the month's last day when it is shorter."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def _month_start(value: date, months_ahead: int) -> date:
    return value.replace(day=1) + relativedelta(months=months_ahead)


def statement_month(
    tx_date: date,
    closing_day: int,
    policy: ClosingPolicy = ClosingPolicy.STANDARD,
) -> date:
    """First day of the month whose statement includes the purchase."""
    if policy == ClosingPolicy.PREVIOUS_CLOSING:
        return _month_start(tx_date, 0)
    if tx_date.day <= closing_day:
        return _month_start(tx_date, 0)
    return _month_start(tx_date, 1)


def statement_due_date(
    tx_date: date,
    closing_day: int,
    due_day: int,
    policy: ClosingPolicy = ClosingPolicy.STANDARD,
) -> date:
    """
    Due date of the statement a purchase falls on.

    The due date is `due_day` of the month after the statement month.
    """
    due_month = statement_month(tx_date, closing_day, policy) + relativedelta(months=1)
    return clipped(due_month.year, due_month.month, due_day)


def installment_due_dates(
    first_due: date,
    count: int,
    due_day: Optional[int] = None,
) -> list[date]:
    """
    Due dates of `count` monthly installments starting at `first_due`.

    Every date sits on the nominal due day, so a 31st clipped to Feb 28
    goes back to the 31st in March.
    """
    day = due_day or first_due.day
    dates = []
    for k in range(max(count, 1)):
        month = _month_start(first_due, k)
        dates.append(clipped(month.year, month.month, day))
    return dates
