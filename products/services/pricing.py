from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from dateutil.relativedelta import relativedelta

MONEY_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class ReturnResult:
    # Container for calculated resale values
    expected_return: Decimal
    profit_amount: Decimal


def calculate_expected_return(*, amount: Decimal, profit_percentage: Decimal) -> ReturnResult:
    """
    Calculate the amount returned at the end of a resale plan.

    - profit_percentage is the TOTAL profit for the plan period
      (not annualised).
    - No rounding happens here; round with to_money() when presenting.
    """

    amount = Decimal(amount)
    profit_percentage = Decimal(profit_percentage)

    # Guard against zero or negative amounts
    if amount <= 0:
        return ReturnResult(Decimal("0"), Decimal("0"))

    # Negative plans are treated as no profit
    if profit_percentage <= 0:
        return ReturnResult(amount, Decimal("0"))

    profit = amount * (profit_percentage / Decimal("100"))
    return ReturnResult(amount + profit, profit)


def add_months(start: date, months: int) -> date:
    # Calendar months; 31 Jan + 1 month -> 28/29 Feb
    if months < 0:
        raise ValueError("months must be >= 0")
    return start + relativedelta(months=int(months))


def to_money(value) -> str | None:
    """Presentation rounding: 2dp, half up, as a string."""
    if value is None:
        return None
    return str(Decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP))


def format_percentage(value: Decimal) -> str:
    # 15.00 -> "15", 12.50 -> "12.5"
    text = format(Decimal(value), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
