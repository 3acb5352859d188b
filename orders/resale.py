"""
Order-level resale summary.

Aggregation works on frozen read-only views of an order and its resale
items, built once from the ORM by `resale_view_for`. Nothing here touches
the database or mutates an order.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from django.utils import timezone

from products.services.pricing import add_months

from .models import Order, OrderItem


@dataclass(frozen=True)
class ResaleItemView:
    total_price: Decimal
    expected_return: Decimal
    months: int
    profit_percentage: Decimal

    @property
    def profit_amount(self) -> Decimal:
        return self.expected_return - self.total_price


@dataclass(frozen=True)
class OrderResaleView:
    order_id: Optional[int]
    investment_date: date
    items: Tuple[ResaleItemView, ...] = ()
    stored_expected_return: Optional[Decimal] = None
    stored_return_date: Optional[date] = None
    stored_profit_percentage: Optional[Decimal] = None


@dataclass(frozen=True)
class ResaleSummary:
    expected_return: Optional[Decimal]
    return_date: Optional[date]
    profit_percentage: Optional[Decimal]
    profit_amount: Optional[Decimal]

    @property
    def is_empty(self) -> bool:
        return self.expected_return is None and self.return_date is None


EMPTY_SUMMARY = ResaleSummary(None, None, None, None)


def resale_item_view(item: OrderItem) -> ResaleItemView:
    total_price = Decimal(item.total_price)
    if item.resale_expected_return is not None:
        expected_return = Decimal(item.resale_expected_return)
    else:
        expected_return = total_price
    return ResaleItemView(
        total_price=total_price,
        expected_return=expected_return,
        months=int(item.resale_months or 0),
        profit_percentage=Decimal(item.resale_profit_percentage or 0),
    )


def resale_view_for(order: Order) -> OrderResaleView:
    # Uses the prefetched items when available
    items = tuple(
        resale_item_view(item) for item in order.items.all() if item.is_resale()
    )
    return OrderResaleView(
        order_id=order.pk,
        investment_date=timezone.localdate(order.created_at),
        items=items,
        stored_expected_return=order.resale_expected_return,
        stored_return_date=order.resale_return_date,
        stored_profit_percentage=order.resale_profit_percentage,
    )


def aggregate_order_resale(view: OrderResaleView) -> ResaleSummary:
    """
    Resale summary for an order.

    Stored order-level values win. Missing values are derived from the
    resale items:
      - expected return: sum of item expected returns
      - return date: investment date + the longest plan (months)
      - profit percentage: plain mean of item percentages
    Sums are not rounded here.
    """
    items = view.items

    if not items:
        if view.stored_expected_return is None and view.stored_return_date is None:
            return EMPTY_SUMMARY
        return ResaleSummary(
            expected_return=view.stored_expected_return,
            return_date=view.stored_return_date,
            profit_percentage=view.stored_profit_percentage,
            profit_amount=None,
        )

    expected_return = view.stored_expected_return
    if expected_return is None:
        expected_return = sum((item.expected_return for item in items), Decimal("0"))

    return_date = view.stored_return_date
    if return_date is None:
        return_date = add_months(view.investment_date, max(item.months for item in items))

    profit_percentage = view.stored_profit_percentage
    if profit_percentage is None:
        total_pct = sum((item.profit_percentage for item in items), Decimal("0"))
        profit_percentage = total_pct / Decimal(len(items))

    principal = sum((item.total_price for item in items), Decimal("0"))

    return ResaleSummary(
        expected_return=expected_return,
        return_date=return_date,
        profit_percentage=profit_percentage,
        profit_amount=expected_return - principal,
    )
