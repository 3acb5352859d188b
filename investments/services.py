import logging
from datetime import date

from orders.models import OrderItem
from products.services.pricing import add_months

from .models import Investment

logger = logging.getLogger(__name__)


def create_investment_for_item(*, order_item: OrderItem, investment_date: date) -> Investment:
    """
    Create the pending Investment for a resale order line.

    - Plan terms are read from the line's snapshot, not the live plan, so
      later plan edits never reach existing investments.
    - Profit is expected return minus the amount paid for the line.
    """

    if not order_item.is_resale():
        raise ValueError("Only resale order items create investments.")

    if order_item.resale_months is None or order_item.resale_expected_return is None:
        raise ValueError("Resale order item is missing its plan snapshot.")

    snapshot = order_item.resale_plan_snapshot or {}
    months = int(order_item.resale_months)

    investment = Investment.objects.create(
        user=order_item.order.user,
        order=order_item.order,
        order_item=order_item,
        product=order_item.product,
        invested_amount=order_item.total_price,
        expected_return=order_item.resale_expected_return,
        profit_amount=order_item.resale_expected_return - order_item.total_price,
        plan_months=months,
        plan_profit_percentage=order_item.resale_profit_percentage,
        plan_label=snapshot.get("label") or None,
        investment_date=investment_date,
        maturity_date=add_months(investment_date, months),
        status=Investment.Status.PENDING,
    )

    logger.info(
        "Investment %s created for order %s item %s (matures %s)",
        investment.pk,
        order_item.order_id,
        order_item.pk,
        investment.maturity_date,
    )
    return investment
