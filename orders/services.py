from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from django.db import transaction
from django.utils import timezone

from investments.lifecycle import InvestmentLifecycleManager
from investments.models import Investment
from investments.services import create_investment_for_item
from products.models import Product, ProductResalePlan

from .models import Order, OrderItem

logger = logging.getLogger(__name__)


class CheckoutError(Exception):
    pass


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    quantity: int = 1
    purchase_type: str = OrderItem.PurchaseType.WALLET
    resale_plan_id: Optional[int] = None


def _order_type(lines: Sequence[OrderLine]) -> str:
    kinds = {line.purchase_type for line in lines}
    if kinds == {OrderItem.PurchaseType.RESALE}:
        return Order.Type.RESALE
    if OrderItem.PurchaseType.RESALE in kinds:
        return Order.Type.MIXED
    return Order.Type.SALE


def place_order(*, user, lines: Sequence[OrderLine], notes: str = "") -> Order:
    """
    Create an order, its items and a pending investment per resale line.

    Runs in one transaction with the product rows locked so stock checks
    and decrements cannot interleave.
    """

    if not lines:
        raise CheckoutError("An order needs at least one item.")

    with transaction.atomic():
        order = Order.objects.create(user=user, type=_order_type(lines), notes=notes)
        investment_date = timezone.localdate(order.created_at)
        subtotal = Decimal("0")

        for line in lines:
            if line.quantity <= 0:
                raise CheckoutError("Quantity must be greater than 0.")

            product = Product.objects.select_for_update().filter(pk=line.product_id).first()
            if not product:
                raise CheckoutError(f"Product {line.product_id} does not exist.")
            if line.quantity > product.stock_quantity:
                raise CheckoutError(f"Not enough stock for {product}.")

            total_price = product.price * line.quantity
            item = OrderItem(
                order=order,
                product=product,
                quantity=line.quantity,
                unit_price=product.price,
                total_price=total_price,
                purchase_type=line.purchase_type,
            )

            if line.purchase_type == OrderItem.PurchaseType.RESALE:
                plan = (
                    ProductResalePlan.objects
                    .filter(pk=line.resale_plan_id, product=product, is_active=True)
                    .first()
                )
                if not plan:
                    raise CheckoutError("Select a valid resale plan for this product.")

                item.resale_plan = plan
                item.resale_months = plan.months
                item.resale_profit_percentage = plan.profit_percentage
                item.resale_expected_return = plan.expected_return(total_price)
                item.resale_plan_snapshot = plan.snapshot()

            item.save()
            product.decrement_stock(line.quantity)

            if item.is_resale():
                create_investment_for_item(order_item=item, investment_date=investment_date)

            subtotal += total_price

        order.subtotal = subtotal
        order.total_amount = subtotal
        order.save(update_fields=["subtotal", "total_amount"])

    logger.info(
        "Order %s placed by user %s: type=%s total=%s",
        order.order_number,
        user.pk,
        order.type,
        order.total_amount,
    )
    return order


def confirm_order(*, order: Order, manager: Optional[InvestmentLifecycleManager] = None) -> Order:
    """Confirm a pending order and activate its pending investments."""
    manager = manager or InvestmentLifecycleManager()

    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.status != Order.Status.PENDING:
            raise CheckoutError("Only pending orders can be confirmed.")

        pending = order.investments.filter(status=Investment.Status.PENDING).order_by("id")
        for investment in pending:
            manager.activate(investment)

        order.status = Order.Status.INVESTED if order.is_resale() else Order.Status.CONFIRMED
        order.save(update_fields=["status", "updated_at"])

    logger.info("Order %s confirmed", order.order_number)
    return order


def cancel_order(
    *,
    order: Order,
    reason: str,
    refunded: bool = False,
    manager: Optional[InvestmentLifecycleManager] = None,
) -> Order:
    """
    Cancel (or refund) an order. Every live investment on it is cancelled;
    if any of them has matured or been paid out nothing changes and the
    lifecycle error propagates.
    """
    manager = manager or InvestmentLifecycleManager()

    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if not order.can_be_cancelled():
            raise CheckoutError("This order cannot be cancelled.")

        live = order.investments.exclude(status=Investment.Status.CANCELLED).order_by("id")
        for investment in live:
            manager.cancel(investment, reason)

        for item in order.items.select_related("product"):
            item.product.restock(item.quantity)

        order.status = Order.Status.REFUNDED if refunded else Order.Status.CANCELLED
        order.save(update_fields=["status", "updated_at"])

    logger.info("Order %s %s: %s", order.order_number, order.status, reason)
    return order
