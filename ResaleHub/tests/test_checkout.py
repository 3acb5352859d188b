from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from investments.exceptions import InvalidTransition
from investments.lifecycle import InvestmentLifecycleManager
from investments.models import Investment
from orders.models import Order, OrderItem
from orders.services import CheckoutError, OrderLine, cancel_order, confirm_order, place_order
from products.services.pricing import add_months

from .factories import make_plan, make_product, make_user

RESALE = OrderItem.PurchaseType.RESALE
WALLET = OrderItem.PurchaseType.WALLET


class PlaceOrderTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product(price=Decimal("1000.00"), stock=5)
        self.plan = make_plan(self.product, months=3, pct=Decimal("10.00"))

    def test_resale_line_creates_pending_investment_from_snapshot(self):
        order = place_order(
            user=self.user,
            lines=[OrderLine(product_id=self.product.pk, purchase_type=RESALE, resale_plan_id=self.plan.pk)],
        )

        self.assertEqual(order.type, Order.Type.RESALE)
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.total_amount, Decimal("1000.00"))

        item = order.items.get()
        self.assertEqual(item.resale_months, 3)
        self.assertEqual(item.resale_expected_return, Decimal("1100.00"))
        self.assertEqual(item.resale_plan_snapshot["months"], 3)

        inv = Investment.objects.get(order_item=item)
        self.assertEqual(inv.status, Investment.Status.PENDING)
        self.assertEqual(inv.user, self.user)
        self.assertEqual(inv.invested_amount, Decimal("1000.00"))
        self.assertEqual(inv.expected_return, Decimal("1100.00"))
        self.assertEqual(inv.profit_amount, Decimal("100.00"))
        self.assertEqual(inv.plan_label, "3 Months (+10%)")
        self.assertEqual(inv.maturity_date, add_months(inv.investment_date, 3))

    def test_plan_edits_do_not_reach_existing_investments(self):
        order = place_order(
            user=self.user,
            lines=[OrderLine(product_id=self.product.pk, purchase_type=RESALE, resale_plan_id=self.plan.pk)],
        )

        self.plan.months = 12
        self.plan.profit_percentage = Decimal("50.00")
        self.plan.save()

        inv = order.investments.get()
        self.assertEqual(inv.plan_months, 3)
        self.assertEqual(inv.plan_profit_percentage, Decimal("10.00"))
        self.assertEqual(inv.expected_return, Decimal("1100.00"))

    def test_mixed_order_only_invests_resale_lines(self):
        other = make_product(title="Silver", price=Decimal("20.00"))
        order = place_order(
            user=self.user,
            lines=[
                OrderLine(product_id=self.product.pk, purchase_type=RESALE, resale_plan_id=self.plan.pk),
                OrderLine(product_id=other.pk, quantity=2, purchase_type=WALLET),
            ],
        )

        self.assertEqual(order.type, Order.Type.MIXED)
        self.assertEqual(order.total_amount, Decimal("1040.00"))
        self.assertEqual(order.investments.count(), 1)

        other.refresh_from_db()
        self.assertEqual(other.stock_quantity, 8)

    def test_stock_is_decremented(self):
        place_order(user=self.user, lines=[OrderLine(product_id=self.product.pk, quantity=2)])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 3)

    def test_not_enough_stock_rolls_back(self):
        with self.assertRaises(CheckoutError):
            place_order(user=self.user, lines=[OrderLine(product_id=self.product.pk, quantity=6)])

        self.assertFalse(Order.objects.exists())
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 5)

    def test_plan_must_belong_to_product_and_be_active(self):
        other = make_product(title="Silver")
        foreign_plan = make_plan(other)

        with self.assertRaises(CheckoutError):
            place_order(
                user=self.user,
                lines=[OrderLine(product_id=self.product.pk, purchase_type=RESALE, resale_plan_id=foreign_plan.pk)],
            )

        self.plan.is_active = False
        self.plan.save()
        with self.assertRaises(CheckoutError):
            place_order(
                user=self.user,
                lines=[OrderLine(product_id=self.product.pk, purchase_type=RESALE, resale_plan_id=self.plan.pk)],
            )

        self.assertFalse(Investment.objects.exists())

    def test_empty_order_and_unknown_product(self):
        with self.assertRaises(CheckoutError):
            place_order(user=self.user, lines=[])
        with self.assertRaises(CheckoutError):
            place_order(user=self.user, lines=[OrderLine(product_id=999999)])


class ConfirmAndCancelOrderTests(TestCase):
    def setUp(self):
        self.user = make_user()
        self.product = make_product(price=Decimal("500.00"), stock=3)
        self.plan = make_plan(self.product, months=6, pct=Decimal("20.00"))
        self.order = place_order(
            user=self.user,
            lines=[OrderLine(product_id=self.product.pk, purchase_type=RESALE, resale_plan_id=self.plan.pk)],
        )
        self.manager = InvestmentLifecycleManager()

    def test_confirm_activates_investments(self):
        order = confirm_order(order=self.order, manager=self.manager)

        self.assertEqual(order.status, Order.Status.INVESTED)
        self.assertEqual(order.investments.get().status, Investment.Status.ACTIVE)

        with self.assertRaises(CheckoutError):
            confirm_order(order=order, manager=self.manager)

    def test_confirm_wallet_order(self):
        order = place_order(user=self.user, lines=[OrderLine(product_id=self.product.pk)])
        order = confirm_order(order=order, manager=self.manager)
        self.assertEqual(order.status, Order.Status.CONFIRMED)

    def test_cancel_cancels_investments_and_restocks(self):
        confirm_order(order=self.order, manager=self.manager)

        order = cancel_order(order=self.order, reason="Changed my mind", refunded=True, manager=self.manager)

        self.assertEqual(order.status, Order.Status.REFUNDED)
        inv = order.investments.get()
        self.assertEqual(inv.status, Investment.Status.CANCELLED)
        self.assertEqual(inv.cancellation_reason, "Changed my mind")
        self.assertIsNotNone(inv.cancelled_at)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 3)

    def test_cancel_pending_order(self):
        order = cancel_order(order=self.order, reason="Duplicate")
        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.assertEqual(order.investments.get().status, Investment.Status.CANCELLED)

        with self.assertRaises(CheckoutError):
            cancel_order(order=order, reason="Again")

    def test_cancel_with_matured_investment_changes_nothing(self):
        confirm_order(order=self.order, manager=self.manager)

        # Seven months later the 6 month plan is due
        later = timezone.now() + timedelta(days=215)
        manager = InvestmentLifecycleManager(clock=lambda: later)

        with self.assertRaises(InvalidTransition):
            cancel_order(order=self.order, reason="Too late", manager=manager)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.INVESTED)
        self.assertEqual(self.order.investments.get().status, Investment.Status.ACTIVE)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_quantity, 2)
