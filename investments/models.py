from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class Investment(models.Model):
    class Status(models.TextChoices):
        # Investment lifecycle states
        PENDING = "pending", "Pending"
        ACTIVE = "active", "Active"
        MATURED = "matured", "Matured"
        PAID_OUT = "paid_out", "Paid out"
        CANCELLED = "cancelled", "Cancelled"

    # Investor
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="investments",
    )

    # Order and line the investment was bought through
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="investments",
    )
    order_item = models.OneToOneField(
        "orders.OrderItem",
        on_delete=models.CASCADE,
        related_name="investment",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="investments",
    )

    invested_amount = models.DecimalField(max_digits=12, decimal_places=2)
    expected_return = models.DecimalField(max_digits=12, decimal_places=2)
    profit_amount = models.DecimalField(max_digits=12, decimal_places=2)

    # Copy of the resale plan at checkout
    plan_months = models.PositiveIntegerField()
    plan_profit_percentage = models.DecimalField(max_digits=5, decimal_places=2)
    plan_label = models.CharField(max_length=120, null=True, blank=True)

    investment_date = models.DateField()
    maturity_date = models.DateField()

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )

    paid_out_at = models.DateTimeField(null=True, blank=True)
    paid_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="paid_investments",
    )

    cancellation_reason = models.TextField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        # Indexes for the payout queue and per-user dashboards
        indexes = [
            models.Index(fields=["user", "status"]),
            models.Index(fields=["maturity_date", "status"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(maturity_date__gte=F("investment_date")),
                name="investment_maturity_after_start",
            ),
        ]

    def clean(self):
        super().clean()
        if self.maturity_date and self.investment_date and self.maturity_date < self.investment_date:
            raise ValidationError({"maturity_date": "Maturity date cannot be before the investment date."})
        if (
            self.expected_return is not None
            and self.invested_amount is not None
            and self.profit_amount != self.expected_return - self.invested_amount
        ):
            raise ValidationError({"profit_amount": "Profit must equal expected return minus invested amount."})

    def save(self, *args, **kwargs):
        # Profit is always derived from the two stored amounts
        if self._state.adding and self.expected_return is not None and self.invested_amount is not None:
            self.profit_amount = Decimal(self.expected_return) - Decimal(self.invested_amount)
        if self.maturity_date and self.investment_date and self.maturity_date < self.investment_date:
            raise ValueError("Maturity date cannot be before the investment date.")
        super().save(*args, **kwargs)

    @staticmethod
    def _money(value) -> Decimal:
        # Presentation rounding to 2dp
        return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    @property
    def invested_display(self) -> Decimal:
        return self._money(self.invested_amount)

    @property
    def expected_return_display(self) -> Decimal:
        return self._money(self.expected_return)

    def __str__(self):
        # Human-readable identifier for admin/debugging
        return f"{self.user_id} -> {self.product_id} ({self.invested_display}, {self.status})"


class PayoutAudit(models.Model):
    """One row per disbursed investment."""

    investment = models.OneToOneField(
        Investment,
        on_delete=models.PROTECT,
        related_name="payout_audit",
    )
    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="payout_audits",
    )

    amount = models.DecimalField(max_digits=12, decimal_places=2)
    profit_amount = models.DecimalField(max_digits=12, decimal_places=2)
    paid_out_at = models.DateTimeField()

    def __str__(self):
        return f"payout {self.investment_id} by {self.admin_id} ({self.amount})"
