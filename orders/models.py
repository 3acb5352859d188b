from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone


def generate_order_number() -> str:
    # ORD-20251218-4F9A1C
    prefix = timezone.now().strftime("%Y%m%d")
    return f"ORD-{prefix}-{uuid.uuid4().hex[-6:].upper()}"


class Order(models.Model):
    class Type(models.TextChoices):
        SALE = "sale", "Sale"
        RESALE = "resale", "Resale"
        MIXED = "mixed", "Mixed"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        CONFIRMED = "confirmed", "Confirmed"
        INVESTED = "invested", "Invested"
        CANCELLED = "cancelled", "Cancelled"
        REFUNDED = "refunded", "Refunded"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="orders",
    )

    order_number = models.CharField(max_length=32, unique=True, blank=True)

    type = models.CharField(max_length=10, choices=Type.choices, default=Type.SALE)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))

    # Optional stored resale summary; derived from items when empty
    resale_expected_return = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    resale_return_date = models.DateField(null=True, blank=True)
    resale_profit_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
    )

    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["user", "status"]),
        ]

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = generate_order_number()
        super().save(*args, **kwargs)

    def is_sale(self) -> bool:
        # Mixed orders carry wallet items too
        return self.type in (self.Type.SALE, self.Type.MIXED)

    def is_resale(self) -> bool:
        return self.type in (self.Type.RESALE, self.Type.MIXED)

    def can_be_cancelled(self) -> bool:
        return self.status in (self.Status.PENDING, self.Status.CONFIRMED, self.Status.INVESTED)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.get_status_display()})"


class OrderItem(models.Model):
    class PurchaseType(models.TextChoices):
        WALLET = "wallet", "Wallet"
        RESALE = "resale", "Resale"

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )

    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)

    purchase_type = models.CharField(
        max_length=10,
        choices=PurchaseType.choices,
        default=PurchaseType.WALLET,
    )

    # Plan reference is informational only; the snapshot fields are authoritative
    resale_plan = models.ForeignKey(
        "products.ProductResalePlan",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_items",
    )
    resale_months = models.PositiveIntegerField(null=True, blank=True)
    resale_profit_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
    )
    resale_expected_return = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    resale_plan_snapshot = models.JSONField(null=True, blank=True)

    def is_resale(self) -> bool:
        return self.purchase_type == self.PurchaseType.RESALE

    @property
    def resale_profit_amount(self) -> Decimal:
        if not self.is_resale() or self.resale_expected_return is None:
            return Decimal("0")
        return self.resale_expected_return - self.total_price

    def __str__(self) -> str:
        return f"{self.quantity} x {self.product_id} ({self.purchase_type})"
