from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from .services.pricing import calculate_expected_return, format_percentage


class Product(models.Model):
    title_en = models.CharField(max_length=200)
    title_ar = models.CharField(max_length=200, blank=True, default="")

    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )

    stock_quantity = models.PositiveIntegerField(default=0)
    in_stock = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    def decrement_stock(self, quantity: int) -> None:
        """
        Take `quantity` units out of stock. Caller holds the row lock.
        """
        if quantity <= 0:
            raise ValueError("Quantity must be greater than 0.")
        if quantity > self.stock_quantity:
            raise ValueError("Not enough stock for this product.")

        self.stock_quantity -= quantity
        self.in_stock = self.stock_quantity > 0
        self.save(update_fields=["stock_quantity", "in_stock"])

    def restock(self, quantity: int) -> None:
        self.stock_quantity += int(quantity)
        self.in_stock = self.stock_quantity > 0
        self.save(update_fields=["stock_quantity", "in_stock"])

    def main_image(self):
        # Flagged main image, else the earliest upload
        images = sorted(self.images.all(), key=lambda image: (not image.is_main, image.pk))
        return images[0] if images else None

    def __str__(self) -> str:
        return self.title_en or f"Product {self.pk}"


class ProductResalePlan(models.Model):
    """
    Resale plan template for a product: hold the purchase for `months` and
    receive it back with `profit_percentage` on top.

    Investments copy these terms at checkout, so editing a plan never
    changes existing investments.
    """

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="resale_plans",
    )

    months = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    profit_percentage = models.DecimalField(max_digits=5, decimal_places=2)
    label = models.CharField(max_length=120, blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["months", "id"]

    def expected_return(self, base_price: Decimal) -> Decimal:
        return calculate_expected_return(
            amount=base_price,
            profit_percentage=self.profit_percentage,
        ).expected_return

    def display_label(self) -> str:
        if self.label:
            return self.label
        return f"{self.months} Months (+{format_percentage(self.profit_percentage)}%)"

    def snapshot(self) -> dict:
        # JSON-safe copy stored on the order item
        return {
            "plan_id": self.pk,
            "months": int(self.months),
            "profit_percentage": str(self.profit_percentage),
            "label": self.display_label(),
        }

    def __str__(self) -> str:
        return f"{self.product_id}: {self.display_label()}"


def product_image_upload_to(instance: "ProductImage", filename: str) -> str:
    return f"product_images/product_{instance.product_id}/{filename}"


class ProductImage(models.Model):
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="images",
    )

    file = models.FileField(upload_to=product_image_upload_to)
    is_main = models.BooleanField(default=False)

    uploaded_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"image for product {self.product_id}"
