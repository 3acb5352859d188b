from django import forms

from .models import OrderItem
from .services import OrderLine


class CheckoutForm(forms.Form):
    product_id = forms.IntegerField(min_value=1)
    quantity = forms.IntegerField(min_value=1, initial=1)
    purchase_type = forms.ChoiceField(choices=OrderItem.PurchaseType.choices)
    resale_plan_id = forms.IntegerField(min_value=1, required=False)
    notes = forms.CharField(max_length=1000, required=False)

    def clean(self):
        cleaned = super().clean()
        if (
            cleaned.get("purchase_type") == OrderItem.PurchaseType.RESALE
            and not cleaned.get("resale_plan_id")
        ):
            self.add_error("resale_plan_id", "Select a resale plan for a resale purchase.")
        return cleaned

    def to_line(self) -> OrderLine:
        data = self.cleaned_data
        return OrderLine(
            product_id=data["product_id"],
            quantity=data["quantity"],
            purchase_type=data["purchase_type"],
            resale_plan_id=data.get("resale_plan_id"),
        )


class CancelOrderForm(forms.Form):
    reason = forms.CharField(max_length=500, required=False, strip=True)
