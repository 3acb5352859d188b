from django import forms
from django.conf import settings

from .models import Investment


class PageForm(forms.Form):
    page = forms.IntegerField(min_value=1, required=False)
    per_page = forms.IntegerField(min_value=1, required=False)

    def clean_per_page(self):
        value = self.cleaned_data.get("per_page") or settings.RESALE_PAYOUTS_PER_PAGE
        return min(value, settings.RESALE_PAYOUTS_MAX_PER_PAGE)

    def clean_page(self):
        return self.cleaned_data.get("page") or 1


class UserInvestmentFilterForm(PageForm):
    status = forms.ChoiceField(
        choices=[("all", "All")] + [
            choice for choice in Investment.Status.choices if choice[0] != Investment.Status.CANCELLED
        ],
        required=False,
    )

    def clean_status(self):
        return self.cleaned_data.get("status") or "all"


class CancelInvestmentForm(forms.Form):
    reason = forms.CharField(max_length=500, strip=True)
