from django.urls import path
from . import views

# Namespace for investment-related routes

app_name = "investments"

urlpatterns = [
    path("investments/", views.user_investments_view, name="user_investments"),

    path("admin/investment-payouts/", views.pending_payouts_view, name="pending_payouts"),
    path("admin/investment-payouts/history/", views.payout_history_view, name="payout_history"),
    path("admin/investment-payouts/summary/", views.payout_summary_view, name="payout_summary"),
    path("admin/investment-payouts/<int:investment_id>/mark-paid/", views.mark_paid_view, name="mark_paid"),
    path("admin/investments/<int:investment_id>/cancel/", views.cancel_investment_view, name="cancel"),
]
