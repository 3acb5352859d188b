from __future__ import annotations

import logging

from django.contrib.auth.decorators import login_required
from django.core.paginator import Paginator
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from products.services.pricing import to_money

from .exceptions import InvestmentNotFound, LifecycleError
from .forms import CancelInvestmentForm, PageForm, UserInvestmentFilterForm
from .lifecycle import InvestmentLifecycleManager, get_lifecycle_manager
from .models import Investment
from .repository import pending_payout_q

logger = logging.getLogger(__name__)

Status = Investment.Status

RELATED = ("user", "product", "order", "order_item", "paid_by")


def _forbidden(message: str) -> JsonResponse:
    return JsonResponse({"ok": False, "error": message}, status=403)


def _bad_request(form) -> JsonResponse:
    return JsonResponse({"ok": False, "error": "Invalid parameters.", "fields": form.errors}, status=400)


def _lifecycle_error(exc: Exception) -> JsonResponse:
    if isinstance(exc, InvestmentNotFound):
        return JsonResponse({"ok": False, "code": exc.code, "error": str(exc)}, status=404)
    return JsonResponse({"ok": False, **exc.as_dict()}, status=409)


def _date(value):
    return value.strftime("%Y-%m-%d") if value else None


def _datetime(value):
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else None


def _pagination(page) -> dict:
    return {
        "current_page": page.number,
        "last_page": page.paginator.num_pages,
        "per_page": page.paginator.per_page,
        "total": page.paginator.count,
    }


def status_display(investment: Investment, manager: InvestmentLifecycleManager) -> str:
    status = manager.effective_status(investment)
    if status == Status.MATURED:
        return "Matured - Pending Admin Payout"
    if status == Status.ACTIVE:
        return "Active - Waiting for Maturity"
    if status == Status.PAID_OUT:
        return "Completed - Paid Out"
    if status == Status.PENDING:
        return "Pending - Order Confirmation"
    return investment.get_status_display()


def investment_payload(investment: Investment, manager: InvestmentLifecycleManager) -> dict:
    product = investment.product
    order = investment.order
    item = investment.order_item
    return {
        "id": investment.pk,
        "user": {
            "id": investment.user_id,
            "username": investment.user.get_username(),
            "email": investment.user.email,
        },
        "product": {
            "id": product.pk,
            "title": product.title_en,
            "title_ar": product.title_ar,
        },
        "order": {
            "id": order.pk,
            "order_number": order.order_number,
        },
        "order_item": {
            "id": item.pk,
            "quantity": item.quantity,
            "unit_price": to_money(item.unit_price),
            "total_price": to_money(item.total_price),
        },
        "invested_amount": to_money(investment.invested_amount),
        "expected_return": to_money(investment.expected_return),
        "profit_amount": to_money(investment.profit_amount),
        "profit_percentage": str(investment.plan_profit_percentage),
        "plan_months": investment.plan_months,
        "plan_label": investment.plan_label,
        "investment_date": _date(investment.investment_date),
        "maturity_date": _date(investment.maturity_date),
        "status": investment.status,
        "effective_status": manager.effective_status(investment),
        "status_display": status_display(investment, manager),
        "days_until_maturity": manager.days_until_maturity(investment),
        "paid_out_at": _datetime(investment.paid_out_at),
        "paid_by": investment.paid_by_id,
    }


# --- Admin payouts ---

@require_GET
@login_required
def pending_payouts_view(request):
    if not request.user.is_staff:
        return _forbidden("Only admins can view investment payouts.")

    form = PageForm(request.GET)
    if not form.is_valid():
        return _bad_request(form)

    manager = get_lifecycle_manager()
    today = manager.today()

    queryset = manager.pending_payout().select_related(*RELATED)
    page = Paginator(queryset, form.cleaned_data["per_page"]).get_page(form.cleaned_data["page"])

    payouts = []
    for investment in page.object_list:
        payload = investment_payload(investment, manager)
        payload["days_since_matured"] = (today - investment.maturity_date).days
        payouts.append(payload)

    summary = manager.payout_summary()
    return JsonResponse(
        {
            "ok": True,
            "payouts": payouts,
            "pagination": _pagination(page),
            "summary": {
                "total_pending": summary["pending_count"],
                "total_amount_to_pay": to_money(summary["pending_total_return"]),
            },
        }
    )


@require_GET
@login_required
def payout_history_view(request):
    if not request.user.is_staff:
        return _forbidden("Only admins can view payout history.")

    form = PageForm(request.GET)
    if not form.is_valid():
        return _bad_request(form)

    manager = get_lifecycle_manager()
    queryset = (
        manager.repository.paid_out()
        .select_related(*RELATED)
        .order_by("-paid_out_at", "-id")
    )
    page = Paginator(queryset, form.cleaned_data["per_page"]).get_page(form.cleaned_data["page"])

    return JsonResponse(
        {
            "ok": True,
            "payouts": [investment_payload(investment, manager) for investment in page.object_list],
            "pagination": _pagination(page),
        }
    )


@require_GET
@login_required
def payout_summary_view(request):
    if not request.user.is_staff:
        return _forbidden("Only admins can view payout summary.")

    summary = get_lifecycle_manager().payout_summary()
    data = {
        key: (value if key.endswith("_count") else to_money(value))
        for key, value in summary.items()
    }
    return JsonResponse({"ok": True, **data})


@require_POST
@login_required
def mark_paid_view(request, investment_id: int):
    if not request.user.is_staff:
        return _forbidden("Only admins can mark payouts as paid.")

    manager = get_lifecycle_manager()
    try:
        investment = manager.mark_paid_out(investment_id, request.user.pk)
    except (InvestmentNotFound, LifecycleError) as exc:
        return _lifecycle_error(exc)

    return JsonResponse(
        {
            "ok": True,
            "message": "Investment marked as paid successfully.",
            "investment": {
                "id": investment.pk,
                "status": investment.status,
                "paid_out_at": _datetime(investment.paid_out_at),
                "paid_by": {
                    "id": request.user.pk,
                    "username": request.user.get_username(),
                },
            },
        }
    )


@require_POST
@login_required
def cancel_investment_view(request, investment_id: int):
    if not request.user.is_staff:
        return _forbidden("Only admins can cancel investments.")

    form = CancelInvestmentForm(request.POST)
    if not form.is_valid():
        return _bad_request(form)

    manager = get_lifecycle_manager()
    try:
        investment = manager.cancel(investment_id, form.cleaned_data["reason"])
    except (InvestmentNotFound, LifecycleError) as exc:
        return _lifecycle_error(exc)

    return JsonResponse(
        {
            "ok": True,
            "investment": {
                "id": investment.pk,
                "status": investment.status,
                "cancellation_reason": investment.cancellation_reason,
                "cancelled_at": _datetime(investment.cancelled_at),
            },
        }
    )


# --- Investor ---

@require_GET
@login_required
def user_investments_view(request):
    form = UserInvestmentFilterForm(request.GET)
    if not form.is_valid():
        return _bad_request(form)

    manager = get_lifecycle_manager()
    today = manager.today()
    status = form.cleaned_data["status"]

    queryset = (
        manager.repository.objects
        .filter(user=request.user)
        .exclude(status=Status.CANCELLED)
        .select_related(*RELATED)
    )

    # Filters use the effective status, so due active rows count as matured
    if status == Status.MATURED:
        queryset = queryset.filter(pending_payout_q(today))
    elif status == Status.ACTIVE:
        queryset = queryset.filter(status=Status.ACTIVE, maturity_date__gt=today)
    elif status != "all":
        queryset = queryset.filter(status=status)

    queryset = queryset.order_by("-investment_date", "-id")
    page = Paginator(queryset, form.cleaned_data["per_page"]).get_page(form.cleaned_data["page"])

    summary = manager.user_summary(request.user)
    return JsonResponse(
        {
            "ok": True,
            "investments": [investment_payload(investment, manager) for investment in page.object_list],
            "pagination": _pagination(page),
            "summary": {
                key: (value if key.endswith("_count") else to_money(value))
                for key, value in summary.items()
            },
        }
    )
