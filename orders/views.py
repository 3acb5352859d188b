from __future__ import annotations

import logging

from django.contrib.auth.decorators import login_required
from django.core.paginator import Paginator
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from investments.exceptions import LifecycleError
from investments.forms import PageForm
from investments.lifecycle import get_lifecycle_manager
from products.services.pricing import to_money

from .forms import CancelOrderForm, CheckoutForm
from .models import Order
from .services import CheckoutError, cancel_order, confirm_order, place_order

logger = logging.getLogger(__name__)


def _image_url(product):
    image = product.main_image() if product else None
    return image.file.url if image and image.file else None


def _item_payload(item) -> dict:
    return {
        "id": item.pk,
        "product_id": item.product_id,
        "product_title": item.product.title_en if item.product_id else None,
        "product_image": _image_url(item.product),
        "quantity": item.quantity,
        "unit_price": to_money(item.unit_price),
        "total_price": to_money(item.total_price),
        "purchase_type": item.purchase_type,
        # null for wallet items
        "resale": {
            "plan_id": item.resale_plan_id,
            "months": item.resale_months,
            "profit_percentage": str(item.resale_profit_percentage),
            "expected_return": to_money(item.resale_expected_return),
            "profit_amount": to_money(item.resale_profit_amount),
        } if item.is_resale() else None,
    }


def order_payload(order: Order, manager=None) -> dict:
    manager = manager or get_lifecycle_manager()
    items = list(order.items.all())
    summary = manager.aggregate_order_resale(order)

    return {
        "id": order.pk,
        "order_number": order.order_number,
        "type": order.type,
        "status": order.status,
        "subtotal": to_money(order.subtotal),
        "total_amount": to_money(order.total_amount),
        "items_count": len(items),
        "items": [_item_payload(item) for item in items],
        "resale_expected_return": to_money(summary.expected_return),
        "resale_return_date": summary.return_date.strftime("%Y-%m-%d") if summary.return_date else None,
        "resale_profit_amount": to_money(summary.profit_amount),
        "resale_profit_percentage": to_money(summary.profit_percentage),
        "created_at": order.created_at.strftime("%Y-%m-%d %H:%M:%S"),
    }


@require_GET
@login_required
def order_list_view(request):
    form = PageForm(request.GET)
    if not form.is_valid():
        return JsonResponse({"ok": False, "error": "Invalid parameters.", "fields": form.errors}, status=400)

    queryset = (
        Order.objects
        .filter(user=request.user)
        .prefetch_related("items__product__images")
        .order_by("-created_at", "-id")
    )

    status = (request.GET.get("status") or "").strip()
    if status:
        queryset = queryset.filter(status=status)

    order_type = (request.GET.get("type") or "").strip()
    if order_type:
        queryset = queryset.filter(type=order_type)

    page = Paginator(queryset, form.cleaned_data["per_page"]).get_page(form.cleaned_data["page"])
    manager = get_lifecycle_manager()

    return JsonResponse(
        {
            "ok": True,
            "orders": [order_payload(order, manager) for order in page.object_list],
            "pagination": {
                "current_page": page.number,
                "last_page": page.paginator.num_pages,
                "per_page": page.paginator.per_page,
                "total": page.paginator.count,
            },
        }
    )


@require_GET
@login_required
def order_detail_view(request, order_id: int):
    order = get_object_or_404(
        Order.objects.prefetch_related("items__product__images"),
        pk=order_id,
        user=request.user,
    )
    return JsonResponse({"ok": True, "order": order_payload(order)})


@require_POST
@login_required
def checkout_view(request):
    form = CheckoutForm(request.POST)
    if not form.is_valid():
        return JsonResponse({"ok": False, "error": "Invalid order.", "fields": form.errors}, status=400)

    try:
        order = place_order(
            user=request.user,
            lines=[form.to_line()],
            notes=form.cleaned_data.get("notes") or "",
        )
    except CheckoutError as exc:
        return JsonResponse({"ok": False, "error": str(exc)}, status=400)

    return JsonResponse({"ok": True, "order": order_payload(order)}, status=201)


@require_POST
@login_required
def cancel_order_view(request, order_id: int):
    order = get_object_or_404(Order, pk=order_id, user=request.user)

    form = CancelOrderForm(request.POST)
    if not form.is_valid():
        return JsonResponse({"ok": False, "error": "Invalid parameters.", "fields": form.errors}, status=400)
    reason = form.cleaned_data.get("reason") or f"Order {order.order_number} cancelled by customer"

    try:
        order = cancel_order(order=order, reason=reason, refunded=True, manager=get_lifecycle_manager())
    except CheckoutError as exc:
        return JsonResponse({"ok": False, "error": str(exc)}, status=400)
    except LifecycleError as exc:
        return JsonResponse({"ok": False, **exc.as_dict()}, status=409)

    return JsonResponse({"ok": True, "message": "Order cancelled and refunded successfully.", "order": order_payload(order)})


@require_POST
@login_required
def confirm_order_view(request, order_id: int):
    if not request.user.is_staff:
        return JsonResponse({"ok": False, "error": "Only admins can confirm orders."}, status=403)

    order = get_object_or_404(Order, pk=order_id)
    try:
        order = confirm_order(order=order, manager=get_lifecycle_manager())
    except CheckoutError as exc:
        return JsonResponse({"ok": False, "error": str(exc)}, status=400)
    except LifecycleError as exc:
        return JsonResponse({"ok": False, **exc.as_dict()}, status=409)

    return JsonResponse({"ok": True, "order": order_payload(order)})
