from django.urls import path
from . import views

app_name = "orders"

urlpatterns = [
    path("orders/", views.order_list_view, name="order_list"),
    path("orders/checkout/", views.checkout_view, name="checkout"),
    path("orders/<int:order_id>/", views.order_detail_view, name="order_detail"),
    path("orders/<int:order_id>/cancel/", views.cancel_order_view, name="cancel"),
    path("admin/orders/<int:order_id>/confirm/", views.confirm_order_view, name="confirm"),
]
