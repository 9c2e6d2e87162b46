from django.urls import path

from . import views, webhook

app_name = "payments"
urlpatterns = [
    path("orders", views.create_order_view, name="create_order"),
    path("status/<str:order_id>", views.order_status_view, name="order_status"),
    path("return", views.return_view, name="return"),  # BILLDESK['RETURN_URL']
    path("webhook", webhook.billdesk_webhook, name="webhook"),
]
