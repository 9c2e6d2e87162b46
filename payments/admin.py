from django.contrib import admin

from .models import Order, PaymentNotification


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_id", "status", "amount", "currency", "receipt_number", "settled_by", "created_at")
    search_fields = ("order_id", "gateway_order_id", "transaction_id", "bank_reference", "receipt_number",
                     "superseded_by")
    list_filter = ("status", "settled_by", "currency", "created_at")
    readonly_fields = (
        "status", "gateway_order_id", "auth_status", "transaction_id", "transaction_date",
        "receipt_number", "receipt_generated_at", "settled_by", "settled_at", "superseded_by",
        "raw_request_envelope", "raw_order_response_envelope", "raw_response_envelope",
        "last_event_at", "created_at", "updated_at",
    )


@admin.register(PaymentNotification)
class PaymentNotificationAdmin(admin.ModelAdmin):
    list_display = ("order_id", "source", "outcome", "detail", "created_at")
    search_fields = ("order_id",)
    list_filter = ("source", "outcome", "created_at")
    readonly_fields = ("order_id", "source", "raw_envelope", "payload", "outcome", "detail", "created_at")

    def has_add_permission(self, request):
        return False
