from django.contrib import admin

from .models import Registration


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):
    list_display = ("full_name", "email", "mobile_number", "degree_name", "convocation_year",
                    "order", "payment_status", "created_at")
    search_fields = ("full_name", "email", "mobile_number", "aadhar_number", "order__order_id")
    list_filter = ("convocation_year", "degree_pattern", "lunch_required", "created_at")
    list_select_related = ("order",)
    readonly_fields = ("order", "created_at", "updated_at")

    @admin.display(description="Payment")
    def payment_status(self, obj):
        return obj.payment_status or "-"
