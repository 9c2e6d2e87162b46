from django.core.validators import RegexValidator
from django.db import models


class Order(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        FAILED = "failed", "Failed"

    class Source(models.TextChoices):
        WEBHOOK = "webhook", "Webhook"
        RETURN = "return", "Browser return"
        POLL = "poll", "Reconciliation poll"

    order_id = models.CharField(
        max_length=35, unique=True, db_index=True,
        validators=[RegexValidator(r"^[A-Za-z0-9]{10,35}$")],
    )
    gateway_order_id = models.CharField(max_length=64, blank=True, default="", db_index=True)

    status = models.CharField(max_length=12, choices=Status.choices, default=Status.PENDING, db_index=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="356")  # ISO 4217 numeric, 356 = INR

    # set only by the terminal transition
    auth_status = models.CharField(max_length=8, blank=True, default="")
    transaction_id = models.CharField(max_length=64, blank=True, default="")
    transaction_date = models.DateTimeField(blank=True, null=True)
    payment_method_type = models.CharField(max_length=32, blank=True, default="")
    bank_reference = models.CharField(max_length=64, blank=True, default="")
    error_type = models.CharField(max_length=64, blank=True, default="")
    error_code = models.CharField(max_length=32, blank=True, default="")
    error_desc = models.CharField(max_length=255, blank=True, default="")
    settled_by = models.CharField(max_length=12, choices=Source.choices, blank=True, default="")
    settled_at = models.DateTimeField(blank=True, null=True)
    # set when a retry replaced this order before it ever reached the gateway
    superseded_by = models.CharField(max_length=35, blank=True, default="")

    receipt_number = models.CharField(max_length=32, unique=True, blank=True, null=True)
    receipt_generated_at = models.DateTimeField(blank=True, null=True)

    # verbatim, write-once
    raw_request_envelope = models.TextField(blank=True, default="")
    raw_order_response_envelope = models.TextField(blank=True, default="")
    raw_response_envelope = models.TextField(blank=True, default="")

    last_event_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_paid(self) -> bool:
        return self.status == self.Status.PAID

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.Status.PAID, self.Status.FAILED)

    def __str__(self):
        return f"{self.order_id} ({self.status})"


class PaymentNotification(models.Model):
    """Append-only log of every gateway delivery we looked at."""

    class Outcome(models.TextChoices):
        APPLIED = "applied", "Applied"
        REPLAYED = "replayed", "Replayed (no-op)"
        CONFLICT = "conflict", "Conflicting terminal status"
        IGNORED = "ignored", "Ignored (non-terminal or display only)"
        REJECTED = "rejected", "Rejected envelope"
        UNKNOWN_ORDER = "unknown_order", "Unknown order"

    order_id = models.CharField(max_length=35, blank=True, default="", db_index=True)
    source = models.CharField(max_length=12, choices=Order.Source.choices)
    raw_envelope = models.TextField(blank=True, default="")
    payload = models.JSONField(blank=True, null=True)  # only ever a verified payload
    outcome = models.CharField(max_length=16, choices=Outcome.choices)
    detail = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self):
        return f"{self.source}:{self.order_id or '?'} {self.outcome}"
