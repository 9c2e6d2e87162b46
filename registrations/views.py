import logging
import os

from django.core.exceptions import ValidationError
from django.core.files.storage import default_storage
from django.core.validators import validate_email
from django.db import transaction
from django.db.models import Q
from django.http import JsonResponse
from django.utils.text import get_valid_filename
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from payments import services
from payments.exceptions import PaymentError
from payments.models import Order
from payments.orders import RegistrationDetails
from payments.utils import generate_order_id
from payments.views import client_meta, error_response

from .forms import DOCUMENT_FIELDS, RegistrationForm
from .models import Registration

logger = logging.getLogger(__name__)


def _store_upload(order_id: str, attr: str, upload) -> str:
    name = get_valid_filename(os.path.basename(upload.name)) or "upload"
    return default_storage.save(f"registrations/{order_id}/{attr.removesuffix('_path')}_{name}", upload)


def _details_for(registration: Registration, request) -> RegistrationDetails:
    return RegistrationDetails(
        full_name=registration.full_name,
        email=registration.email,
        mobile_number=registration.mobile_number,
        convocation_year=registration.convocation_year,
        degree_name=registration.degree_name,
        **client_meta(request),
    )


def _retryable_registration(email: str):
    """The registration for ``email`` whose order never reached the gateway, if any."""
    if not email:
        return None
    return (
        Registration.objects.filter(email__iexact=email)
        .filter(Q(order__isnull=True) | Q(order__status=Order.Status.PENDING, order__gateway_order_id=""))
        .first()
    )


def _link_order(registration: Registration, order_id: str, previous: str = ""):
    if not Order.objects.filter(order_id=order_id).exists():
        return
    registration.order_id = order_id
    registration.save(update_fields=["order", "updated_at"])
    if previous and previous != order_id:
        services.supersede_order(previous, order_id)


@csrf_exempt
@require_POST
def register_view(request):
    """Store a graduation registration and open its payment order.

    Responds with the gateway redirect material the browser needs to reach
    the payment page.  If the gateway call fails the registration and its
    pending order are kept; resubmitting the same email replaces both, since
    the gateway never handed out a payment page for that order.
    """
    existing = _retryable_registration((request.POST.get("email") or "").strip())
    form = RegistrationForm(request.POST, request.FILES, instance=existing)
    if not form.is_valid():
        status = 409 if form.has_error("email", code="duplicate") else 400
        return JsonResponse({"ok": False, "errors": form.errors.get_json_data()}, status=status)

    previous = existing.order_id if existing else ""
    order_id = generate_order_id()
    with transaction.atomic():
        registration = form.save(commit=False)
        stored = dict(form.uploads())
        for attr in DOCUMENT_FIELDS.values():
            setattr(registration, attr, _store_upload(order_id, attr, stored[attr]) if attr in stored else "")
        registration.save()
    logger.info("Registration %s stored for %s; opening order %s%s", registration.pk, registration.email,
                order_id, f" (retry of {previous})" if previous else "")

    try:
        created = services.create_order(_details_for(registration, request), order_id_hint=order_id)
    except PaymentError as e:
        logger.warning("Order for registration %s failed: %s: %s", registration.pk, type(e).__name__, e)
        _link_order(registration, order_id, previous)
        return error_response(e)
    _link_order(registration, created.order_id, previous)

    return JsonResponse({
        "ok": True,
        "registration_id": registration.pk,
        "order_id": created.order_id,
        "redirect": created.redirect_material,
        "mock": created.mock,
    }, status=201)


@require_GET
def check_email_view(request):
    email = (request.GET.get("email") or "").strip()
    try:
        validate_email(email)
    except ValidationError:
        return JsonResponse({"ok": False, "error": "Valid email is required"}, status=400)
    return JsonResponse({"exists": Registration.objects.filter(email__iexact=email).exists()})
