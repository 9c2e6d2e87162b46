import json
import logging

from django.http import HttpResponseBadRequest, JsonResponse
from django.shortcuts import render
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from . import services
from .config import get_gateway_config
from .exceptions import (
    DuplicateOrderId,
    EnvelopeError,
    GatewayError,
    GatewayUnavailable,
    OrderNotFound,
    PaymentError,
    ValidationError,
)
from .inbound import parse_inbound
from .models import Order, PaymentNotification
from .orders import RegistrationDetails

logger = logging.getLogger(__name__)

ERROR_STATUS = (
    (ValidationError, 400),
    (OrderNotFound, 404),
    (DuplicateOrderId, 409),
    (GatewayUnavailable, 503),
    (GatewayError, 502),
    (EnvelopeError, 502),
)
DETAIL_FIELDS = ("full_name", "email", "mobile_number", "convocation_year", "degree_name")


def _json_body(request):
    try:
        body = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    return body if isinstance(body, dict) else None


def error_response(exc: PaymentError) -> JsonResponse:
    status = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
    payload = {"ok": False, "error": str(exc), "type": type(exc).__name__}
    if isinstance(exc, GatewayError) and exc.status_code:
        payload["gateway_status"] = exc.status_code
    return JsonResponse(payload, status=status)


def client_meta(request) -> dict:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    return {
        "ip": forwarded.split(",")[0].strip() or request.META.get("REMOTE_ADDR", ""),
        "user_agent": request.META.get("HTTP_USER_AGENT", ""),
        "accept_header": request.META.get("HTTP_ACCEPT", ""),
    }


def order_as_dict(order: Order) -> dict:
    return {
        "order_id": order.order_id,
        "status": order.status,
        "amount": str(order.amount),
        "currency": order.currency,
        "gateway_order_id": order.gateway_order_id,
        "transaction_id": order.transaction_id,
        "payment_method_type": order.payment_method_type,
        "bank_reference": order.bank_reference,
        "error_code": order.error_code,
        "error_desc": order.error_desc,
        "receipt_number": order.receipt_number,
        "settled_at": order.settled_at.isoformat() if order.settled_at else None,
    }


def created_order_response(created: services.CreatedOrder, status=201) -> JsonResponse:
    return JsonResponse({
        "ok": True,
        "order_id": created.order_id,
        "gateway_order_id": created.gateway_order_id,
        "redirect": created.redirect_material,
        "mock": created.mock,
    }, status=status)


@csrf_exempt
@require_POST
def create_order_view(request):
    body = _json_body(request)
    if body is None:
        return HttpResponseBadRequest("Invalid JSON body")
    missing = [k for k in DETAIL_FIELDS if not str(body.get(k) or "").strip()]
    if missing:
        return JsonResponse({"ok": False, "error": f"Missing fields: {', '.join(missing)}",
                             "type": "ValidationError"}, status=400)

    details = RegistrationDetails(
        **{k: str(body[k]).strip() for k in DETAIL_FIELDS},
        purpose=body.get("purpose") or RegistrationDetails.purpose,
        amount=body.get("amount"),
        currency=body.get("currency"),
        return_url=body.get("return_url"),
        **client_meta(request),
    )
    try:
        created = services.create_order(details, order_id_hint=body.get("order_id") or None)
    except PaymentError as e:
        logger.warning("Create order failed: %s: %s", type(e).__name__, e)
        return error_response(e)
    return created_order_response(created)


@require_GET
def order_status_view(request, order_id: str):
    try:
        if request.GET.get("refresh") in ("1", "true", "yes"):
            order = services.refresh_order_status(order_id)
        else:
            order = services.get_order_status(order_id)
    except PaymentError as e:
        if not isinstance(e, OrderNotFound):
            logger.warning("Status refresh for %s failed: %s: %s", order_id, type(e).__name__, e)
        return error_response(e)
    return JsonResponse({"ok": True, **order_as_dict(order)})


def _peek_return_payload(envelope: str):
    """Decode the browser-carried envelope for display only; None if it does not verify."""
    if not envelope:
        return None
    try:
        return get_gateway_config().codec.decode(envelope)
    except EnvelopeError as e:
        logger.warning("Return envelope rejected at %s stage: %s", e.stage, e)
        return None


@csrf_exempt
def return_view(request):
    """Where the customer's browser lands after the payment page.

    The browser is not an authoritative source: nothing here moves an order
    out of ``pending``.  The page shows what the database already knows and
    otherwise tells the customer the payment is being confirmed.
    """
    order = None
    ctx = {"order": None, "status": Order.Status.PENDING, "processing": True}
    try:
        body = parse_inbound(request)
        envelope = body.envelope
        payload = _peek_return_payload(envelope)
        # only a verified payload may name the order to display
        order_id = str((payload or {}).get("orderid") or "")
        if envelope:
            services.record_notification(
                order_id=order_id,
                source=Order.Source.RETURN,
                raw_envelope=envelope,
                payload=payload,
                outcome=PaymentNotification.Outcome.IGNORED if payload else PaymentNotification.Outcome.REJECTED,
                detail=f"browser reported auth_status={payload.get('auth_status', '-')}" if payload else "unverified",
            )
        if order_id:
            order = Order.objects.filter(order_id=order_id).first()
    except Exception:
        logger.exception("Return page could not read the gateway response")

    if order is not None:
        ctx.update(order=order, status=order.status, processing=not order.is_terminal)
    return render(request, "payments/return.html", ctx)
