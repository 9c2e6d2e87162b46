# payments/services.py
"""Order creation and the payment status state machine.

``pending -> paid | failed``; terminal states never change.  Every transition
is one conditional UPDATE guarded on ``status = 'pending'`` so a webhook and
a reconciliation poll racing on the same order cannot both win, even across
processes.  The first terminal observation is kept; a later contradicting
one is logged loudly and recorded, never applied.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Case, F, Value, When
from django.utils import timezone

from .config import get_gateway_config
from .exceptions import (
    DuplicateOrderId,
    EnvelopeError,
    GatewayError,
    GatewayUnavailable,
    OrderNotFound,
    ValidationError,
)
from .integrations.base import GatewayResult
from .integrations.billdesk import BillDeskClient
from .models import Order, PaymentNotification
from .orders import OrderTokenFactory, RegistrationDetails
from .utils import gen_receipt_number, is_valid_order_id

logger = logging.getLogger(__name__)

Outcome = PaymentNotification.Outcome
AUTHORITATIVE_SOURCES = (Order.Source.WEBHOOK, Order.Source.POLL)


@dataclass
class CreatedOrder:
    order_id: str
    token: str
    redirect_material: dict
    gateway_order_id: str = ""
    mock: bool = False


@dataclass
class TransitionResult:
    order_id: str
    outcome: str
    status: str
    receipt_number: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.outcome == Outcome.APPLIED


def _clip(value, length):
    return (value or "")[:length]


def record_notification(*, order_id, source, raw_envelope="", payload=None, outcome, detail=""):
    return PaymentNotification.objects.create(
        order_id=_clip(order_id, 35),
        source=source,
        raw_envelope=raw_envelope or "",
        payload=payload,
        outcome=outcome,
        detail=_clip(detail, 255),
    )


# ---------- Order creation ----------
def _persist_pending(factory, details, order_id_hint):
    for attempt in range(2):
        order_token = factory.create_order(details, order_id_hint)
        try:
            with transaction.atomic():
                order = Order.objects.create(
                    order_id=order_token.order_id,
                    amount=Decimal(order_token.payload["amount"]),
                    currency=order_token.payload["currency"],
                    status=Order.Status.PENDING,
                    raw_request_envelope=order_token.token,
                )
            return order_token, order
        except IntegrityError:
            if order_id_hint or attempt:
                raise DuplicateOrderId(f"order_id {order_token.order_id} collided on insert")
            logger.warning("order_id %s collided on insert; regenerating", order_token.order_id)


def create_order(details: RegistrationDetails, *, config=None, client=None, order_id_hint=None) -> CreatedOrder:
    """Persist a pending order, register it with the gateway, return redirect material.

    Typed errors (ValidationError, DuplicateOrderId, GatewayUnavailable,
    GatewayError, EnvelopeError) propagate to the caller.  When the gateway
    call fails the order stays ``pending`` and reconciliation picks it up.
    """
    config = config or get_gateway_config()
    client = client or BillDeskClient(config)
    factory = OrderTokenFactory(config, codec=client.codec)

    order_token, order = _persist_pending(factory, details, order_id_hint)
    logger.info("Created pending order %s amount=%s currency=%s mock=%s",
                order.order_id, order.amount, order.currency, client.is_mock)

    response = client.create_order(order_token.token, order_id=order.order_id)
    echoed = response.data.get("orderid")
    if echoed and echoed != order.order_id:
        logger.error("Gateway echoed orderid=%s for order %s", echoed, order.order_id)
        raise GatewayError(f"Gateway returned a different orderid ({echoed}) for {order.order_id}",
                           detail=response.data)

    gateway_order_id = _clip(str(response.data.get("bdorderid") or ""), 64)
    Order.objects.filter(pk=order.pk, gateway_order_id="", raw_order_response_envelope="").update(
        gateway_order_id=gateway_order_id,
        raw_order_response_envelope=response.raw,
        updated_at=timezone.now(),
    )
    return CreatedOrder(
        order_id=order.order_id,
        token=order_token.token,
        redirect_material=response.redirect_material(),
        gateway_order_id=gateway_order_id,
        mock=response.mock,
    )


def get_order_status(order_id: str) -> Order:
    try:
        return Order.objects.get(order_id=order_id)
    except Order.DoesNotExist:
        raise OrderNotFound(f"No order with order_id {order_id}")


def supersede_order(order_id: str, replacement_id: str) -> bool:
    """Retire a pending order the gateway never acknowledged in favour of ``replacement_id``.

    Only an order without a ``gateway_order_id`` qualifies: no payment page
    was ever handed out for it, so nothing can settle it.  The status is left
    alone; reconciliation simply stops polling it.
    """
    updated = Order.objects.filter(
        order_id=order_id, status=Order.Status.PENDING, gateway_order_id="", superseded_by="",
    ).exclude(order_id=replacement_id).update(superseded_by=replacement_id, updated_at=timezone.now())
    if updated:
        logger.info("Order %s superseded by %s", order_id, replacement_id)
    return bool(updated)


# ---------- State machine ----------
def _terminal_fields(result: GatewayResult, source, raw_envelope, now) -> dict:
    fields = {
        "status": result.outcome,
        "auth_status": _clip(result.auth_status, 8),
        "transaction_id": _clip(result.transaction_id, 64),
        "transaction_date": result.transaction_date,
        "payment_method_type": _clip(result.payment_method_type, 32),
        "bank_reference": _clip(result.bank_reference, 64),
        "error_type": _clip(result.error_type, 64),
        "error_code": _clip(result.error_code, 32),
        "error_desc": _clip(result.error_desc, 255),
        "settled_by": source,
        "settled_at": now,
        "raw_response_envelope": raw_envelope or "",
        "last_event_at": now,
        "updated_at": now,
    }
    if result.gateway_order_id:
        fields["gateway_order_id"] = Case(
            When(gateway_order_id="", then=Value(_clip(result.gateway_order_id, 64))),
            default=F("gateway_order_id"),
        )
    if result.outcome == Order.Status.PAID:
        # Only reachable from pending, so a receipt is minted once per order.
        fields["receipt_number"] = gen_receipt_number()
        fields["receipt_generated_at"] = now
    return fields


def _check_amount(order_id, reported):
    if not reported:
        return
    try:
        expected = Order.objects.filter(order_id=order_id).values_list("amount", flat=True).first()
        if expected is not None and Decimal(str(reported)) != expected:
            logger.warning("Amount mismatch on %s: order=%s gateway=%s", order_id, expected, reported)
    except InvalidOperation:
        logger.warning("Unparseable amount %r reported for %s", reported, order_id)


def apply_gateway_result(result: GatewayResult, *, source, raw_envelope="") -> TransitionResult:
    """Apply a verified gateway result from an authoritative source.

    Returns what happened: ``applied`` (pending -> terminal), ``replayed``
    (same terminal status again, only ``last_event_at`` moves), ``conflict``
    (different terminal status, ignored), or ``ignored`` (non-terminal).
    Raises OrderNotFound for an unknown order id.
    """
    if source not in AUTHORITATIVE_SOURCES:
        raise ValueError(f"{source!r} may not change payment status")
    order_id = result.order_id
    if not is_valid_order_id(order_id):
        raise ValidationError(f"Gateway result carries an invalid orderid: {order_id!r}")

    if not Order.objects.filter(order_id=order_id).exists():
        record_notification(order_id=order_id, source=source, raw_envelope=raw_envelope,
                            payload=result.payload, outcome=Outcome.UNKNOWN_ORDER)
        raise OrderNotFound(f"No order with order_id {order_id}")

    now = timezone.now()
    with transaction.atomic():
        if result.is_terminal:
            updated = Order.objects.filter(order_id=order_id, status=Order.Status.PENDING).update(
                **_terminal_fields(result, source, raw_envelope, now)
            )
        else:
            updated = 0
        status, receipt_number = (
            Order.objects.filter(order_id=order_id).values_list("status", "receipt_number").get()
        )

        if updated:
            outcome, detail = Outcome.APPLIED, f"pending -> {status}"
            logger.info("Order %s %s via %s (auth_status=%s receipt=%s)",
                        order_id, status, source, result.auth_status, receipt_number)
            if status == Order.Status.PAID:
                _check_amount(order_id, result.amount)
        elif not result.is_terminal:
            outcome, detail = Outcome.IGNORED, f"non-terminal auth_status={result.auth_status or '-'}"
            logger.info("Order %s: %s via %s reports %s; no change", order_id, status, source, detail)
        else:
            Order.objects.filter(order_id=order_id).update(last_event_at=now)
            if status == result.outcome:
                outcome, detail = Outcome.REPLAYED, f"already {status}"
                logger.info("Order %s already %s; %s replay ignored", order_id, status, source)
            else:
                outcome, detail = Outcome.CONFLICT, f"stored {status}, {source} reported {result.outcome}"
                logger.warning(
                    "PAYMENT STATUS CONFLICT on order %s: stored=%s but %s reports %s (auth_status=%s). "
                    "Keeping the first terminal status; investigate out of band.",
                    order_id, status, source, result.outcome, result.auth_status,
                )

        record_notification(order_id=order_id, source=source, raw_envelope=raw_envelope,
                            payload=result.payload, outcome=outcome, detail=detail)

    return TransitionResult(order_id=order_id, outcome=outcome, status=status, receipt_number=receipt_number)


def process_envelope(raw_envelope: str, *, source, config=None) -> TransitionResult:
    """Verify + decode an inbound envelope and feed it to the state machine."""
    config = config or get_gateway_config()
    try:
        payload = config.codec.decode(raw_envelope)
    except EnvelopeError as e:
        logger.error("Rejected %s envelope at %s stage: %s", source, e.stage, e)
        record_notification(order_id="", source=source, raw_envelope=raw_envelope,
                            outcome=Outcome.REJECTED, detail=f"{e.stage}: {e}")
        raise
    result = config.gateway_adapter.parse(payload)
    return apply_gateway_result(result, source=source, raw_envelope=raw_envelope)


def poll_order(order_id: str, *, config=None, client=None) -> TransitionResult:
    """Ask the gateway for the order's transaction and apply what it reports."""
    config = config or get_gateway_config()
    client = client or BillDeskClient(config)
    if client.is_mock:
        # a fabricated answer must never settle a real order
        raise GatewayUnavailable(
            f"Gateway not configured (missing {', '.join(config.status.missing)}); cannot poll {order_id}"
        )
    response = client.retrieve_transaction(order_id)
    result = config.gateway_adapter.parse(response.data)
    if result.order_id and result.order_id != order_id:
        raise GatewayError(f"Gateway returned orderid {result.order_id} for {order_id}", detail=response.data)
    if not result.order_id:
        # error objects and "no transaction yet" answers carry no orderid
        result.order_id = order_id
    return apply_gateway_result(result, source=Order.Source.POLL, raw_envelope=response.raw)


def refresh_order_status(order_id: str, *, config=None, client=None) -> Order:
    order = get_order_status(order_id)
    if order.status == Order.Status.PENDING:
        poll_order(order_id, config=config, client=client)
        order.refresh_from_db()
    return order
