from decimal import Decimal
from urllib.parse import urlencode

from django.test import TestCase
from django.urls import reverse

from . import services
from .config import get_gateway_config
from .exceptions import OrderNotFound
from .integrations.billdesk import BillDeskAdapter
from .models import Order, PaymentNotification

ORDER_ID = "GRD250101120000ABCD1234"


def transaction_payload(auth_status="0300", **extra):
    payload = {
        "objectid": "transaction",
        "orderid": ORDER_ID,
        "mercid": "GRADUATKTK",
        "bdorderid": "OAFC23XYZ",
        "transactionid": "U1230001234567",
        "amount": "500.00",
        "auth_status": auth_status,
        "transaction_date": "2025-01-01T12:05:00+05:30",
        "payment_method": {"type": "upi"},
        "bank_ref_no": "BR123",
    }
    payload.update(extra)
    return payload


class WebhookTests(TestCase):
    def setUp(self):
        self.codec = get_gateway_config().codec
        self.order = Order.objects.create(order_id=ORDER_ID, amount=Decimal("500.00"), currency="356")
        self.url = reverse("payments:webhook")

    def _post_jose(self, payload):
        return self.client.post(self.url, data=self.codec.encode(payload), content_type="application/jose")

    def test_success_marks_paid_with_receipt(self):
        resp = self._post_jose(transaction_payload("0300"))

        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PAID)
        self.assertRegex(self.order.receipt_number, r"^RCP\d+$")
        self.assertIsNotNone(self.order.receipt_generated_at)
        self.assertEqual(self.order.settled_by, Order.Source.WEBHOOK)
        self.assertEqual(self.order.transaction_id, "U1230001234567")
        self.assertEqual(self.order.payment_method_type, "upi")
        self.assertEqual(self.order.bank_reference, "BR123")
        self.assertEqual(self.order.gateway_order_id, "OAFC23XYZ")
        self.assertTrue(self.order.raw_response_envelope)

    def test_replayed_success_keeps_the_first_receipt(self):
        self._post_jose(transaction_payload("0300"))
        self.order.refresh_from_db()
        receipt, raw = self.order.receipt_number, self.order.raw_response_envelope

        resp = self._post_jose(transaction_payload("0300"))

        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PAID)
        self.assertEqual(self.order.receipt_number, receipt)
        self.assertEqual(self.order.raw_response_envelope, raw)
        self.assertIsNotNone(self.order.last_event_at)
        outcomes = list(PaymentNotification.objects.order_by("pk").values_list("outcome", flat=True))
        self.assertEqual(outcomes, ["applied", "replayed"])

    def test_cancelled_payment_is_failed_without_receipt(self):
        resp = self._post_jose(transaction_payload(
            "0399",
            transaction_error_type="user_cancelled",
            transaction_error_code="TRPPE0001",
            transaction_error_desc="Payment cancelled by user",
        ))

        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.FAILED)
        self.assertEqual(self.order.error_desc, "Payment cancelled by user")
        self.assertEqual(self.order.error_code, "TRPPE0001")
        self.assertIsNone(self.order.receipt_number)

    def test_failure_after_paid_is_a_logged_conflict(self):
        self._post_jose(transaction_payload("0300"))
        self.order.refresh_from_db()
        receipt = self.order.receipt_number

        with self.assertLogs("payments.services", level="WARNING") as cm:
            resp = self._post_jose(transaction_payload("0399", transaction_error_desc="late failure"))

        self.assertEqual(resp.status_code, 200)
        self.assertIn("CONFLICT", cm.output[0])
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PAID)
        self.assertEqual(self.order.receipt_number, receipt)
        self.assertEqual(self.order.error_desc, "")
        self.assertTrue(PaymentNotification.objects.filter(outcome="conflict").exists())

    def test_pending_code_changes_nothing(self):
        self._post_jose(transaction_payload("0002"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)
        self.assertEqual(PaymentNotification.objects.get().outcome, "ignored")

    def test_bad_signature_is_acknowledged_but_not_applied(self):
        head, body, sig = self.codec.encode(transaction_payload("0300")).split(".")
        tampered = ".".join([head, body, ("A" if sig[0] != "A" else "B") + sig[1:]])

        with self.assertLogs("payments", level="WARNING") as cm:
            resp = self.client.post(self.url, data=tampered, content_type="application/jose")

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(any("signature" in line for line in cm.output))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)
        note = PaymentNotification.objects.get()
        self.assertEqual(note.outcome, "rejected")
        self.assertIsNone(note.payload)

    def test_form_encoded_envelope(self):
        body = urlencode({"transaction_response": self.codec.encode(transaction_payload("0300"))})
        resp = self.client.post(self.url, data=body, content_type="application/x-www-form-urlencoded")
        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertTrue(self.order.is_paid)

    def test_empty_body_is_acknowledged(self):
        resp = self.client.post(self.url, data="", content_type="application/jose")
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(PaymentNotification.objects.exists())

    def test_unknown_order_is_acknowledged_and_recorded(self):
        resp = self._post_jose(transaction_payload("0300", orderid="GRD250101120000ZZZZ9999"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(PaymentNotification.objects.get().outcome, "unknown_order")

    def test_get_is_not_allowed(self):
        self.assertEqual(self.client.get(self.url).status_code, 405)


class StateMachineTests(TestCase):
    def setUp(self):
        self.adapter = BillDeskAdapter()
        Order.objects.create(order_id=ORDER_ID, amount=Decimal("500.00"))

    def _apply(self, auth_status, source=Order.Source.WEBHOOK, **extra):
        result = self.adapter.parse(transaction_payload(auth_status, **extra))
        return services.apply_gateway_result(result, source=source, raw_envelope="raw")

    def test_first_terminal_status_wins_across_sources(self):
        first = self._apply("0399", source=Order.Source.POLL)
        second = self._apply("0300", source=Order.Source.WEBHOOK)
        self.assertTrue(first.changed)
        self.assertEqual(second.outcome, "conflict")
        order = Order.objects.get()
        self.assertEqual(order.status, Order.Status.FAILED)
        self.assertEqual(order.settled_by, Order.Source.POLL)
        self.assertIsNone(order.receipt_number)

    def test_browser_return_may_not_settle(self):
        with self.assertRaises(ValueError):
            self._apply("0300", source=Order.Source.RETURN)
        self.assertEqual(Order.objects.get().status, Order.Status.PENDING)

    def test_gateway_order_id_is_not_overwritten(self):
        Order.objects.update(gateway_order_id="OFIRST")
        self._apply("0300", bdorderid="OSECOND")
        self.assertEqual(Order.objects.get().gateway_order_id, "OFIRST")

    def test_amount_mismatch_is_logged(self):
        with self.assertLogs("payments.services", level="WARNING") as cm:
            self._apply("0300", amount="1.00")
        self.assertIn("Amount mismatch", cm.output[0])
        self.assertEqual(Order.objects.get().status, Order.Status.PAID)

    def test_unknown_order(self):
        result = self.adapter.parse(transaction_payload("0300", orderid="GRD250101120000ZZZZ9999"))
        with self.assertRaises(OrderNotFound):
            services.apply_gateway_result(result, source=Order.Source.WEBHOOK)
        self.assertEqual(PaymentNotification.objects.get().outcome, "unknown_order")
