import json
from decimal import Decimal
from unittest.mock import patch

import requests
from django.test import TestCase
from django.urls import reverse

from .config import get_gateway_config
from .models import Order, PaymentNotification
from .utils import ORDER_ID_RE

ORDER_ID = "GRD250101120000ABCD1234"


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text


def gateway_echo(codec):
    """A fake /orders/create that answers with the order it was sent."""

    def post(url, data=None, headers=None, timeout=None):
        order = codec.decode(data)
        bdorderid = "OA" + order["orderid"][-10:]
        return FakeResponse(200, codec.encode({
            "objectid": "order",
            "orderid": order["orderid"],
            "bdorderid": bdorderid,
            "mercid": order["mercid"],
            "amount": order["amount"],
            "links": [{"rel": "payment", "href": "https://uat.example-gateway.test/pay", "method": "POST",
                       "parameters": {"mercid": order["mercid"], "bdorderid": bdorderid, "rdata": "r"}}],
        }))

    return post


class CreateOrderViewTests(TestCase):
    def setUp(self):
        self.codec = get_gateway_config().codec
        self.url = reverse("payments:create_order")
        self.body = {
            "full_name": "Priya Raman",
            "email": "priya@example.com",
            "mobile_number": "9876543210",
            "convocation_year": "2025",
            "degree_name": "B.Sc. Physics",
        }

    def _post(self, body):
        return self.client.post(self.url, data=json.dumps(body), content_type="application/json",
                                HTTP_USER_AGENT="pytest-browser")

    def test_creates_pending_order_and_returns_redirect(self):
        with patch("payments.integrations.billdesk.requests.post", side_effect=gateway_echo(self.codec)) as post:
            resp = self._post(self.body)

        self.assertEqual(resp.status_code, 201)
        data = resp.json()
        self.assertRegex(data["order_id"], ORDER_ID_RE)
        self.assertEqual(data["redirect"]["href"], "https://uat.example-gateway.test/pay")
        self.assertEqual(data["redirect"]["parameters"]["rdata"], "r")
        self.assertFalse(data["mock"])

        order = Order.objects.get(order_id=data["order_id"])
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.amount, Decimal("500.00"))
        self.assertEqual(order.gateway_order_id, data["gateway_order_id"])
        self.assertEqual(order.raw_request_envelope, post.call_args.kwargs["data"])
        self.assertTrue(order.raw_order_response_envelope)
        sent = self.codec.decode(order.raw_request_envelope)
        self.assertEqual(sent["device"]["user_agent"], "pytest-browser")

    def test_gateway_timeout_is_503_and_order_stays_pending(self):
        with patch("payments.integrations.billdesk.requests.post", side_effect=requests.Timeout("slow")):
            resp = self._post(self.body)
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json()["type"], "GatewayUnavailable")
        order = Order.objects.get()
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.gateway_order_id, "")

    def test_gateway_rejection_is_502(self):
        error = self.codec.encode({"status": 422, "message": "Invalid amount"})
        with patch("payments.integrations.billdesk.requests.post", return_value=FakeResponse(422, error)):
            resp = self._post(self.body)
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json()["gateway_status"], 422)

    def test_validation_errors_are_400(self):
        with patch("payments.integrations.billdesk.requests.post") as post:
            missing = self._post({k: v for k, v in self.body.items() if k != "email"})
            bad_ru = self._post({**self.body, "return_url": "https://x/y?z=1"})
            bad_json = self.client.post(self.url, data="{not json", content_type="application/json")
        post.assert_not_called()
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(bad_ru.status_code, 400)
        self.assertEqual(bad_json.status_code, 400)

    def test_duplicate_order_id_is_409(self):
        Order.objects.create(order_id=ORDER_ID, amount=Decimal("500.00"))
        resp = self._post({**self.body, "order_id": ORDER_ID})
        self.assertEqual(resp.status_code, 409)


class OrderStatusViewTests(TestCase):
    def setUp(self):
        self.codec = get_gateway_config().codec
        Order.objects.create(order_id=ORDER_ID, amount=Decimal("500.00"))

    def test_unknown_order_is_404(self):
        resp = self.client.get(reverse("payments:order_status", args=["GRD250101120000ZZZZ9999"]))
        self.assertEqual(resp.status_code, 404)

    def test_reads_stored_status_without_network(self):
        with patch("payments.integrations.billdesk.requests.post") as post:
            resp = self.client.get(reverse("payments:order_status", args=[ORDER_ID]))
        post.assert_not_called()
        self.assertEqual(resp.json()["status"], "pending")
        self.assertIsNone(resp.json()["receipt_number"])

    def test_refresh_polls_the_gateway(self):
        body = self.codec.encode({"orderid": ORDER_ID, "auth_status": "0300", "transactionid": "TX1"})
        with patch("payments.integrations.billdesk.requests.post", return_value=FakeResponse(200, body)):
            resp = self.client.get(reverse("payments:order_status", args=[ORDER_ID]), {"refresh": "1"})
        data = resp.json()
        self.assertEqual(data["status"], "paid")
        self.assertTrue(data["receipt_number"].startswith("RCP"))
        self.assertEqual(Order.objects.get().settled_by, Order.Source.POLL)


class ReturnViewTests(TestCase):
    def setUp(self):
        self.codec = get_gateway_config().codec
        self.url = reverse("payments:return")
        self.order = Order.objects.create(order_id=ORDER_ID, amount=Decimal("500.00"))

    def test_success_envelope_does_not_settle(self):
        envelope = self.codec.encode({"orderid": ORDER_ID, "auth_status": "0300"})
        with patch("payments.integrations.billdesk.requests.post") as post:
            resp = self.client.post(self.url, {"transaction_response": envelope})
        post.assert_not_called()
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "confirming your payment")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)
        note = PaymentNotification.objects.get()
        self.assertEqual((note.source, note.outcome, note.order_id), ("return", "ignored", ORDER_ID))

    def test_shows_settled_order(self):
        Order.objects.filter(order_id=ORDER_ID).update(status=Order.Status.PAID, receipt_number="RCP20250101120500000001")
        envelope = self.codec.encode({"orderid": ORDER_ID, "auth_status": "0300"})
        resp = self.client.get(self.url, {"msg": envelope})
        self.assertContains(resp, "RCP20250101120500000001")

    def test_garbage_renders_processing_page(self):
        with self.assertLogs("payments.views", level="WARNING"):
            resp = self.client.post(self.url, {"transaction_response": "not.a.token"})
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "confirming your payment")
        self.assertEqual(PaymentNotification.objects.get().outcome, "rejected")

    def test_empty_request(self):
        resp = self.client.get(self.url)
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, "confirming your payment")

    def test_query_string_order_id_is_not_trusted(self):
        Order.objects.filter(order_id=ORDER_ID).update(status=Order.Status.PAID, receipt_number="RCP20250101120500000002")
        with self.assertLogs("payments.views", level="WARNING"):
            resp = self.client.post(f"{self.url}?orderid={ORDER_ID}", {"transaction_response": "not.a.token"})
        self.assertContains(resp, "confirming your payment")
        self.assertNotContains(resp, "RCP20250101120500000002")
        self.assertNotContains(resp, ORDER_ID)

        resp = self.client.get(self.url, {"orderid": ORDER_ID})
        self.assertContains(resp, "confirming your payment")
        self.assertNotContains(resp, ORDER_ID)
