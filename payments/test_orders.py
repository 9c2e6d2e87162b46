from unittest.mock import patch

from django.test import SimpleTestCase, TestCase

from . import services
from .config import get_gateway_config
from .exceptions import DuplicateOrderId, ValidationError
from .models import Order
from .orders import (
    OrderTokenFactory,
    RegistrationDetails,
    build_additional_info,
    sanitize_info_value,
    validate_callback_urls,
)
from .utils import ORDER_ID_RE, TRACE_ID_RE, amount_str, compact_timestamp, gen_receipt_number, new_trace_id


def make_details(**overrides):
    fields = dict(
        full_name="PRIYA RAMAN",
        email="priya@example.com",
        mobile_number="9876543210",
        convocation_year="2025",
        degree_name="B.Sc. Physics",
        amount="500.00",
        currency="356",
    )
    fields.update(overrides)
    return RegistrationDetails(**fields)


class HelperTests(SimpleTestCase):
    def test_additional_info_is_padded_with_na(self):
        info = build_additional_info(["Priya", "", None], 5)
        self.assertEqual(info, {
            "additional_info1": "Priya",
            "additional_info2": "NA",
            "additional_info3": "NA",
            "additional_info4": "NA",
            "additional_info5": "NA",
        })

    def test_additional_info_is_truncated_to_slots(self):
        info = build_additional_info([str(i) for i in range(1, 10)], 7)
        self.assertEqual(list(info), [f"additional_info{i}" for i in range(1, 8)])

    def test_sanitize_strips_disallowed_characters(self):
        self.assertEqual(sanitize_info_value("Priya <script>  R&aman"), "Priya script Raman")
        self.assertEqual(sanitize_info_value("priya@example.com"), "priya@example.com")
        self.assertEqual(sanitize_info_value("&&&"), "")

    def test_callback_urls_reject_query_strings(self):
        for url in ("https://x/y?z=1", "https://x/y&z=1"):
            with self.subTest(url=url), self.assertRaises(ValidationError):
                validate_callback_urls(ru=url)
        with self.assertRaises(ValidationError):
            validate_callback_urls(ru="")
        validate_callback_urls(ru="https://register.example.test/payments/return")

    def test_amount_is_two_decimal_string(self):
        self.assertEqual(amount_str(500), "500.00")
        self.assertEqual(amount_str("499.995"), "500.00")
        for bad in ("0", "-1", "abc", None):
            with self.subTest(bad=bad), self.assertRaises(ValidationError):
                amount_str(bad)

    def test_trace_ids_match_gateway_format(self):
        ids = {new_trace_id() for _ in range(50)}
        self.assertEqual(len(ids), 50)
        for trace_id in ids:
            self.assertRegex(trace_id, TRACE_ID_RE)

    def test_compact_timestamp_format(self):
        self.assertRegex(compact_timestamp(), r"^\d{14}$")

    def test_receipt_number_format(self):
        self.assertRegex(gen_receipt_number(), r"^RCP\d{20}$")


class OrderTokenFactoryTests(TestCase):
    def setUp(self):
        self.config = get_gateway_config()
        self.factory = OrderTokenFactory(self.config)

    def test_registration_fee_order(self):
        order_token = self.factory.create_order(make_details())

        self.assertRegex(order_token.order_id, ORDER_ID_RE)
        self.assertEqual(order_token.token.count("."), 2)
        payload = self.config.codec.decode(order_token.token)
        self.assertEqual(payload, order_token.payload)
        self.assertEqual(payload["objectid"], "order")
        self.assertEqual(payload["mercid"], "GRADUATKTK")
        self.assertEqual(payload["orderid"], order_token.order_id)
        self.assertEqual(payload["amount"], "500.00")
        self.assertEqual(payload["currency"], "356")
        self.assertEqual(payload["itemcode"], "DIRECT")
        self.assertEqual(payload["ru"], "https://register.example.test/payments/return")
        self.assertEqual(payload["device"]["init_channel"], "internet")

    def test_additional_info_carries_registration(self):
        payload = self.factory.create_order(make_details()).payload
        info = payload["additional_info"]
        self.assertEqual(len(info), self.config.additional_info_slots)
        self.assertEqual(info["additional_info1"], "PRIYA RAMAN")
        self.assertEqual(info["additional_info2"], "priya@example.com")
        self.assertEqual(info["additional_info4"], payload["orderid"])
        self.assertEqual(info["additional_info7"], "B.Sc. Physics")

    def test_fee_and_currency_default_from_config(self):
        payload = self.factory.create_order(make_details(amount=None, currency=None)).payload
        self.assertEqual(payload["amount"], "500.00")
        self.assertEqual(payload["currency"], "356")

    def test_order_id_hint(self):
        self.assertEqual(self.factory.create_order(make_details(), "GRDHINT000000001").order_id, "GRDHINT000000001")
        with self.assertRaises(ValidationError):
            self.factory.create_order(make_details(), "short")
        with self.assertRaises(ValidationError):
            self.factory.create_order(make_details(), "GRD-HINT-0000001")

    def test_used_order_id_hint_is_a_duplicate(self):
        Order.objects.create(order_id="GRDHINT000000002", amount="500.00")
        with self.assertRaises(DuplicateOrderId):
            self.factory.create_order(make_details(), "GRDHINT000000002")


class CreateOrderServiceTests(TestCase):
    def test_return_url_with_query_fails_before_any_network_call(self):
        with patch("payments.integrations.billdesk.requests.post") as post:
            with self.assertRaises(ValidationError):
                services.create_order(make_details(return_url="https://x/y?z=1"))
        post.assert_not_called()
        self.assertFalse(Order.objects.exists())

    def test_order_id_taken_between_check_and_insert_is_regenerated(self):
        Order.objects.create(order_id="GRDRACE000000001", amount="500.00")
        factory = OrderTokenFactory(get_gateway_config())
        with patch.object(OrderTokenFactory, "resolve_order_id",
                          side_effect=["GRDRACE000000001", "GRDRACE000000002"]):
            with self.assertLogs("payments.services", level="WARNING") as cm:
                order_token, order = services._persist_pending(factory, make_details(), None)
        self.assertIn("GRDRACE000000001", cm.output[0])
        self.assertEqual(order.order_id, "GRDRACE000000002")
        self.assertEqual(order_token.order_id, "GRDRACE000000002")
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.raw_request_envelope, order_token.token)

    def test_hinted_order_id_taken_before_insert_is_a_duplicate(self):
        Order.objects.create(order_id="GRDRACE000000003", amount="500.00")
        factory = OrderTokenFactory(get_gateway_config())
        with patch.object(OrderTokenFactory, "resolve_order_id", return_value="GRDRACE000000003") as resolve:
            with self.assertRaises(DuplicateOrderId):
                services._persist_pending(factory, make_details(), "GRDRACE000000003")
        resolve.assert_called_once()
        self.assertEqual(Order.objects.count(), 1)

    def test_supersede_only_applies_to_orders_the_gateway_never_saw(self):
        Order.objects.create(order_id="GRDOLD0000000001", amount="500.00")
        Order.objects.create(order_id="GRDOLD0000000002", amount="500.00", gateway_order_id="OAFC23XYZ")
        Order.objects.create(order_id="GRDOLD0000000003", amount="500.00", status=Order.Status.PAID)

        self.assertTrue(services.supersede_order("GRDOLD0000000001", "GRDNEW0000000001"))
        self.assertFalse(services.supersede_order("GRDOLD0000000002", "GRDNEW0000000001"))
        self.assertFalse(services.supersede_order("GRDOLD0000000003", "GRDNEW0000000001"))
        self.assertFalse(services.supersede_order("GRDOLD0000000001", "GRDNEW0000000002"))
        superseded = dict(Order.objects.values_list("order_id", "superseded_by"))
        self.assertEqual(superseded, {
            "GRDOLD0000000001": "GRDNEW0000000001",
            "GRDOLD0000000002": "",
            "GRDOLD0000000003": "",
        })
