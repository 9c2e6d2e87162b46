import shutil
import tempfile
from datetime import timedelta
from unittest.mock import patch

import requests
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from payments.config import get_gateway_config
from payments.models import Order
from payments.reconciliation import sweep

from .models import Registration

TEMP_MEDIA = tempfile.mkdtemp()


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text


def gateway_echo(codec):
    def post(url, data=None, headers=None, timeout=None):
        order = codec.decode(data)
        return FakeResponse(200, codec.encode({
            "objectid": "order",
            "orderid": order["orderid"],
            "bdorderid": "OA" + order["orderid"][-8:],
            "mercid": order["mercid"],
            "links": [{"rel": "payment", "href": "https://uat.example-gateway.test/pay",
                       "parameters": {"rdata": "r"}}],
        }))
    return post


def registration_data(**overrides):
    data = {
        "full_name": "priya  raman",
        "date_of_birth": "2002-05-14",
        "gender": "Female",
        "guardian_name": "Raman K",
        "nationality": "Indian",
        "religion": "Hindu",
        "email": "Priya@Example.com",
        "mobile_number": "9876543210",
        "place_of_birth": "Salem",
        "community": "BC",
        "mother_tongue": "Tamil",
        "aadhar_number": "123412341234",
        "degree_name": "B.Sc. Physics",
        "university_name": "Periyar University",
        "degree_pattern": "Semester",
        "convocation_year": "2025",
        "is_registered_graduate": "on",
        "occupation": "Student",
        "address": "12 Main Road, Salem",
        "declaration": "on",
        "lunch_required": "VEG",
        "companion_option": "1 Veg",
    }
    data.update(overrides)
    return data


def uploads():
    return {
        name: SimpleUploadedFile(f"{name}.pdf", b"%PDF-1.4 test", content_type="application/pdf")
        for name in ("applicant_photo", "aadhar_copy", "residence_certificate", "degree_certificate", "signature")
    }


@override_settings(MEDIA_ROOT=TEMP_MEDIA)
class RegisterViewTests(TestCase):
    @classmethod
    def tearDownClass(cls):
        super().tearDownClass()
        shutil.rmtree(TEMP_MEDIA, ignore_errors=True)

    def setUp(self):
        self.codec = get_gateway_config().codec
        self.url = reverse("registrations:register")

    def _post(self, data=None, files=None):
        return self.client.post(self.url, {**(data or registration_data()), **(files or uploads())})

    def test_registration_opens_a_payment_order(self):
        with patch("payments.integrations.billdesk.requests.post", side_effect=gateway_echo(self.codec)) as post:
            resp = self._post()

        self.assertEqual(resp.status_code, 201, resp.content)
        data = resp.json()
        registration = Registration.objects.get()
        self.assertEqual(registration.full_name, "PRIYA RAMAN")
        self.assertEqual(registration.email, "priya@example.com")
        self.assertEqual(registration.order_id, data["order_id"])
        self.assertEqual(registration.payment_status, "pending")
        self.assertTrue(default_storage.exists(registration.signature_path))
        self.assertTrue(registration.applicant_photo_path.startswith(f"registrations/{data['order_id']}/"))
        self.assertEqual(registration.other_university_certificate_path, "")

        sent = self.codec.decode(post.call_args.kwargs["data"])
        self.assertEqual(sent["amount"], "500.00")
        self.assertEqual(sent["additional_info"]["additional_info1"], "PRIYA RAMAN")
        self.assertEqual(sent["additional_info"]["additional_info3"], "9876543210")
        self.assertEqual(data["redirect"]["parameters"], {"rdata": "r"})

    def test_invalid_fields_are_400(self):
        cases = {
            "mobile_number": "98765",
            "aadhar_number": "1234",
            "community": "XYZ",
            "companion_option": "3 Veg",
            "declaration": "",
        }
        with patch("payments.integrations.billdesk.requests.post") as post:
            for field, value in cases.items():
                with self.subTest(field=field):
                    resp = self._post(registration_data(**{field: value}))
                    self.assertEqual(resp.status_code, 400)
                    self.assertIn(field, resp.json()["errors"])
        post.assert_not_called()
        self.assertFalse(Registration.objects.exists())

    def test_missing_document_is_400(self):
        files = uploads()
        del files["aadhar_copy"]
        resp = self._post(files=files)
        self.assertEqual(resp.status_code, 400)
        self.assertIn("aadhar_copy", resp.json()["errors"])

    def test_duplicate_email_is_409(self):
        with patch("payments.integrations.billdesk.requests.post", side_effect=gateway_echo(self.codec)):
            self._post()
            resp = self._post(registration_data(email="PRIYA@example.com"))
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(Registration.objects.count(), 1)

    def test_gateway_down_keeps_registration_and_pending_order(self):
        with patch("payments.integrations.billdesk.requests.post", side_effect=requests.Timeout("slow")):
            resp = self._post()
        self.assertEqual(resp.status_code, 503)
        registration = Registration.objects.get()
        self.assertEqual(registration.order.status, Order.Status.PENDING)

    def test_resubmitting_after_a_gateway_timeout_opens_a_new_order(self):
        with patch("payments.integrations.billdesk.requests.post", side_effect=requests.Timeout("slow")):
            self.assertEqual(self._post().status_code, 503)
        first = Registration.objects.get()
        abandoned = first.order_id

        with patch("payments.integrations.billdesk.requests.post", side_effect=gateway_echo(self.codec)):
            resp = self._post()

        self.assertEqual(resp.status_code, 201, resp.content)
        registration = Registration.objects.get()
        self.assertEqual(registration.pk, first.pk)
        self.assertEqual(registration.order_id, resp.json()["order_id"])
        self.assertNotEqual(registration.order_id, abandoned)
        self.assertTrue(registration.signature_path.startswith(f"registrations/{registration.order_id}/"))
        old = Order.objects.get(order_id=abandoned)
        self.assertEqual(old.status, Order.Status.PENDING)
        self.assertEqual(old.superseded_by, registration.order_id)

        Order.objects.update(created_at=timezone.now() - timedelta(minutes=30))

        def still_pending(url, data=None, headers=None, timeout=None):
            order_id = self.codec.decode(data)["orderid"]
            return FakeResponse(200, self.codec.encode({"orderid": order_id, "auth_status": "0002"}))

        with patch("payments.integrations.billdesk.requests.post", side_effect=still_pending) as post:
            sweep(10)
        self.assertEqual(post.call_count, 1)
        self.assertEqual(self.codec.decode(post.call_args.kwargs["data"])["orderid"], registration.order_id)


class CheckEmailViewTests(TestCase):
    def setUp(self):
        self.url = reverse("registrations:check_email")

    def test_reports_existing_email(self):
        Registration.objects.create(
            **{k: v for k, v in registration_data().items() if k not in ("is_registered_graduate", "declaration")},
            declaration=True,
            applicant_photo_path="p", aadhar_copy_path="a", residence_certificate_path="r",
            degree_certificate_path="d", signature_path="s",
        )
        self.assertEqual(self.client.get(self.url, {"email": "priya@example.com"}).json(), {"exists": True})
        self.assertEqual(self.client.get(self.url, {"email": "other@example.com"}).json(), {"exists": False})

    def test_invalid_email_is_400(self):
        self.assertEqual(self.client.get(self.url, {"email": "nope"}).status_code, 400)
        self.assertEqual(self.client.get(self.url).status_code, 400)
