import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .exceptions import DuplicateOrderId, ValidationError
from .models import Order
from .utils import amount_str, generate_order_id, is_valid_order_id, order_date

logger = logging.getLogger(__name__)

NA = "NA"
MAX_ORDER_ID_ATTEMPTS = 5
_DISALLOWED_INFO_CHARS = re.compile(r"[^A-Za-z0-9@,.\- ]")


@dataclass
class RegistrationDetails:
    """What the order payload needs from a registration."""

    full_name: str = ""
    email: str = ""
    mobile_number: str = ""
    convocation_year: str = ""
    degree_name: str = ""
    purpose: str = "Graduation Registration"
    amount: Optional[str] = None  # falls back to BILLDESK['REGISTRATION_FEE']
    currency: Optional[str] = None  # falls back to BILLDESK['CURRENCY']
    return_url: Optional[str] = None  # falls back to BILLDESK['RETURN_URL']
    ip: str = "127.0.0.1"
    user_agent: str = "Mozilla/5.0"
    accept_header: str = "text/html"

    def additional_info_values(self, order_id):
        return [
            self.full_name,
            self.email,
            self.mobile_number,
            order_id,
            self.convocation_year,
            self.purpose,
            self.degree_name,
        ]


@dataclass
class OrderToken:
    token: str
    order_id: str
    payload: dict = field(repr=False)


def sanitize_info_value(value) -> str:
    cleaned = _DISALLOWED_INFO_CHARS.sub("", str(value or ""))
    return " ".join(cleaned.split())


def build_additional_info(values, slots: int) -> dict:
    """Exactly ``slots`` entries; absent or fully stripped values become "NA"."""
    values = list(values or [])[:slots]
    values += [None] * (slots - len(values))
    return {
        f"additional_info{i}": (sanitize_info_value(v) or NA)
        for i, v in enumerate(values, start=1)
    }


def validate_callback_urls(**urls):
    for name, url in urls.items():
        if not url:
            raise ValidationError(f"{name} is required")
        if "?" in url or "&" in url:
            raise ValidationError(f"{name} must not contain query parameters ('?' or '&'): {url}")


class OrderTokenFactory:
    def __init__(self, config, codec=None):
        self.config = config
        self.codec = codec or config.codec

    def resolve_order_id(self, hint=None) -> str:
        if hint:
            if not is_valid_order_id(hint):
                raise ValidationError("order_id must be 10-35 alphanumeric characters")
            if Order.objects.filter(order_id=hint).exists():
                raise DuplicateOrderId(f"order_id {hint} is already in use")
            return hint
        for _ in range(MAX_ORDER_ID_ATTEMPTS):
            candidate = generate_order_id()
            if not Order.objects.filter(order_id=candidate).exists():
                return candidate
        raise DuplicateOrderId(f"No unused order_id after {MAX_ORDER_ID_ATTEMPTS} attempts")

    def build_payload(self, details: RegistrationDetails, order_id: str, return_url: str) -> dict:
        return {
            "objectid": "order",
            "mercid": self.config.merchant_id,
            "orderid": order_id,
            "amount": amount_str(details.amount or self.config.registration_fee),
            "currency": str(details.currency or self.config.currency),
            "order_date": order_date(),
            "ru": return_url,
            "itemcode": "DIRECT",
            "additional_info": build_additional_info(
                details.additional_info_values(order_id), self.config.additional_info_slots
            ),
            "device": {
                "init_channel": "internet",
                "ip": details.ip or "127.0.0.1",
                "user_agent": details.user_agent or "Mozilla/5.0",
                "accept_header": details.accept_header or "text/html",
            },
        }

    def create_order(self, details: RegistrationDetails, order_id_hint=None) -> OrderToken:
        return_url = details.return_url or self.config.return_url
        validate_callback_urls(ru=return_url)
        order_id = self.resolve_order_id(order_id_hint)
        payload = self.build_payload(details, order_id, return_url)
        token = self.codec.encode(payload)
        logger.debug("Built order token for %s (%d chars)", order_id, len(token))
        return OrderToken(token=token, order_id=order_id, payload=payload)
