from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import Optional

from django.utils.dateparse import parse_datetime

from ..models import Order


@dataclass
class GatewayResult:
    """Gateway-neutral view of a verified transaction payload."""

    order_id: str
    auth_status: str
    outcome: str  # one of Order.Status
    gateway_order_id: str = ""
    transaction_id: str = ""
    amount: str = ""
    transaction_date: Optional[datetime] = None
    payment_method_type: str = ""
    bank_reference: str = ""
    error_type: str = ""
    error_code: str = ""
    error_desc: str = ""
    payload: dict = field(default_factory=dict, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.outcome in (Order.Status.PAID, Order.Status.FAILED)


class GatewayAdapter:
    """Maps one gateway's status vocabulary onto pending/paid/failed.

    Subclasses set the code sets and implement :meth:`parse`.  A code that is
    neither a success nor a pending code is a failure; an empty code means the
    gateway has nothing terminal to report yet.
    """

    success_codes = frozenset()
    pending_codes = frozenset()

    def classify(self, code) -> str:
        code = str(code or "").strip()
        if not code or code in self.pending_codes:
            return Order.Status.PENDING
        if code in self.success_codes:
            return Order.Status.PAID
        return Order.Status.FAILED

    def parse(self, payload: dict) -> GatewayResult:
        raise NotImplementedError


def parse_gateway_datetime(value):
    if not value:
        return None
    try:
        dt = parse_datetime(str(value))
    except ValueError:
        return None
    if dt and dt.tzinfo is None:
        dt = dt.replace(tzinfo=dt_timezone.utc)
    return dt
