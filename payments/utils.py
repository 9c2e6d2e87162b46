import re
import secrets
import string
import uuid
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.utils import timezone

from .exceptions import ValidationError

ALNUM = string.ascii_uppercase + string.digits

ORDER_ID_RE = re.compile(r"^[A-Za-z0-9]{10,35}$")
TRACE_ID_RE = re.compile(r"^[A-Za-z0-9]{10,35}$")
MAX_TRACE_ID_ATTEMPTS = 5


def generate_order_id(prefix="GRD"):
    ts = timezone.localtime().strftime("%y%m%d%H%M%S")  # 12 chars
    rand = "".join(secrets.choice(ALNUM) for _ in range(8))
    return f"{prefix}{ts}{rand}"  # 23 chars


def is_valid_order_id(order_id) -> bool:
    return bool(order_id) and bool(ORDER_ID_RE.match(str(order_id)))


def gen_receipt_number():
    # e.g. RCP20251019143005123456
    now = timezone.localtime()
    return f"RCP{now.strftime('%Y%m%d%H%M%S')}{secrets.randbelow(1_000_000):06d}"


def compact_timestamp(now=None) -> str:
    """Local (IST) time as yyyyMMddHHmmss, the bd-timestamp header format."""
    return timezone.localtime(now).strftime("%Y%m%d%H%M%S")


def order_date(now=None) -> str:
    return timezone.localtime(now).replace(microsecond=0).isoformat()


def new_trace_id() -> str:
    """Return a 32 char alphanumeric trace id for the bd-traceid header."""
    for _ in range(MAX_TRACE_ID_ATTEMPTS):
        candidate = uuid.uuid4().hex
        if TRACE_ID_RE.match(candidate):
            return candidate
    raise RuntimeError(f"Could not generate a valid trace id in {MAX_TRACE_ID_ATTEMPTS} attempts")


def amount_str(amount) -> str:
    try:
        q = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid amount value: {amount!r}")
    if q <= 0:
        raise ValidationError("Amount must be greater than zero")
    return format(q, "f")
