import logging
import time
from dataclasses import asdict, dataclass
from datetime import timedelta

from django.db.models import Q
from django.utils import timezone

from .config import get_gateway_config
from .exceptions import PaymentError
from .integrations.billdesk import BillDeskClient
from .models import Order
from .services import poll_order

logger = logging.getLogger(__name__)


@dataclass
class SweepSummary:
    checked: int = 0
    updated: int = 0
    failed: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def stale_pending_orders(older_than_minutes: int, limit=None):
    cutoff = timezone.now() - timedelta(minutes=older_than_minutes)
    qs = (
        Order.objects.filter(status=Order.Status.PENDING, created_at__lt=cutoff)
        .exclude(Q(gateway_order_id="") & ~Q(superseded_by=""))
        .order_by("created_at")
    )
    return qs[:limit] if limit else qs


def sweep(older_than_minutes=None, *, config=None, client=None, limit=None, sleep=0.0) -> SweepSummary:
    """Re-query the gateway for pending orders whose webhook never arrived.

    A failure on one order (transport, envelope, bookkeeping) is logged and
    counted; the sweep always runs to the end.
    """
    config = config or get_gateway_config()
    client = client or BillDeskClient(config)
    if older_than_minutes is None:
        older_than_minutes = config.reconcile_threshold_minutes
    if client.is_mock:
        logger.warning("Gateway not configured (%s); skipping reconciliation",
                       ", ".join(config.status.missing))
        return SweepSummary()

    order_ids = list(stale_pending_orders(older_than_minutes, limit).values_list("order_id", flat=True))
    logger.info("Reconciling %d pending orders older than %d minutes", len(order_ids), older_than_minutes)

    summary = SweepSummary()
    for i, order_id in enumerate(order_ids):
        summary.checked += 1
        try:
            result = poll_order(order_id, config=config, client=client)
            if result.changed:
                summary.updated += 1
        except PaymentError as e:
            summary.failed += 1
            logger.warning("Reconciliation of %s failed: %s: %s", order_id, type(e).__name__, e)
        except Exception:
            summary.failed += 1
            logger.exception("Reconciliation of %s crashed", order_id)
        if sleep and i < len(order_ids) - 1:
            time.sleep(sleep)

    logger.info("Reconciliation done: checked=%d updated=%d failed=%d",
                summary.checked, summary.updated, summary.failed)
    return summary


def trigger_reconciliation(older_than_minutes=None) -> SweepSummary:
    return sweep(older_than_minutes)
