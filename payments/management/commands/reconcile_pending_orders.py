import time

from django.core.management.base import BaseCommand, CommandError

from payments.config import get_gateway_config
from payments.reconciliation import sweep


class Command(BaseCommand):
    help = "Poll BillDesk Retrieve Transaction for stale pending orders and settle them"

    def add_arguments(self, parser):
        parser.add_argument("--older-than-minutes", type=int, default=None,
                            help="Only orders created more than N minutes ago (default: BILLDESK threshold)")
        parser.add_argument("--max", type=int, default=100, help="Max orders per sweep")
        parser.add_argument("--sleep", type=float, default=0.5, help="Seconds between gateway calls")
        parser.add_argument("--every-minutes", type=int, default=0,
                            help="Keep running, one sweep every N minutes (0 = single sweep)")
        parser.add_argument("--loop", action="store_true",
                            help="Keep running at BILLDESK['RECONCILE_INTERVAL_MINUTES']")

    def handle(self, *args, **opts):
        config = get_gateway_config()
        if not config.is_configured:
            raise CommandError(
                f"Gateway not configured ({', '.join(config.status.missing)}); refusing to reconcile in MOCK mode."
            )

        every = opts["every_minutes"] or (config.reconcile_interval_minutes if opts["loop"] else 0)
        while True:
            summary = sweep(opts["older_than_minutes"], config=config, limit=opts["max"], sleep=opts["sleep"])
            style = self.style.SUCCESS if not summary.failed else self.style.WARNING
            self.stdout.write(style(
                f"Checked {summary.checked}, updated {summary.updated}, failed {summary.failed}."
            ))
            if every <= 0:
                return
            time.sleep(every * 60)
