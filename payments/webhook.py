import logging

from django.http import HttpResponse
from django.views.decorators.csrf import csrf_exempt

from .exceptions import EnvelopeError, OrderNotFound, ValidationError
from .inbound import extract_envelope, parse_inbound
from .models import Order
from .services import process_envelope

logger = logging.getLogger(__name__)


@csrf_exempt
def billdesk_webhook(request):
    """Server-to-server notification from BillDesk.

    Always acknowledged with 200: the gateway retries anything else, and a
    retry cannot fix a bad signature or an unknown order.  Rejections are
    logged and recorded on the audit trail instead.
    """
    if request.method != "POST":
        return HttpResponse("POST only", status=405)

    try:
        envelope = extract_envelope(parse_inbound(request))
        result = process_envelope(envelope, source=Order.Source.WEBHOOK)
        logger.info("Webhook for %s: %s (status=%s)", result.order_id, result.outcome, result.status)
    except EnvelopeError as e:
        logger.warning("Webhook envelope rejected at %s stage: %s", e.stage, e)
    except (OrderNotFound, ValidationError) as e:
        logger.warning("Webhook ignored: %s", e)
    except Exception:
        logger.exception("Webhook processing failed")
    return HttpResponse("ok")
