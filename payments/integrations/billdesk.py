import json
import logging
from dataclasses import dataclass

import requests
from requests import RequestException

from ..exceptions import EnvelopeError, GatewayError, GatewayUnavailable, ValidationError
from ..utils import compact_timestamp, is_valid_order_id, new_trace_id
from .base import GatewayAdapter, GatewayResult, parse_gateway_datetime

logger = logging.getLogger(__name__)

CREATE_ORDER_PATH = "/orders/create"
RETRIEVE_TRANSACTION_PATH = "/transactions/get"
JOSE_HEADERS = {"Content-Type": "application/jose", "Accept": "application/jose"}

AUTH_STATUS_SUCCESS = "0300"
AUTH_STATUS_FAILURE = "0399"
AUTH_STATUS_PENDING = "0002"


class BillDeskAdapter(GatewayAdapter):
    success_codes = frozenset({AUTH_STATUS_SUCCESS})
    pending_codes = frozenset({AUTH_STATUS_PENDING})

    def parse(self, payload: dict) -> GatewayResult:
        payload = payload or {}
        method = payload.get("payment_method")
        if isinstance(method, dict):
            method_type = method.get("type") or ""
        else:
            method_type = payload.get("payment_method_type") or method or ""
        auth_status = str(payload.get("auth_status") or "")
        return GatewayResult(
            order_id=str(payload.get("orderid") or ""),
            auth_status=auth_status,
            outcome=self.classify(auth_status),
            gateway_order_id=str(payload.get("bdorderid") or ""),
            transaction_id=str(payload.get("transactionid") or ""),
            amount=str(payload.get("amount") or ""),
            transaction_date=parse_gateway_datetime(payload.get("transaction_date")),
            payment_method_type=str(method_type),
            bank_reference=str(payload.get("bank_ref_no") or ""),
            error_type=str(payload.get("transaction_error_type") or ""),
            error_code=str(payload.get("transaction_error_code") or ""),
            error_desc=str(payload.get("transaction_error_desc") or ""),
            payload=payload,
        )


@dataclass
class DecodedResponse:
    data: dict
    raw: str
    trace_id: str
    timestamp: str
    status_code: int = 200
    mock: bool = False

    def redirect_material(self) -> dict:
        """What the browser needs to open the gateway's payment page."""
        links = self.data.get("links") or []
        link = next((l for l in links if isinstance(l, dict) and l.get("rel") == "payment"), None) or {}
        return {
            "bdorderid": self.data.get("bdorderid", ""),
            "mercid": self.data.get("mercid", ""),
            "href": link.get("href", ""),
            "method": link.get("method", "POST"),
            "parameters": link.get("parameters") or {},
        }


class BillDeskClient:
    def __init__(self, config, codec=None):
        self.config = config
        self.codec = codec or config.codec

    @property
    def is_mock(self) -> bool:
        return not self.config.is_configured

    def _headers(self) -> dict:
        return {
            **JOSE_HEADERS,
            "bd-timestamp": compact_timestamp(),
            "bd-traceid": new_trace_id(),
            "bd-mercid": self.config.merchant_id,
            "bd-clientid": self.config.client_id,
        }

    def _post(self, path: str, token: str, *, order_id: str, op: str) -> DecodedResponse:
        url = f"{self.config.base_url}{path}"
        headers = self._headers()
        trace_id, timestamp = headers["bd-traceid"], headers["bd-timestamp"]
        logger.info("BillDesk %s order=%s bd-traceid=%s bd-timestamp=%s", op, order_id, trace_id, timestamp)
        try:
            resp = requests.post(url, data=token, headers=headers, timeout=self.config.timeout)
        except requests.Timeout as e:
            logger.warning("BillDesk %s timed out order=%s bd-traceid=%s", op, order_id, trace_id)
            raise GatewayUnavailable(f"{op} timed out after {self.config.timeout}s") from e
        except RequestException as e:
            logger.warning("BillDesk %s connection failed order=%s bd-traceid=%s: %s", op, order_id, trace_id, e)
            raise GatewayUnavailable(f"Gateway request failed: {e}") from e

        body = (resp.text or "").strip()
        if not 200 <= resp.status_code < 300:
            # Error bodies are envelopes too; unwrap them for a useful message.
            detail = None
            try:
                detail = self.codec.decode(body)
            except EnvelopeError as e:
                logger.warning("BillDesk %s error body not decodable (%s stage) bd-traceid=%s", op, e.stage, trace_id)
            shown = json.dumps(detail) if detail is not None else body
            logger.error("BillDesk %s failed order=%s status=%s bd-traceid=%s detail=%s",
                         op, order_id, resp.status_code, trace_id, shown[:800])
            raise GatewayError(
                f"{op} failed: HTTP {resp.status_code}. Response: {shown[:800]}",
                status_code=resp.status_code,
                detail=detail,
            )

        try:
            data = self.codec.decode(body)
        except EnvelopeError as e:
            logger.error("BillDesk %s response rejected at %s stage order=%s bd-traceid=%s: %s",
                         op, e.stage, order_id, trace_id, e)
            raise
        return DecodedResponse(data=data, raw=body, trace_id=trace_id, timestamp=timestamp,
                               status_code=resp.status_code)

    # ---------- API calls ----------
    def create_order(self, token: str, *, order_id: str = "") -> DecodedResponse:
        """POST the order token -> /orders/create; returns the decoded order object."""
        if self.is_mock:
            return self._mock_create_order(token)
        return self._post(CREATE_ORDER_PATH, token, order_id=order_id, op="create order")

    def retrieve_transaction(self, order_id: str) -> DecodedResponse:
        if not is_valid_order_id(order_id):
            raise ValidationError("order_id must be 10-35 alphanumeric characters")
        if self.is_mock:
            return self._mock_retrieve_transaction(order_id)
        payload = {"mercid": self.config.merchant_id, "orderid": order_id, "refund_details": True}
        token = self.codec.encode(payload)
        return self._post(RETRIEVE_TRANSACTION_PATH, token, order_id=order_id, op="retrieve transaction")

    # ---------- Mock mode ----------
    def _mock_response(self, data: dict) -> DecodedResponse:
        logger.info("BillDesk MOCK response for order=%s", data.get("orderid"))
        return DecodedResponse(data=data, raw=self.codec.encode(data), trace_id=new_trace_id(),
                               timestamp=compact_timestamp(), mock=True)

    def _mock_create_order(self, token: str) -> DecodedResponse:
        order = self.codec.decode(token)
        bdorderid = f"MOCK{order.get('orderid', '')}"[:35]
        return self._mock_response({
            "objectid": "order",
            "orderid": order.get("orderid", ""),
            "bdorderid": bdorderid,
            "mercid": order.get("mercid", ""),
            "amount": order.get("amount", ""),
            "currency": order.get("currency", ""),
            "status": "ACTIVE",
            "links": [{
                "rel": "payment",
                "href": "https://mock.gateway.invalid/pay",
                "method": "POST",
                "parameters": {"mercid": order.get("mercid", ""), "bdorderid": bdorderid, "rdata": "MOCK"},
            }],
        })

    def _mock_retrieve_transaction(self, order_id: str) -> DecodedResponse:
        return self._mock_response({
            "objectid": "transaction",
            "orderid": order_id,
            "bdorderid": f"MOCK{order_id}"[:35],
            "auth_status": AUTH_STATUS_PENDING,
        })
