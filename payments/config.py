"""Gateway configuration.

The ``BILLDESK`` settings block is read once when the ``payments`` app is
ready and frozen into a :class:`GatewayConfig`.  Everything that talks to the
gateway receives that value (or looks it up with :func:`get_gateway_config`)
instead of reading settings on every call.
"""

import logging
import secrets
from dataclasses import dataclass, field
from functools import cached_property
from typing import Tuple

from django.apps import apps
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "your_"
MIN_ADDITIONAL_INFO_SLOTS = 3
MAX_ADDITIONAL_INFO_SLOTS = 7
ENVELOPE_SHAPES = ("jwe", "jws")


@dataclass(frozen=True)
class ConfigurationStatus:
    configured: bool
    missing: Tuple[str, ...] = ()

    @classmethod
    def ok(cls):
        return cls(True)

    @classmethod
    def unconfigured(cls, missing):
        return cls(False, tuple(missing))


def _is_blank(value) -> bool:
    value = (value or "").strip()
    return not value or value.lower().startswith(PLACEHOLDER_PREFIX)


@dataclass(frozen=True)
class GatewayConfig:
    base_url: str
    merchant_id: str
    client_id: str
    signing_secret: str
    encryption_secret: str
    key_id: str
    return_url: str = ""
    envelope: str = "jwe"
    additional_info_slots: int = MAX_ADDITIONAL_INFO_SLOTS
    timeout: float = 30.0
    adapter: str = "payments.integrations.billdesk.BillDeskAdapter"
    currency: str = "356"
    registration_fee: str = "500.00"
    reconcile_interval_minutes: int = 15
    reconcile_threshold_minutes: int = 10
    status: ConfigurationStatus = field(init=False, compare=False)

    def __post_init__(self):
        if self.envelope not in ENVELOPE_SHAPES:
            raise ImproperlyConfigured(f"BILLDESK['ENVELOPE'] must be one of {ENVELOPE_SHAPES}, got {self.envelope!r}")
        if not MIN_ADDITIONAL_INFO_SLOTS <= self.additional_info_slots <= MAX_ADDITIONAL_INFO_SLOTS:
            raise ImproperlyConfigured(
                f"BILLDESK['ADDITIONAL_INFO_SLOTS'] must be between "
                f"{MIN_ADDITIONAL_INFO_SLOTS} and {MAX_ADDITIONAL_INFO_SLOTS}"
            )
        required = {
            "BASE_URL": self.base_url,
            "MERCHANT_ID": self.merchant_id,
            "CLIENT_ID": self.client_id,
            "SIGNING_SECRET": self.signing_secret,
            "KEY_ID": self.key_id,
        }
        if self.envelope == "jwe":
            required["ENCRYPTION_SECRET"] = self.encryption_secret
        missing = [name for name, value in required.items() if _is_blank(value)]
        status = ConfigurationStatus.unconfigured(missing) if missing else ConfigurationStatus.ok()
        object.__setattr__(self, "status", status)

    @classmethod
    def from_settings(cls, options: dict) -> "GatewayConfig":
        options = options or {}
        return cls(
            base_url=(options.get("BASE_URL") or "").rstrip("/"),
            merchant_id=options.get("MERCHANT_ID") or "",
            client_id=options.get("CLIENT_ID") or "",
            signing_secret=options.get("SIGNING_SECRET") or "",
            encryption_secret=options.get("ENCRYPTION_SECRET") or "",
            key_id=options.get("KEY_ID") or "",
            return_url=options.get("RETURN_URL") or "",
            envelope=options.get("ENVELOPE") or "jwe",
            additional_info_slots=int(options.get("ADDITIONAL_INFO_SLOTS") or MAX_ADDITIONAL_INFO_SLOTS),
            timeout=float(options.get("TIMEOUT") or 30),
            adapter=options.get("ADAPTER") or cls.adapter,
            currency=str(options.get("CURRENCY") or "356"),
            registration_fee=str(options.get("REGISTRATION_FEE") or "500.00"),
            reconcile_interval_minutes=int(options.get("RECONCILE_INTERVAL_MINUTES") or 15),
            reconcile_threshold_minutes=int(options.get("RECONCILE_THRESHOLD_MINUTES") or 10),
        )

    @property
    def is_configured(self) -> bool:
        return self.status.configured

    @cached_property
    def codec(self):
        from .envelope import EnvelopeCodec

        if self.is_configured:
            return EnvelopeCodec(
                signing_secret=self.signing_secret,
                encryption_secret=self.encryption_secret,
                client_id=self.client_id,
                key_id=self.key_id,
                encrypt=self.envelope == "jwe",
            )
        # Mock mode: throwaway keys so tokens are still well-formed in-process.
        return EnvelopeCodec(
            signing_secret=secrets.token_hex(32),
            encryption_secret=secrets.token_hex(16),
            client_id=self.client_id or "mockclient",
            key_id=self.key_id or "MOCK",
            encrypt=self.envelope == "jwe",
        )

    @cached_property
    def gateway_adapter(self):
        return import_string(self.adapter)()

    def log_status(self):
        if self.is_configured:
            logger.info("BillDesk configuration loaded: merchant=%s client=%s base=%s",
                        self.merchant_id, self.client_id, self.base_url)
        else:
            logger.warning("BillDesk configuration incomplete (%s); running in MOCK mode",
                           ", ".join(self.status.missing))


def get_gateway_config() -> GatewayConfig:
    return apps.get_app_config("payments").gateway_config
