from django.apps import AppConfig
from django.conf import settings


class PaymentsConfig(AppConfig):
    name = "payments"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        from .config import GatewayConfig

        self.gateway_config = GatewayConfig.from_settings(getattr(settings, "BILLDESK", {}))
        self.gateway_config.log_status()
