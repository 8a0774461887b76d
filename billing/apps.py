import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class BillingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"
    verbose_name = "Billing"

    engine = None

    def ready(self):
        # Built once per process; callers reach it through billing.engine.get_engine()
        from .engine import BillingEngine

        self.engine = BillingEngine.from_settings()
