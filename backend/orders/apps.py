"""Orders app configuration."""

from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'orders'

    # Shared dispatch services, built once per process
    engine = None

    def ready(self):
        from . import signals  # noqa: F401
        from services.dispatch.engine import build_engine

        self.engine = build_engine()
