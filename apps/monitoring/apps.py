from django.apps import AppConfig


class MonitoringConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.monitoring'
    label = 'monitoring'
    verbose_name = 'Calamity monitoring'

    def ready(self):
        # Connect the notification receivers to the core's signals
        from . import notifications  # noqa: F401
