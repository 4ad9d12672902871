from django.apps import AppConfig


class ProcessorConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "processor"
    verbose_name = "Media processor"
