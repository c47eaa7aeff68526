from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "orders"

    def ready(self):
        # status change side effects: loyalty credit, customer emails
        from . import receivers  # noqa
