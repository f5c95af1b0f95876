from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "authentication"
    verbose_name = "Accounts"

    def ready(self):
        # Registers the Profile post_save handler
        from authentication import signals  # noqa: F401
