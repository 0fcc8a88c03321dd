from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


def validate_engine_settings(engine: dict):
    if engine["CLAIM_LEASE_SECONDS"] < engine["JOB_TIMEOUT_SECONDS"]:
        raise ImproperlyConfigured(
            f"SYNC_ENGINE CLAIM_LEASE_SECONDS ({engine['CLAIM_LEASE_SECONDS']}) must be at least "
            f"JOB_TIMEOUT_SECONDS ({engine['JOB_TIMEOUT_SECONDS']}) so claims outlive the job holding them"
        )


class SyncConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.sync"
    label = "sync"
    verbose_name = "Chain data sync"

    def ready(self):
        from .adapters import get_registry

        # fail fast on a misconfigured adapter path or lease
        get_registry()
        validate_engine_settings(settings.SYNC_ENGINE)
