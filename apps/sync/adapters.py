"""
Per-table read/write adapters

Each synced table maps to a TableAdapter implementation through
SYNC_ENGINE["TABLE_ADAPTERS"]; the "*" entry covers tables without their own
adapter. The registry is built once and validated when the app starts.
"""

import logging
from functools import lru_cache

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.signals import setting_changed
from django.dispatch import receiver
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

DEFAULT_ADAPTER_KEY = "*"


class TableAdapter:
    """Read/write-by-key contract a location's data store implements for one table"""

    def get(self, location, table_name, record_id):
        """Return the record image at `location`, or None when absent"""
        raise NotImplementedError

    def apply_image(self, location, table_name, record_id, image, operation):
        """
        Write `image` (or delete the record) at `location`
        Must be idempotent; raises ApplyError on failure
        """
        raise NotImplementedError

    def list_records(self, location, table_name):
        """Yield (record_id, image) pairs; used for full syncs"""
        raise NotImplementedError


class AdapterRegistry:
    def __init__(self, mapping: dict):
        self._adapters = {}
        for table_name, dotted_path in mapping.items():
            try:
                adapter_class = import_string(dotted_path)
            except ImportError as e:
                raise ImproperlyConfigured(f"Cannot import sync adapter {dotted_path!r} for table {table_name!r}: {e}") from e
            self._adapters[table_name] = adapter_class()

    def for_table(self, table_name: str) -> TableAdapter:
        adapter = self._adapters.get(table_name) or self._adapters.get(DEFAULT_ADAPTER_KEY)
        if adapter is None:
            raise ImproperlyConfigured(f"No sync adapter configured for table {table_name!r}")
        return adapter

    def tables(self):
        return [name for name in self._adapters if name != DEFAULT_ADAPTER_KEY]


@lru_cache(maxsize=1)
def get_registry() -> AdapterRegistry:
    registry = AdapterRegistry(settings.SYNC_ENGINE.get("TABLE_ADAPTERS", {}))
    logger.debug(f"Sync adapter registry built for tables: {registry.tables() or ['*']}")
    return registry


@receiver(setting_changed)
def _reset_registry(sender, setting, **kwargs):
    if setting == "SYNC_ENGINE":
        get_registry.cache_clear()


class LocationStore:
    """The adapter registry bound to a single location"""

    def __init__(self, location, registry: AdapterRegistry = None):
        self.location = location
        self.registry = registry or get_registry()

    def get(self, table_name, record_id):
        return self.registry.for_table(table_name).get(self.location, table_name, record_id)

    def apply_image(self, table_name, record_id, image, operation):
        self.registry.for_table(table_name).apply_image(self.location, table_name, record_id, image, operation)

    def list_records(self, table_name):
        return self.registry.for_table(table_name).list_records(self.location, table_name)
