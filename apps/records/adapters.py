import logging
from django.db import DatabaseError

from apps.sync.adapters import TableAdapter
from apps.sync.exceptions import ApplyError
from apps.sync.models import DELETE
from .models import LocationRecord

logger = logging.getLogger(__name__)


class LocationRecordAdapter(TableAdapter):
    """Reads and writes synced images in the per-location record store"""

    def get(self, location, table_name, record_id):
        record = LocationRecord.objects.filter(location=location, table_name=table_name, record_id=str(record_id)).first()
        return record.data if record else None

    def apply_image(self, location, table_name, record_id, image, operation):
        # idempotent: re-applying the same image or deleting an absent record is a no-op
        try:
            if operation == DELETE:
                LocationRecord.objects.filter(location=location, table_name=table_name, record_id=str(record_id)).delete()
                return

            if image is None:
                raise ApplyError(f"No image to apply for {operation} on {table_name}/{record_id}")

            LocationRecord.objects.update_or_create(
                location=location,
                table_name=table_name,
                record_id=str(record_id),
                defaults={"data": image},
            )
        except DatabaseError as e:
            logger.warning(f"Apply failed for {table_name}/{record_id} at {location.pk}: {e}")
            raise ApplyError(str(e)) from e

    def list_records(self, location, table_name):
        for record in LocationRecord.objects.filter(location=location, table_name=table_name).iterator():
            yield record.record_id, record.data
