import logging
import uuid
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.sync.models import INSERT, UPDATE, DELETE, BULK_UPDATE
from apps.sync.services import ChangeCapture
from .models import LocationRecord

logger = logging.getLogger(__name__)


class LocationRecordService:
    """
    Local writes to a location's record store
    Every committed write is handed to change capture inside the same transaction,
    so a change is never stored without its pending sync operations
    """

    def __init__(self, capture: ChangeCapture = None):
        self.capture = capture or ChangeCapture()

    def save(self, location, table_name: str, record_id, data: dict):
        """Create or update a record; returns (record, operations)"""
        engine = settings.SYNC_ENGINE
        record_id = str(record_id)

        image = dict(data)
        image.setdefault(engine["RECORD_ID_FIELD"], record_id)
        image.setdefault(engine["TIMESTAMP_FIELD"], timezone.now().isoformat())

        with transaction.atomic():
            record = (
                LocationRecord.objects.select_for_update()
                .filter(location=location, table_name=table_name, record_id=record_id)
                .first()
            )
            before = dict(record.data) if record else None

            if record is None:
                record = LocationRecord.objects.create(location=location, table_name=table_name, record_id=record_id, data=image)
                operation = INSERT
            else:
                record.data = image
                record.save(update_fields=["data", "updated_at"])
                operation = UPDATE

            operations = self.capture.on_mutation(location, table_name, operation, record_id, before=before, after=image)

        logger.info(f"{operation} {table_name}/{record_id} at {location.pk}; {len(operations)} sync operations queued")
        return record, operations

    def bulk_update(self, location, table_name: str, changes: dict, batch_id=None):
        """
        Update several records at once; `changes` maps record id -> partial image
        Each record is captured as a bulk_update operation sharing one batch
        """
        engine = settings.SYNC_ENGINE
        stamp = timezone.now().isoformat()
        record_ids = [str(record_id) for record_id in changes]
        batch_id = batch_id or uuid.uuid4()
        operations = []

        with transaction.atomic():
            records = {
                record.record_id: record
                for record in LocationRecord.objects.select_for_update().filter(location=location, table_name=table_name, record_id__in=record_ids)
            }
            missing = sorted(set(record_ids) - set(records))
            if missing:
                raise LocationRecord.DoesNotExist(f"Records not found at {location.pk}: {', '.join(missing)}")

            for record_id, partial in changes.items():
                record = records[str(record_id)]
                before = dict(record.data)
                after = {**before, **partial}
                after[engine["TIMESTAMP_FIELD"]] = partial.get(engine["TIMESTAMP_FIELD"], stamp)

                record.data = after
                record.save(update_fields=["data", "updated_at"])
                operations.extend(
                    self.capture.on_mutation(
                        location,
                        table_name,
                        BULK_UPDATE,
                        record.record_id,
                        before=before,
                        after=after,
                        batch_id=batch_id,
                        record_ids=record_ids,
                    )
                )

        logger.info(f"bulk_update of {len(record_ids)} {table_name} records at {location.pk}; {len(operations)} sync operations queued")
        return operations

    def delete(self, location, table_name: str, record_id):
        """Delete a record; returns the queued operations (none when the record was absent)"""
        record_id = str(record_id)

        with transaction.atomic():
            record = (
                LocationRecord.objects.select_for_update()
                .filter(location=location, table_name=table_name, record_id=record_id)
                .first()
            )
            if record is None:
                return []

            before = dict(record.data)
            record.delete()
            operations = self.capture.on_mutation(location, table_name, DELETE, record_id, before=before)

        logger.info(f"delete {table_name}/{record_id} at {location.pk}; {len(operations)} sync operations queued")
        return operations
