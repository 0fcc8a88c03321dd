from django.db import models

from apps.chains.models import Location


class LocationRecord(models.Model):
    """
    A business record as stored at one location
    Synced tables keep one row per (location, table, record id); the record
    itself is an opaque JSON image
    """

    location = models.ForeignKey(Location, related_name="records", on_delete=models.CASCADE)
    table_name = models.CharField(max_length=100)
    record_id = models.CharField(max_length=64)
    data = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "location_records"
        ordering = ["table_name", "record_id"]
        constraints = [
            models.UniqueConstraint(fields=["location", "table_name", "record_id"], name="uniq_record_per_location"),
        ]

    def __str__(self):
        return f"{self.table_name}/{self.record_id} @ {self.location_id}"
