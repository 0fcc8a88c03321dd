import uuid
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import F


class RestaurantChain(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    name_th = models.CharField(max_length=255, blank=True)
    code = models.CharField(max_length=50, unique=True)
    corporate_settings = models.JSONField(default=dict, blank=True)
    timezone = models.CharField(max_length=50, default="Asia/Bangkok")
    default_currency = models.CharField(max_length=3, default="THB")
    is_active = models.BooleanField(default=True)
    sync_sequence = models.BigIntegerField(default=0)  # per-chain ledger ordering counter
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "restaurant_chains"
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code})"

    def next_sequence(self, count: int = 1) -> int:
        """
        Reserve `count` sequence numbers for this chain
        Returns the last reserved number; the range is (last - count, last]
        """
        with transaction.atomic():
            RestaurantChain.objects.filter(pk=self.pk).update(sync_sequence=F("sync_sequence") + count)
            self.sync_sequence = RestaurantChain.objects.values_list("sync_sequence", flat=True).get(pk=self.pk)
        return self.sync_sequence


class ChainRegion(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    chain = models.ForeignKey(RestaurantChain, related_name="regions", on_delete=models.CASCADE)
    name = models.CharField(max_length=255)
    name_th = models.CharField(max_length=255, blank=True)
    code = models.CharField(max_length=50)
    regional_settings = models.JSONField(default=dict, blank=True)
    timezone = models.CharField(max_length=50, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "chain_regions"
        ordering = ["chain", "code"]
        constraints = [
            models.UniqueConstraint(fields=["chain", "code"], name="uniq_region_code_per_chain"),
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"


class LocationQuerySet(models.QuerySet):
    def sync_enabled(self):
        return self.filter(sync_enabled=True, is_active=True)


class Location(models.Model):
    """A restaurant within a chain; the unit of independent read/write authority"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    chain = models.ForeignKey(RestaurantChain, related_name="locations", on_delete=models.PROTECT)
    region = models.ForeignKey(ChainRegion, null=True, blank=True, related_name="locations", on_delete=models.SET_NULL)
    name = models.CharField(max_length=255)
    location_code = models.CharField(max_length=50)
    sync_priority = models.IntegerField(default=1000)  # lower is more authoritative
    sync_enabled = models.BooleanField(default=True)
    last_sync_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = LocationQuerySet.as_manager()

    class Meta:
        db_table = "restaurant_locations"
        ordering = ["chain", "location_code"]
        indexes = [
            models.Index(fields=["chain", "sync_enabled"], name="location_chain_sync_idx"),
            models.Index(fields=["sync_priority"], name="location_sync_priority_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.location_code})"

    def clean(self):
        if self.region_id and self.region.chain_id != self.chain_id:
            raise ValidationError({"region": "Region must belong to the same chain as the location."})

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)
