import uuid
from django.conf import settings
from django.db import models

from apps.chains.models import RestaurantChain, Location
from .exceptions import ImmutableRecordError


# sync status, shared by jobs, operations and conflicts
PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
FAILED = "failed"
CONFLICT = "conflict"

SYNC_STATUS_CHOICES = (
    (PENDING, "Pending"),
    (IN_PROGRESS, "In progress"),
    (COMPLETED, "Completed"),
    (FAILED, "Failed"),
    (CONFLICT, "Conflict"),
)

# conflict resolution strategies
LAST_WRITE_WINS = "last_write_wins"
MANUAL_REVIEW = "manual_review"
PRIORITY_BASED = "priority_based"
MERGE_STRATEGY = "merge_strategy"

RESOLUTION_CHOICES = (
    (LAST_WRITE_WINS, "Last write wins"),
    (MANUAL_REVIEW, "Manual review"),
    (PRIORITY_BASED, "Priority based"),
    (MERGE_STRATEGY, "Merge"),
)

# operation kinds
INSERT = "insert"
UPDATE = "update"
DELETE = "delete"
BULK_UPDATE = "bulk_update"

OPERATION_CHOICES = (
    (INSERT, "Insert"),
    (UPDATE, "Update"),
    (DELETE, "Delete"),
    (BULK_UPDATE, "Bulk update"),
)


class SyncConfiguration(models.Model):
    """Per-chain, per-table sync policy"""

    BIDIRECTIONAL = "bidirectional"
    TOP_DOWN = "top_down"
    BOTTOM_UP = "bottom_up"

    DIRECTION_CHOICES = (
        (BIDIRECTIONAL, "Bidirectional"),
        (TOP_DOWN, "Top down"),
        (BOTTOM_UP, "Bottom up"),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    chain = models.ForeignKey(RestaurantChain, related_name="sync_configurations", on_delete=models.CASCADE)
    table_name = models.CharField(max_length=100)
    sync_direction = models.CharField(max_length=50, choices=DIRECTION_CHOICES, default=BIDIRECTIONAL)
    # not constrained at the DB level; unknown values fall back to last_write_wins
    conflict_resolution = models.CharField(max_length=50, choices=RESOLUTION_CHOICES, default=LAST_WRITE_WINS)
    sync_frequency_minutes = models.PositiveIntegerField(default=60)
    batch_size = models.PositiveIntegerField(default=1000)
    priority_weight = models.IntegerField(default=100)

    # designated authoritative location; falls back to the lowest sync_priority
    source_location = models.ForeignKey(Location, null=True, blank=True, related_name="+", on_delete=models.SET_NULL)
    target_locations = models.ManyToManyField(Location, blank=True, related_name="+")

    field_mappings = models.JSONField(default=dict, blank=True)
    filter_conditions = models.JSONField(default=dict, blank=True)
    transformation_rules = models.JSONField(default=dict, blank=True)

    is_active = models.BooleanField(default=True)
    last_run_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "sync_configurations"
        ordering = ["chain", "table_name"]
        constraints = [
            models.UniqueConstraint(fields=["chain", "table_name"], name="uniq_sync_config_per_chain_table"),
        ]

    def __str__(self):
        return f"{self.table_name} [{self.sync_direction}] for {self.chain_id}"

    @property
    def is_automatic(self) -> bool:
        return self.conflict_resolution != MANUAL_REVIEW

    def enabled_locations(self):
        return Location.objects.sync_enabled().filter(chain_id=self.chain_id)

    def authoritative_location(self):
        if self.source_location_id:
            return self.source_location
        return self.enabled_locations().order_by("sync_priority", "location_code").first()

    def candidate_targets(self, exclude=None):
        """Explicit target set if configured, else every enabled location in the chain"""
        if self.pk and self.target_locations.exists():
            queryset = self.target_locations.filter(sync_enabled=True, is_active=True)
        else:
            queryset = self.enabled_locations()
        if exclude is not None:
            queryset = queryset.exclude(pk=exclude.pk)
        return queryset

    def matches(self, image) -> bool:
        """Check the `match` filter condition against a record image"""
        if image is None:
            return True
        expected = (self.filter_conditions or {}).get("match") or {}
        return all(image.get(field) == value for field, value in expected.items())

    def prepare_image(self, image):
        """Apply field filters, mappings and transformations to a record image"""
        if image is None:
            return None

        engine = settings.SYNC_ENGINE
        always_kept = {engine["RECORD_ID_FIELD"], engine["TIMESTAMP_FIELD"]}
        conditions = self.filter_conditions or {}
        rules = self.transformation_rules or {}

        data = dict(image)

        include = conditions.get("include_fields")
        if include:
            allowed = set(include) | always_kept
            data = {k: v for k, v in data.items() if k in allowed}

        for field in conditions.get("exclude_fields") or []:
            if field not in always_kept:
                data.pop(field, None)

        for source_field, target_field in (self.field_mappings or {}).items():
            if source_field in data:
                data[target_field] = data.pop(source_field)

        for field, value in (rules.get("defaults") or {}).items():
            data.setdefault(field, value)

        data.update(rules.get("set") or {})

        return data


class SyncJob(models.Model):
    """Scheduled unit of sync work for one (configuration, source, target)"""

    FULL = "full"
    INCREMENTAL = "incremental"
    DELTA = "delta"

    SYNC_TYPE_CHOICES = (
        (FULL, "Full"),
        (INCREMENTAL, "Incremental"),
        (DELTA, "Delta"),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    config = models.ForeignKey(SyncConfiguration, related_name="jobs", on_delete=models.CASCADE)
    batch_id = models.UUIDField(default=uuid.uuid4, db_index=True)
    source_location = models.ForeignKey(Location, null=True, blank=True, related_name="outgoing_sync_jobs", on_delete=models.CASCADE)
    target_location = models.ForeignKey(Location, related_name="incoming_sync_jobs", on_delete=models.CASCADE)
    sync_type = models.CharField(max_length=20, choices=SYNC_TYPE_CHOICES, default=INCREMENTAL)
    scheduled_at = models.DateTimeField()
    status = models.CharField(max_length=20, choices=SYNC_STATUS_CHOICES, default=PENDING)
    priority = models.IntegerField(default=0)
    retry_count = models.PositiveIntegerField(default=0)
    max_retries = models.PositiveIntegerField(default=3)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    lease_expires_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "sync_jobs"
        ordering = ["-priority", "created_at"]
        indexes = [
            models.Index(fields=["status", "scheduled_at"], name="sync_job_status_sched_idx"),
            models.Index(fields=["source_location", "target_location"], name="sync_job_source_target_idx"),
        ]

    def __str__(self):
        return f"Job {self.id} {self.config.table_name} -> {self.target_location_id} [{self.status}]"

    @property
    def table_name(self) -> str:
        return self.config.table_name


class SyncOperationQuerySet(models.QuerySet):
    def delete(self):
        raise ImmutableRecordError("Sync operations are append-only and cannot be deleted")

    def pending(self):
        return self.filter(status=PENDING)

    def causal_order(self):
        return self.order_by("created_at", "sequence")


class SyncOperation(models.Model):
    """Ledger entry: one captured change propagated toward one target"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    chain = models.ForeignKey(RestaurantChain, related_name="sync_operations", on_delete=models.PROTECT)
    source_location = models.ForeignKey(Location, null=True, related_name="outgoing_sync_operations", on_delete=models.PROTECT)
    target_location = models.ForeignKey(Location, null=True, related_name="incoming_sync_operations", on_delete=models.PROTECT)
    table_name = models.CharField(max_length=100)
    operation = models.CharField(max_length=20, choices=OPERATION_CHOICES)
    record_id = models.CharField(max_length=64)
    record_ids = models.JSONField(default=list, blank=True)  # bulk_update only
    old_data = models.JSONField(null=True, blank=True)
    new_data = models.JSONField(null=True, blank=True)
    sync_batch_id = models.UUIDField(db_index=True)
    job = models.ForeignKey(SyncJob, null=True, blank=True, related_name="operations", on_delete=models.SET_NULL)

    status = models.CharField(max_length=20, choices=SYNC_STATUS_CHOICES, default=PENDING)
    priority = models.IntegerField(default=0)
    sequence = models.BigIntegerField(default=0)

    conflict_detected = models.BooleanField(default=False)
    conflict_resolution_strategy = models.CharField(max_length=50, null=True, blank=True)
    resolved_data = models.JSONField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    execution_time_ms = models.IntegerField(null=True, blank=True)
    retry_count = models.PositiveIntegerField(default=0)
    max_retries = models.PositiveIntegerField(default=3)

    # claim bookkeeping
    claimed_by = models.CharField(max_length=100, null=True, blank=True)
    claim_token = models.UUIDField(null=True, blank=True, db_index=True)
    lease_expires_at = models.DateTimeField(null=True, blank=True)

    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SyncOperationQuerySet.as_manager()

    class Meta:
        db_table = "sync_operations"
        ordering = ["created_at", "sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["source_location", "target_location", "table_name", "record_id", "sync_batch_id"],
                name="uniq_sync_operation_capture",
            ),
        ]
        indexes = [
            models.Index(fields=["chain", "status", "created_at"], name="sync_op_chain_status_idx"),
            models.Index(fields=["table_name", "status"], name="sync_op_table_status_idx"),
            models.Index(fields=["target_location", "status"], name="sync_op_target_status_idx"),
        ]

    def __str__(self):
        return f"{self.operation} {self.table_name}/{self.record_id} -> {self.target_location_id} [{self.status}]"

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError("Sync operations are append-only and cannot be deleted")


class SyncConflict(models.Model):
    DATA_MISMATCH = "data_mismatch"
    VERSION_CONFLICT = "version_conflict"

    CONFLICT_TYPE_CHOICES = (
        (DATA_MISMATCH, "Data mismatch"),
        (VERSION_CONFLICT, "Version conflict"),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sync_operation = models.OneToOneField(SyncOperation, related_name="conflict", on_delete=models.PROTECT)
    chain = models.ForeignKey(RestaurantChain, related_name="sync_conflicts", on_delete=models.PROTECT)
    table_name = models.CharField(max_length=100)
    record_id = models.CharField(max_length=64)
    conflict_type = models.CharField(max_length=50, choices=CONFLICT_TYPE_CHOICES)
    source_data = models.JSONField()
    target_data = models.JSONField()
    base_data = models.JSONField(null=True, blank=True)
    conflicting_fields = models.JSONField(default=list, blank=True)
    resolution_strategy = models.CharField(max_length=50, null=True, blank=True)
    resolved_data = models.JSONField(null=True, blank=True)
    resolved_by = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    resolved_at = models.DateTimeField(null=True, blank=True)
    auto_resolved = models.BooleanField(default=False)
    priority_score = models.IntegerField(default=0)
    status = models.CharField(max_length=20, choices=SYNC_STATUS_CHOICES, default=PENDING)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "sync_conflicts"
        ordering = ["-priority_score", "created_at"]
        indexes = [
            models.Index(fields=["chain", "status"], name="sync_conflict_chain_idx"),
            models.Index(fields=["table_name", "record_id"], name="sync_conflict_record_idx"),
            models.Index(fields=["-priority_score"], name="sync_conflict_priority_idx"),
        ]

    def __str__(self):
        return f"Conflict {self.conflict_type} on {self.table_name}/{self.record_id} [{self.status}]"

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None


class SyncPerformanceMetric(models.Model):
    """Immutable rollup of ledger entries per (chain, batch, table)"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    chain = models.ForeignKey(RestaurantChain, related_name="sync_metrics", on_delete=models.CASCADE)
    sync_batch_id = models.UUIDField()
    table_name = models.CharField(max_length=100)
    restaurant_count = models.IntegerField(default=0)
    records_processed = models.IntegerField(default=0)
    records_success = models.IntegerField(default=0)
    records_failed = models.IntegerField(default=0)
    conflicts_detected = models.IntegerField(default=0)
    conflicts_resolved = models.IntegerField(default=0)
    strategy_fallbacks = models.IntegerField(default=0)
    execution_time_ms = models.BigIntegerField(default=0)
    avg_execution_time_ms = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    throughput_records_per_sec = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    error_rate_percent = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    success_rate_percent = models.DecimalField(max_digits=5, decimal_places=2, default=100)
    sync_quality_score = models.DecimalField(max_digits=5, decimal_places=2, default=100)
    started_at = models.DateTimeField()
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "sync_performance_metrics"
        ordering = ["-started_at"]
        constraints = [
            models.UniqueConstraint(fields=["chain", "sync_batch_id", "table_name"], name="uniq_metric_per_batch_table"),
        ]
        indexes = [
            models.Index(fields=["table_name", "started_at"], name="sync_metric_table_date_idx"),
        ]

    def __str__(self):
        return f"Metrics {self.table_name} {self.started_at:%Y-%m-%d %H:%M} ({self.sync_quality_score})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError("Performance metrics are immutable once written")
        super().save(*args, **kwargs)
