import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


SYNC_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("in_progress", "In progress"),
    ("completed", "Completed"),
    ("failed", "Failed"),
    ("conflict", "Conflict"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("chains", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="SyncConfiguration",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("table_name", models.CharField(max_length=100)),
                (
                    "sync_direction",
                    models.CharField(
                        choices=[("bidirectional", "Bidirectional"), ("top_down", "Top down"), ("bottom_up", "Bottom up")],
                        default="bidirectional",
                        max_length=50,
                    ),
                ),
                (
                    "conflict_resolution",
                    models.CharField(
                        choices=[
                            ("last_write_wins", "Last write wins"),
                            ("manual_review", "Manual review"),
                            ("priority_based", "Priority based"),
                            ("merge_strategy", "Merge"),
                        ],
                        default="last_write_wins",
                        max_length=50,
                    ),
                ),
                ("sync_frequency_minutes", models.PositiveIntegerField(default=60)),
                ("batch_size", models.PositiveIntegerField(default=1000)),
                ("priority_weight", models.IntegerField(default=100)),
                ("field_mappings", models.JSONField(blank=True, default=dict)),
                ("filter_conditions", models.JSONField(blank=True, default=dict)),
                ("transformation_rules", models.JSONField(blank=True, default=dict)),
                ("is_active", models.BooleanField(default=True)),
                ("last_run_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "chain",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="sync_configurations", to="chains.restaurantchain"
                    ),
                ),
                (
                    "source_location",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="chains.location"
                    ),
                ),
                ("target_locations", models.ManyToManyField(blank=True, related_name="+", to="chains.location")),
            ],
            options={
                "db_table": "sync_configurations",
                "ordering": ["chain", "table_name"],
                "constraints": [
                    models.UniqueConstraint(fields=("chain", "table_name"), name="uniq_sync_config_per_chain_table"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SyncJob",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("batch_id", models.UUIDField(db_index=True, default=uuid.uuid4)),
                (
                    "sync_type",
                    models.CharField(
                        choices=[("full", "Full"), ("incremental", "Incremental"), ("delta", "Delta")],
                        default="incremental",
                        max_length=20,
                    ),
                ),
                ("scheduled_at", models.DateTimeField()),
                ("status", models.CharField(choices=SYNC_STATUS_CHOICES, default="pending", max_length=20)),
                ("priority", models.IntegerField(default=0)),
                ("retry_count", models.PositiveIntegerField(default=0)),
                ("max_retries", models.PositiveIntegerField(default=3)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("lease_expires_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "config",
                    models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="jobs", to="sync.syncconfiguration"),
                ),
                (
                    "source_location",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="outgoing_sync_jobs",
                        to="chains.location",
                    ),
                ),
                (
                    "target_location",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="incoming_sync_jobs", to="chains.location"
                    ),
                ),
            ],
            options={
                "db_table": "sync_jobs",
                "ordering": ["-priority", "created_at"],
                "indexes": [
                    models.Index(fields=["status", "scheduled_at"], name="sync_job_status_sched_idx"),
                    models.Index(fields=["source_location", "target_location"], name="sync_job_source_target_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SyncOperation",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("table_name", models.CharField(max_length=100)),
                (
                    "operation",
                    models.CharField(
                        choices=[("insert", "Insert"), ("update", "Update"), ("delete", "Delete"), ("bulk_update", "Bulk update")],
                        max_length=20,
                    ),
                ),
                ("record_id", models.CharField(max_length=64)),
                ("record_ids", models.JSONField(blank=True, default=list)),
                ("old_data", models.JSONField(blank=True, null=True)),
                ("new_data", models.JSONField(blank=True, null=True)),
                ("sync_batch_id", models.UUIDField(db_index=True)),
                ("status", models.CharField(choices=SYNC_STATUS_CHOICES, default="pending", max_length=20)),
                ("priority", models.IntegerField(default=0)),
                ("sequence", models.BigIntegerField(default=0)),
                ("conflict_detected", models.BooleanField(default=False)),
                ("conflict_resolution_strategy", models.CharField(blank=True, max_length=50, null=True)),
                ("resolved_data", models.JSONField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                ("execution_time_ms", models.IntegerField(blank=True, null=True)),
                ("retry_count", models.PositiveIntegerField(default=0)),
                ("max_retries", models.PositiveIntegerField(default=3)),
                ("claimed_by", models.CharField(blank=True, max_length=100, null=True)),
                ("claim_token", models.UUIDField(blank=True, db_index=True, null=True)),
                ("lease_expires_at", models.DateTimeField(blank=True, null=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "chain",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="sync_operations", to="chains.restaurantchain"
                    ),
                ),
                (
                    "job",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="operations", to="sync.syncjob"
                    ),
                ),
                (
                    "source_location",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="outgoing_sync_operations",
                        to="chains.location",
                    ),
                ),
                (
                    "target_location",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="incoming_sync_operations",
                        to="chains.location",
                    ),
                ),
            ],
            options={
                "db_table": "sync_operations",
                "ordering": ["created_at", "sequence"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("source_location", "target_location", "table_name", "record_id", "sync_batch_id"),
                        name="uniq_sync_operation_capture",
                    ),
                ],
                "indexes": [
                    models.Index(fields=["chain", "status", "created_at"], name="sync_op_chain_status_idx"),
                    models.Index(fields=["table_name", "status"], name="sync_op_table_status_idx"),
                    models.Index(fields=["target_location", "status"], name="sync_op_target_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SyncConflict",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("table_name", models.CharField(max_length=100)),
                ("record_id", models.CharField(max_length=64)),
                (
                    "conflict_type",
                    models.CharField(
                        choices=[("data_mismatch", "Data mismatch"), ("version_conflict", "Version conflict")], max_length=50
                    ),
                ),
                ("source_data", models.JSONField()),
                ("target_data", models.JSONField()),
                ("base_data", models.JSONField(blank=True, null=True)),
                ("conflicting_fields", models.JSONField(blank=True, default=list)),
                ("resolution_strategy", models.CharField(blank=True, max_length=50, null=True)),
                ("resolved_data", models.JSONField(blank=True, null=True)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("auto_resolved", models.BooleanField(default=False)),
                ("priority_score", models.IntegerField(default=0)),
                ("status", models.CharField(choices=SYNC_STATUS_CHOICES, default="pending", max_length=20)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "chain",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="sync_conflicts", to="chains.restaurantchain"
                    ),
                ),
                (
                    "resolved_by",
                    models.ForeignKey(
                        blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL
                    ),
                ),
                (
                    "sync_operation",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT, related_name="conflict", to="sync.syncoperation"
                    ),
                ),
            ],
            options={
                "db_table": "sync_conflicts",
                "ordering": ["-priority_score", "created_at"],
                "indexes": [
                    models.Index(fields=["chain", "status"], name="sync_conflict_chain_idx"),
                    models.Index(fields=["table_name", "record_id"], name="sync_conflict_record_idx"),
                    models.Index(fields=["-priority_score"], name="sync_conflict_priority_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SyncPerformanceMetric",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sync_batch_id", models.UUIDField()),
                ("table_name", models.CharField(max_length=100)),
                ("restaurant_count", models.IntegerField(default=0)),
                ("records_processed", models.IntegerField(default=0)),
                ("records_success", models.IntegerField(default=0)),
                ("records_failed", models.IntegerField(default=0)),
                ("conflicts_detected", models.IntegerField(default=0)),
                ("conflicts_resolved", models.IntegerField(default=0)),
                ("strategy_fallbacks", models.IntegerField(default=0)),
                ("execution_time_ms", models.BigIntegerField(default=0)),
                ("avg_execution_time_ms", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("throughput_records_per_sec", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("error_rate_percent", models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ("success_rate_percent", models.DecimalField(decimal_places=2, default=100, max_digits=5)),
                ("sync_quality_score", models.DecimalField(decimal_places=2, default=100, max_digits=5)),
                ("started_at", models.DateTimeField()),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "chain",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="sync_metrics", to="chains.restaurantchain"
                    ),
                ),
            ],
            options={
                "db_table": "sync_performance_metrics",
                "ordering": ["-started_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("chain", "sync_batch_id", "table_name"), name="uniq_metric_per_batch_table"),
                ],
                "indexes": [
                    models.Index(fields=["table_name", "started_at"], name="sync_metric_table_date_idx"),
                ],
            },
        ),
    ]
