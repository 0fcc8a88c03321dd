from rest_framework import serializers

from apps.chains.models import Location
from .models import (
    SyncConfiguration,
    SyncJob,
    SyncOperation,
    SyncConflict,
    SyncPerformanceMetric,
    RESOLUTION_CHOICES,
)


class SyncConfigurationSerializer(serializers.ModelSerializer):
    class Meta:
        model = SyncConfiguration
        fields = [
            "id",
            "chain",
            "table_name",
            "sync_direction",
            "conflict_resolution",
            "sync_frequency_minutes",
            "batch_size",
            "priority_weight",
            "source_location",
            "target_locations",
            "field_mappings",
            "filter_conditions",
            "transformation_rules",
            "is_active",
            "last_run_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "last_run_at", "created_at", "updated_at"]

    def validate(self, attrs):
        chain = attrs.get("chain") or getattr(self.instance, "chain", None)

        source = attrs.get("source_location")
        if source is not None and chain is not None and source.chain_id != chain.pk:
            raise serializers.ValidationError({"source_location": "Location belongs to another chain"})

        for target in attrs.get("target_locations") or []:
            if chain is not None and target.chain_id != chain.pk:
                raise serializers.ValidationError({"target_locations": f"Location {target.pk} belongs to another chain"})

        return attrs


class SyncOperationSerializer(serializers.ModelSerializer):
    """
    Serializer for ledger entries (listing)
    """

    class Meta:
        model = SyncOperation
        fields = [
            "id",
            "chain",
            "source_location",
            "target_location",
            "table_name",
            "operation",
            "record_id",
            "record_ids",
            "old_data",
            "new_data",
            "sync_batch_id",
            "job",
            "status",
            "priority",
            "conflict_detected",
            "conflict_resolution_strategy",
            "resolved_data",
            "error_message",
            "execution_time_ms",
            "retry_count",
            "max_retries",
            "processed_at",
            "created_at",
        ]
        read_only_fields = fields


class SyncJobSerializer(serializers.ModelSerializer):
    table_name = serializers.CharField(source="config.table_name", read_only=True)

    class Meta:
        model = SyncJob
        fields = [
            "id",
            "config",
            "table_name",
            "batch_id",
            "source_location",
            "target_location",
            "sync_type",
            "scheduled_at",
            "status",
            "priority",
            "retry_count",
            "max_retries",
            "started_at",
            "completed_at",
            "error_message",
            "created_at",
        ]
        read_only_fields = fields


class SyncConflictSerializer(serializers.ModelSerializer):
    """
    Serializer for conflict records
    """

    resolved_by_email = serializers.CharField(source="resolved_by.email", read_only=True, allow_null=True)
    target_location = serializers.UUIDField(source="sync_operation.target_location_id", read_only=True)
    source_location = serializers.UUIDField(source="sync_operation.source_location_id", read_only=True)

    class Meta:
        model = SyncConflict
        fields = [
            "id",
            "sync_operation",
            "chain",
            "table_name",
            "record_id",
            "source_location",
            "target_location",
            "conflict_type",
            "source_data",
            "target_data",
            "base_data",
            "conflicting_fields",
            "resolution_strategy",
            "resolved_data",
            "resolved_by",
            "resolved_by_email",
            "resolved_at",
            "auto_resolved",
            "priority_score",
            "status",
            "metadata",
            "created_at",
        ]
        read_only_fields = fields


class ResolveConflictSerializer(serializers.Serializer):
    strategy = serializers.ChoiceField(choices=RESOLUTION_CHOICES, required=False)
    resolved_data = serializers.JSONField(required=False)

    def validate_resolved_data(self, value):
        if value is not None and not isinstance(value, dict):
            raise serializers.ValidationError("Resolved data must be an object")
        return value

    def validate(self, attrs):
        if not attrs.get("strategy") and attrs.get("resolved_data") is None:
            raise serializers.ValidationError("Provide a strategy or resolved_data")
        return attrs


class InitiateSyncSerializer(serializers.Serializer):
    chain = serializers.UUIDField()
    table_name = serializers.CharField(max_length=100)
    source_location = serializers.PrimaryKeyRelatedField(queryset=Location.objects.all(), required=False, allow_null=True)
    target_locations = serializers.PrimaryKeyRelatedField(queryset=Location.objects.all(), many=True, required=False)
    sync_type = serializers.ChoiceField(choices=SyncJob.SYNC_TYPE_CHOICES, default=SyncJob.INCREMENTAL)

    def validate(self, attrs):
        chain_id = attrs["chain"]
        source = attrs.get("source_location")
        if source is not None and source.chain_id != chain_id:
            raise serializers.ValidationError({"source_location": "Location belongs to another chain"})
        for target in attrs.get("target_locations") or []:
            if target.chain_id != chain_id:
                raise serializers.ValidationError({"target_locations": f"Location {target.pk} belongs to another chain"})
        return attrs


class SyncPerformanceMetricSerializer(serializers.ModelSerializer):
    class Meta:
        model = SyncPerformanceMetric
        fields = [
            "id",
            "chain",
            "sync_batch_id",
            "table_name",
            "restaurant_count",
            "records_processed",
            "records_success",
            "records_failed",
            "conflicts_detected",
            "conflicts_resolved",
            "strategy_fallbacks",
            "execution_time_ms",
            "avg_execution_time_ms",
            "throughput_records_per_sec",
            "error_rate_percent",
            "success_rate_percent",
            "sync_quality_score",
            "started_at",
            "completed_at",
        ]
        read_only_fields = fields
