from django.contrib import admin
from .models import SyncConfiguration, SyncJob, SyncOperation, SyncConflict, SyncPerformanceMetric


@admin.register(SyncConfiguration)
class SyncConfigurationAdmin(admin.ModelAdmin):
    list_display = ["table_name", "chain", "sync_direction", "conflict_resolution", "sync_frequency_minutes", "is_active", "last_run_at"]
    list_filter = ["chain", "sync_direction", "conflict_resolution", "is_active"]
    search_fields = ["table_name"]
    filter_horizontal = ["target_locations"]
    readonly_fields = ["id", "last_run_at", "created_at", "updated_at"]


@admin.register(SyncJob)
class SyncJobAdmin(admin.ModelAdmin):
    list_display = ["id", "config", "target_location", "sync_type", "status", "priority", "retry_count", "scheduled_at"]
    list_filter = ["status", "sync_type"]
    search_fields = ["batch_id"]
    readonly_fields = ["id", "batch_id", "started_at", "completed_at", "lease_expires_at", "created_at", "updated_at"]


@admin.register(SyncOperation)
class SyncOperationAdmin(admin.ModelAdmin):
    list_display = ["table_name", "record_id", "operation", "source_location", "target_location", "status", "priority", "retry_count", "created_at"]
    list_filter = ["status", "operation", "table_name"]
    search_fields = ["record_id", "sync_batch_id"]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(SyncConflict)
class SyncConflictAdmin(admin.ModelAdmin):
    list_display = ["table_name", "record_id", "conflict_type", "status", "priority_score", "auto_resolved", "resolved_at"]
    list_filter = ["status", "conflict_type", "auto_resolved"]
    search_fields = ["record_id", "table_name"]
    readonly_fields = ["id", "sync_operation", "source_data", "target_data", "base_data", "conflicting_fields", "created_at", "updated_at"]


@admin.register(SyncPerformanceMetric)
class SyncPerformanceMetricAdmin(admin.ModelAdmin):
    list_display = ["table_name", "chain", "started_at", "records_processed", "success_rate_percent", "sync_quality_score"]
    list_filter = ["chain", "table_name"]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
