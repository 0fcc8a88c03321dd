from rest_framework import serializers

from apps.chains.models import Location
from .models import LocationRecord


class LocationRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = LocationRecord
        fields = ["id", "location", "table_name", "record_id", "data", "created_at", "updated_at"]
        read_only_fields = fields


class SaveRecordSerializer(serializers.Serializer):
    """
    Serializer for local record writes
    """

    location = serializers.PrimaryKeyRelatedField(queryset=Location.objects.filter(is_active=True))
    table_name = serializers.CharField(max_length=100)
    record_id = serializers.CharField(max_length=64)
    data = serializers.JSONField()

    def validate_data(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Record data must be an object")
        return value


class BulkUpdateSerializer(serializers.Serializer):
    location = serializers.PrimaryKeyRelatedField(queryset=Location.objects.filter(is_active=True))
    table_name = serializers.CharField(max_length=100)
    changes = serializers.DictField(child=serializers.JSONField())

    def validate_changes(self, value):
        if not value:
            raise serializers.ValidationError("At least one record is required")
        if len(value) > 500:
            raise serializers.ValidationError("Maximum 500 records per bulk update")
        for record_id, partial in value.items():
            if not isinstance(partial, dict):
                raise serializers.ValidationError(f"Changes for {record_id} must be an object")
        return value
