from rest_framework import serializers
from .models import RestaurantChain, ChainRegion, Location


class ChainRegionSerializer(serializers.ModelSerializer):
    class Meta:
        model = ChainRegion
        fields = ["id", "chain", "name", "name_th", "code", "timezone", "is_active"]
        read_only_fields = fields


class LocationSerializer(serializers.ModelSerializer):
    """Location with its sync settings"""

    class Meta:
        model = Location
        fields = [
            "id",
            "chain",
            "region",
            "name",
            "location_code",
            "sync_priority",
            "sync_enabled",
            "last_sync_at",
            "is_active",
        ]
        read_only_fields = fields


class RestaurantChainSerializer(serializers.ModelSerializer):
    regions = ChainRegionSerializer(many=True, read_only=True)

    class Meta:
        model = RestaurantChain
        fields = ["id", "name", "name_th", "code", "timezone", "default_currency", "is_active", "regions"]
        read_only_fields = fields
