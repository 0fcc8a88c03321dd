from django.contrib import admin
from .models import RestaurantChain, ChainRegion, Location


@admin.register(RestaurantChain)
class RestaurantChainAdmin(admin.ModelAdmin):
    list_display = ["name", "code", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "code"]
    readonly_fields = ["id", "sync_sequence", "created_at", "updated_at"]


@admin.register(ChainRegion)
class ChainRegionAdmin(admin.ModelAdmin):
    list_display = ["name", "code", "chain", "is_active"]
    list_filter = ["chain", "is_active"]
    search_fields = ["name", "code"]


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ["name", "location_code", "chain", "region", "sync_priority", "sync_enabled", "last_sync_at"]
    list_filter = ["chain", "sync_enabled", "is_active"]
    search_fields = ["name", "location_code"]
    readonly_fields = ["id", "last_sync_at", "created_at", "updated_at"]
