from django.contrib import admin
from .models import LocationRecord


@admin.register(LocationRecord)
class LocationRecordAdmin(admin.ModelAdmin):
    list_display = ["table_name", "record_id", "location", "updated_at"]
    list_filter = ["table_name", "location"]
    search_fields = ["record_id"]
    readonly_fields = ["created_at", "updated_at"]
