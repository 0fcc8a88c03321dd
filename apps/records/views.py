from rest_framework import mixins, viewsets, status
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .models import LocationRecord
from .serializers import BulkUpdateSerializer, LocationRecordSerializer, SaveRecordSerializer
from .services import LocationRecordService


class LocationRecordViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Local record store of the caller's chain
    Writes go through LocationRecordService so every change is captured for sync
    """

    serializer_class = LocationRecordSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        queryset = LocationRecord.objects.select_related("location")
        if not user.is_superuser:
            queryset = queryset.filter(location__chain_id=user.chain_id)

        params = self.request.query_params
        if params.get("location"):
            queryset = queryset.filter(location_id=params["location"])
        if params.get("table"):
            queryset = queryset.filter(table_name=params["table"])
        return queryset

    def _check_location(self, location):
        if not self.request.user.can_view_chain(location.chain_id):
            raise PermissionDenied("Location belongs to another chain.")

    def create(self, request):
        """
        Create or replace a record at a location

        POST /api/v1/records/
        {
            "location": "uuid",
            "table_name": "menu_items",
            "record_id": "42",
            "data": { ... }
        }
        """
        serializer = SaveRecordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        self._check_location(data["location"])

        record, operations = LocationRecordService().save(data["location"], data["table_name"], data["record_id"], data["data"])

        payload = LocationRecordSerializer(record).data
        payload["sync_operations"] = len(operations)
        return Response(payload, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        record = self.get_object()
        self._check_location(record.location)

        operations = LocationRecordService().delete(record.location, record.table_name, record.record_id)
        return Response({"sync_operations": len(operations)}, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="bulk-update")
    def bulk_update(self, request):
        serializer = BulkUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        self._check_location(data["location"])

        try:
            operations = LocationRecordService().bulk_update(data["location"], data["table_name"], data["changes"])
        except LocationRecord.DoesNotExist as e:
            return Response({"error": str(e)}, status=status.HTTP_404_NOT_FOUND)

        return Response({"sync_operations": len(operations)}, status=status.HTTP_200_OK)
