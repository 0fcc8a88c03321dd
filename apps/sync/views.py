import logging

from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_datetime
from rest_framework import viewsets, status
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django_ratelimit.decorators import ratelimit

from apps.chains.models import RestaurantChain
from apps.core.permissions import IsChainManager
from .exceptions import ConflictAlreadyResolved, ConflictTargetChanged, SyncConfigurationError, SyncError
from .models import SyncConfiguration, SyncJob, SyncOperation, SyncConflict, SyncPerformanceMetric
from .serializers import (
    InitiateSyncSerializer,
    ResolveConflictSerializer,
    SyncConfigurationSerializer,
    SyncConflictSerializer,
    SyncJobSerializer,
    SyncOperationSerializer,
    SyncPerformanceMetricSerializer,
)
from .services import HealthAggregator, SyncScheduler, resolve_conflict

logger = logging.getLogger(__name__)


def _scope_to_chain(request, queryset):
    """Superusers see every chain; everyone else only their own, optionally narrowed by ?chain="""
    user = request.user
    chain = request.query_params.get("chain")
    if not user.is_superuser:
        queryset = queryset.filter(chain_id=user.chain_id)
    if chain:
        queryset = queryset.filter(chain_id=chain)
    return queryset


def _parse_time(request, name):
    value = request.query_params.get(name)
    if not value:
        return None
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValidationError({name: "Invalid datetime"})
    return parsed


class SyncConfigurationViewSet(viewsets.ModelViewSet):
    """
    Per-table sync policy of a chain
    Anyone in the chain may read; only its managers and admins may change it
    """

    serializer_class = SyncConfigurationSerializer

    def get_permissions(self):
        if self.action in ("list", "retrieve"):
            return [IsAuthenticated()]
        return [IsAuthenticated(), IsChainManager()]

    def get_queryset(self):
        queryset = SyncConfiguration.objects.select_related("chain").prefetch_related("target_locations")
        return _scope_to_chain(self.request, queryset)

    def perform_create(self, serializer):
        chain = serializer.validated_data["chain"]
        if not self.request.user.can_manage_chain(chain.pk):
            raise PermissionDenied("Only managers of this chain may configure sync.")
        serializer.save()

    def perform_update(self, serializer):
        chain = serializer.validated_data.get("chain", serializer.instance.chain)
        if not self.request.user.can_manage_chain(chain.pk):
            raise PermissionDenied("Only managers of this chain may configure sync.")
        serializer.save()


class SyncJobViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only - jobs are created by the scheduler or through initiate
    """

    serializer_class = SyncJobSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        queryset = SyncJob.objects.select_related("config")
        if not user.is_superuser:
            queryset = queryset.filter(config__chain_id=user.chain_id)

        params = self.request.query_params
        if params.get("chain"):
            queryset = queryset.filter(config__chain_id=params["chain"])
        if params.get("batch_id"):
            queryset = queryset.filter(batch_id=params["batch_id"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        return queryset.order_by("-priority", "created_at")


class SyncOperationViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for viewing the operation ledger
    Read-only - operations are created automatically by change capture
    """

    serializer_class = SyncOperationSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        queryset = _scope_to_chain(self.request, SyncOperation.objects.all())

        params = self.request.query_params
        if params.get("batch_id"):
            queryset = queryset.filter(sync_batch_id=params["batch_id"])
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("table"):
            queryset = queryset.filter(table_name=params["table"])
        return queryset.order_by("-created_at")


class SyncConflictViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Conflict review queue, highest priority first
    """

    serializer_class = SyncConflictSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        queryset = _scope_to_chain(self.request, SyncConflict.objects.select_related("sync_operation", "resolved_by"))

        params = self.request.query_params
        if params.get("status"):
            queryset = queryset.filter(status=params["status"])
        if params.get("table"):
            queryset = queryset.filter(table_name=params["table"])
        return queryset.order_by("-priority_score", "created_at")

    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        """
        Resolve a conflict by hand

        POST /api/v1/sync/conflicts/{id}/resolve/
        {
            "strategy": "merge_strategy",
            "resolved_data": { ... }   (optional, overrides the strategy)
        }
        """
        conflict = self.get_object()
        if not request.user.can_manage_chain(conflict.chain_id):
            return Response({"error": "Only managers of this chain may resolve conflicts"}, status=status.HTTP_403_FORBIDDEN)

        serializer = ResolveConflictSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            resolve_conflict(
                conflict.pk,
                strategy=serializer.validated_data.get("strategy"),
                resolved_image=serializer.validated_data.get("resolved_data"),
                user=request.user,
            )
        except ConflictAlreadyResolved as e:
            return Response({"error": str(e)}, status=status.HTTP_409_CONFLICT)
        except ConflictTargetChanged as e:
            conflict.refresh_from_db()
            return Response(
                {"error": str(e), "conflict": SyncConflictSerializer(conflict).data},
                status=status.HTTP_409_CONFLICT,
            )
        except SyncError as e:
            return Response({"error": "Resolution failed", "detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        conflict.refresh_from_db()
        return Response(SyncConflictSerializer(conflict).data)


class SyncPerformanceMetricViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = SyncPerformanceMetricSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        queryset = _scope_to_chain(self.request, SyncPerformanceMetric.objects.all())

        table = self.request.query_params.get("table")
        if table:
            queryset = queryset.filter(table_name=table)

        since = _parse_time(self.request, "since")
        until = _parse_time(self.request, "until")
        if since:
            queryset = queryset.filter(started_at__gte=since)
        if until:
            queryset = queryset.filter(started_at__lt=until)
        return queryset.order_by("-started_at")


@api_view(["POST"])
@permission_classes([IsAuthenticated])
@ratelimit(key="user", rate="20/m", method="POST")
def initiate_sync(request):
    """
    Force an out-of-band sync pass
    Rate limited to 20 requests per minute per user

    POST /api/v1/sync/initiate/
    {
        "chain": "uuid",
        "table_name": "menu_items",
        "source_location": "uuid",          (optional)
        "target_locations": ["uuid", ...],  (optional, defaults to every location)
        "sync_type": "incremental"
    }
    """

    if getattr(request, "limited", False):
        return Response(
            {"error": "Rate limited exceeded", "detail": "Maximum 20 sync requests per minute. Please try again later."},
            status=status.HTTP_429_TOO_MANY_REQUESTS,
        )

    serializer = InitiateSyncSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    chain = get_object_or_404(RestaurantChain, pk=data["chain"])
    if not request.user.can_manage_chain(chain.pk):
        return Response({"error": "Only managers of this chain may initiate a sync"}, status=status.HTTP_403_FORBIDDEN)

    try:
        batch_id = SyncScheduler().initiate_sync(
            chain,
            data["table_name"],
            source_location=data.get("source_location"),
            target_locations=data.get("target_locations") or None,
            sync_type=data["sync_type"],
        )
    except SyncConfigurationError as e:
        return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"User {request.user.pk} initiated sync batch {batch_id}")
    return Response({"batch_id": str(batch_id)}, status=status.HTTP_202_ACCEPTED)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def batch_detail(request, batch_id):
    """Jobs and operations sharing one batch id"""
    user = request.user

    jobs = SyncJob.objects.filter(batch_id=batch_id).select_related("config")
    operations = SyncOperation.objects.filter(sync_batch_id=batch_id)
    if not user.is_superuser:
        jobs = jobs.filter(config__chain_id=user.chain_id)
        operations = operations.filter(chain_id=user.chain_id)

    if not jobs.exists() and not operations.exists():
        return Response({"error": "Batch not found"}, status=status.HTTP_404_NOT_FOUND)

    return Response(
        {
            "batch_id": str(batch_id),
            "jobs": SyncJobSerializer(jobs.order_by("-priority", "created_at"), many=True).data,
            "operations": SyncOperationSerializer(operations.causal_order(), many=True).data,
        }
    )


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def health(request):
    """Live health figures for a chain over the metrics window"""
    chain_id = request.query_params.get("chain") or request.user.chain_id
    if not chain_id:
        return Response({"error": "chain is required"}, status=status.HTTP_400_BAD_REQUEST)
    if not request.user.can_view_chain(chain_id):
        return Response({"error": "Not a member of this chain"}, status=status.HTTP_403_FORBIDDEN)

    chain = get_object_or_404(RestaurantChain, pk=chain_id)
    return Response({"chain": str(chain.pk), "tables": HealthAggregator().health_summary(chain)})
