from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    SyncConfigurationViewSet,
    SyncConflictViewSet,
    SyncJobViewSet,
    SyncOperationViewSet,
    SyncPerformanceMetricViewSet,
    batch_detail,
    health,
    initiate_sync,
)

router = DefaultRouter()
router.register(r"configurations", SyncConfigurationViewSet, basename="sync-configuration")
router.register(r"jobs", SyncJobViewSet, basename="sync-job")
router.register(r"operations", SyncOperationViewSet, basename="sync-operation")
router.register(r"conflicts", SyncConflictViewSet, basename="sync-conflict")
router.register(r"metrics", SyncPerformanceMetricViewSet, basename="sync-metric")

urlpatterns = [
    path("", include(router.urls)),
    path("initiate/", initiate_sync, name="sync-initiate"),
    path("batches/<uuid:batch_id>/", batch_detail, name="sync-batch-detail"),
    path("health/", health, name="sync-health"),
]
