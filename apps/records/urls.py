from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import LocationRecordViewSet

router = SimpleRouter()
router.register(r"", LocationRecordViewSet, basename="location-record")

urlpatterns = [
    path("", include(router.urls)),
]
