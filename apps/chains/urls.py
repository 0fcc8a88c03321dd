from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import RestaurantChainViewSet, LocationViewSet

router = DefaultRouter()
router.register(r"chains", RestaurantChainViewSet, basename="chain")
router.register(r"locations", LocationViewSet, basename="location")

urlpatterns = [
    path("", include(router.urls)),
]
