from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated

from .models import RestaurantChain, Location
from .serializers import RestaurantChainSerializer, LocationSerializer


class RestaurantChainViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Chains visible to the caller
    Superusers see every chain, everyone else only their own
    """

    serializer_class = RestaurantChainSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        queryset = RestaurantChain.objects.prefetch_related("regions")
        if user.is_superuser:
            return queryset
        return queryset.filter(id=user.chain_id)


class LocationViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = LocationSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        queryset = Location.objects.all()
        if not user.is_superuser:
            queryset = queryset.filter(chain_id=user.chain_id)

        region = self.request.query_params.get("region")
        if region:
            queryset = queryset.filter(region_id=region)
        return queryset
