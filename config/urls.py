from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path("admin/", admin.site.urls),
    # API v1
    path("api/v1/auth/", include("apps.authentication.urls")),
    path("api/v1/chains/", include("apps.chains.urls")),
    path("api/v1/records/", include("apps.records.urls")),
    path("api/v1/sync/", include("apps.sync.urls")),
]
