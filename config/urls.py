from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path("admin/", admin.site.urls),

    # Recipe cache management API (namespaced)
    path("api/cache/", include(("recipecache.urls", "recipecache"), namespace="recipecache")),
]
