from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("users.urls")),
    path("api/", include("loyalty.urls")),
    path("api/", include("retention.urls")),
    path("api/", include("mailer.urls")),
    path("api/", include("assistant.urls")),
]
