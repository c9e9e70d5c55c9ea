"""URL routing for the admin site and the top-up API."""

from django.contrib import admin
from django.urls import include, path


urlpatterns = [
    path("admin/", admin.site.urls),
    path("accounts/", include("topups.urls")),
]
