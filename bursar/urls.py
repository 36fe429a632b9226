"""
URL configuration for the bursar project.

Only the Django admin is routed here; the ledger and promotion services
are consumed by the web and notification layers as plain Python calls.
"""
from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]
