"""Root URL configuration.

The file vault is driven through its sync controller and management
commands; only the admin is routed.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]
