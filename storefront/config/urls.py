"""
URL configuration for the storefront backend.

Every app mounts its routes under /api/v1/; the admin stays at /admin/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Storefront Catalog Admin"
admin.site.site_title = "Storefront Catalog Admin"
admin.site.index_title = "Catálogo, grades e estoque"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('storefront.core.urls')),
    path('api/v1/', include('storefront.importer.urls')),
    path('api/v1/', include('storefront.inventory.urls')),
    path('api/v1/', include('storefront.catalog.urls')),
]
