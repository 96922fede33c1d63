from django.urls import path
from .views import bulk_import, single_import, products_by_names

urlpatterns = [
    path('products/bulk/', bulk_import, name='product-bulk-import'),
    path('products/single/', single_import, name='product-single-import'),
    path('products/by-names/', products_by_names, name='product-by-names-import'),
]
