from django.urls import path
from .views import stock_type_update, size_stock, grade_stock, stock_summary, availability

urlpatterns = [
    path('products/<int:pk>/stock-type/', stock_type_update, name='product-stock-type'),
    path('products/<int:pk>/size-stock/', size_stock, name='product-size-stock'),
    path('products/<int:pk>/grade-stock/', grade_stock, name='product-grade-stock'),
    path('products/<int:pk>/stock-summary/', stock_summary, name='product-stock-summary'),
    path('products/<int:pk>/availability/', availability, name='product-availability'),
]
