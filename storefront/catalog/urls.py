from django.urls import path
from .views import (
    category_list, product_type_list, gender_list, color_list, size_list,
    product_list, product_detail,
    grade_list, grade_detail, grade_templates_update, grade_preview,
)

urlpatterns = [
    # Lookup endpoints
    path('categories/', category_list, name='category-list'),
    path('types/', product_type_list, name='product-type-list'),
    path('genders/', gender_list, name='gender-list'),
    path('colors/', color_list, name='color-list'),
    path('sizes/', size_list, name='size-list'),

    # Product endpoints
    path('products/', product_list, name='product-list'),
    path('products/<int:pk>/', product_detail, name='product-detail'),

    # Grade endpoints
    path('grades/', grade_list, name='grade-list'),
    path('grades/preview/', grade_preview, name='grade-preview'),
    path('grades/<int:pk>/', grade_detail, name='grade-detail'),
    path('grades/<int:pk>/templates/', grade_templates_update, name='grade-templates-update'),
]
