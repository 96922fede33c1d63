import django_filters
from django.db.models import Q

from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Filter for the storefront product listing"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.NumberFilter(field_name='category_id', lookup_expr='exact')
    type = django_filters.NumberFilter(field_name='type_id', lookup_expr='exact')
    gender = django_filters.NumberFilter(field_name='gender_id', lookup_expr='exact')
    color = django_filters.NumberFilter(method='filter_color', label='Color ID')
    stock_strategy = django_filters.ChoiceFilter(choices=Product.STOCK_STRATEGY_CHOICES)
    active = django_filters.CharFilter(method='filter_active', label='Active')

    class Meta:
        model = Product
        fields = ['search', 'category', 'type', 'gender', 'color', 'stock_strategy', 'active']

    def filter_search(self, queryset, name, value):
        """Every word must appear in the name, code or category"""
        if not value:
            return queryset
        for word in value.split():
            queryset = queryset.filter(
                Q(name__icontains=word) |
                Q(code__icontains=word) |
                Q(category__name__icontains=word)
            )
        return queryset

    def filter_color(self, queryset, name, value):
        if value is None:
            return queryset
        return queryset.filter(color_variants__color_id=value).distinct()

    def filter_active(self, queryset, name, value):
        if value is None or value == '':
            return queryset
        return queryset.filter(is_active=value.lower() in ('true', '1', 'yes'))
