import logging

from django.core.paginator import Paginator
from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from storefront.core.cache_utils import get_cached_products_list, cache_products_list, invalidate_products_cache
from storefront.core.utils import create_audit_log
from .filters import ProductFilter
from .grades import GradeSynthesizer
from .models import Category, ProductType, Gender, Color, Size, Grade, GradeTemplate, Product
from .resolver import EntityResolver
from .serializers import (
    CategorySerializer, ProductTypeSerializer, GenderSerializer, ColorSerializer, SizeSerializer,
    GradeSerializer, GradeTemplatesUpdateSerializer,
    ProductListSerializer, ProductDetailSerializer,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


def _lookup_list(request, model, serializer_class):
    queryset = model.objects.all()
    search = request.query_params.get('search')
    if search:
        queryset = queryset.filter(name__icontains=search)
    if request.query_params.get('active') == 'true':
        queryset = queryset.filter(is_active=True)
    if model is not Size:
        queryset = queryset.order_by('name')
    return Response(serializer_class(queryset, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def category_list(request):
    """List categories"""
    return _lookup_list(request, Category, CategorySerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def product_type_list(request):
    """List product types"""
    return _lookup_list(request, ProductType, ProductTypeSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def gender_list(request):
    """List genders"""
    return _lookup_list(request, Gender, GenderSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def color_list(request):
    """List colors"""
    return _lookup_list(request, Color, ColorSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def size_list(request):
    """List sizes in display order"""
    return _lookup_list(request, Size, SizeSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def product_list(request):
    """List products with filters, paginated and cached"""
    try:
        page = int(request.query_params.get('page', 1))
        limit = int(request.query_params.get('limit', 50))
    except ValueError:
        return Response({'error': 'page and limit must be integers'}, status=status.HTTP_400_BAD_REQUEST)
    if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
        return Response(
            {'error': f'page must be positive and limit between 1 and {MAX_PAGE_SIZE}'},
            status=status.HTTP_400_BAD_REQUEST,
        )

    filters_dict = {key: request.query_params.get(key) for key in sorted(request.query_params.keys())}
    cached_data, cache_key = get_cached_products_list(filters_dict)
    if cached_data is not None:
        return Response(cached_data)

    queryset = Product.objects.select_related('category', 'type', 'gender').prefetch_related('color_variants')
    filterset = ProductFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    queryset = filterset.qs.order_by('-updated_at', '-created_at')

    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)
    data = {
        'results': list(ProductListSerializer(page_obj, many=True).data),
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    }
    cache_products_list(cache_key, data)
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def product_detail(request, pk):
    """Retrieve a product with its color variants, size variants and grade stock"""
    product = get_object_or_404(
        Product.objects.select_related('category', 'type', 'gender').prefetch_related(
            'color_variants__color', 'size_variants__color', 'size_variants__size',
            'color_grades__color', 'color_grades__grade',
        ),
        pk=pk,
    )
    return Response(ProductDetailSerializer(product).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def grade_list(request):
    """List grades with their templates"""
    queryset = Grade.objects.prefetch_related('templates__size').order_by('name')
    search = request.query_params.get('search')
    if search:
        queryset = queryset.filter(name__icontains=search)
    return Response(GradeSerializer(queryset, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def grade_detail(request, pk):
    grade = get_object_or_404(Grade.objects.prefetch_related('templates__size'), pk=pk)
    return Response(GradeSerializer(grade).data)


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def grade_templates_update(request, pk):
    """
    Set the required quantity of each size in a grade.

    Sizes not mentioned keep their current quantity; unknown size labels are
    created and added to the grade.
    """
    grade = get_object_or_404(Grade, pk=pk)
    serializer = GradeTemplatesUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    resolver = EntityResolver()
    changes = {}
    with transaction.atomic():
        for item in serializer.validated_data['templates']:
            size = resolver.resolve('size', item['size'])
            template, created = GradeTemplate.objects.get_or_create(
                grade=grade, size=size, defaults={'required_quantity': item['required_quantity']}
            )
            old_quantity = None if created else template.required_quantity
            if not created and template.required_quantity != item['required_quantity']:
                template.required_quantity = item['required_quantity']
                template.save(update_fields=['required_quantity'])
            if created or old_quantity != item['required_quantity']:
                changes[size.name] = {'old': old_quantity, 'new': item['required_quantity']}

        if changes:
            create_audit_log(
                request=request,
                action='grade_template_update',
                model_name='Grade',
                object_id=grade.pk,
                object_name=grade.name,
                changes=changes,
            )

    if changes:
        invalidate_products_cache()
        logger.info(f"Grade '{grade.name}' templates updated: {changes}")

    grade = Grade.objects.prefetch_related('templates__size').get(pk=grade.pk)
    return Response(GradeSerializer(grade).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def grade_preview(request):
    """Show which size profile a grade name would be synthesized with"""
    name = (request.query_params.get('name') or '').strip()
    if not name:
        return Response({'error': 'name query parameter is required'}, status=status.HTTP_400_BAD_REQUEST)

    existing = Grade.objects.prefetch_related('templates__size').filter(name=name).first()
    if existing is not None:
        return Response({
            'name': name,
            'exists': True,
            'grade': GradeSerializer(existing).data,
        })

    profile = GradeSynthesizer().profile_for(name)
    return Response({
        'name': name,
        'exists': False,
        'profile': profile.as_dict(),
    })
