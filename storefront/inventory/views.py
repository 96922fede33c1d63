from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from storefront.catalog.models import Color, Grade, Product, ProductColorGrade, Size, SizeVariant
from .accessors import UNBOUNDED, accessor_for
from .serializers import (
    StockTypeSerializer, SizeStockUpdateSerializer, GradeStockSerializer,
    SizeStockRowSerializer, GradeStockRowSerializer,
)
from . import services


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def stock_type_update(request, pk):
    """Switch a product between per-size and per-grade stock"""
    product = get_object_or_404(Product, pk=pk)
    serializer = StockTypeSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    services.set_stock_strategy(product, serializer.validated_data['stock_type'], request=request)
    return Response({
        'success': True,
        'message': 'Stock type updated',
        'stock_type': product.stock_strategy,
    })


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def size_stock(request, pk):
    """Read or update the per-size stock of a product"""
    product = get_object_or_404(Product, pk=pk)

    if request.method == 'GET':
        variants = (
            SizeVariant.objects.filter(product=product)
            .select_related('color', 'size')
            .order_by('size__display_order', 'color__name')
        )
        return Response(SizeStockRowSerializer(variants, many=True).data)

    serializer = SizeStockUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    variants = services.update_size_stock(product, serializer.validated_data['updates'], request=request)
    return Response({
        'success': True,
        'message': 'Size stock updated',
        'variants': SizeStockRowSerializer(variants, many=True).data,
    })


@api_view(['GET', 'PUT', 'POST'])
@permission_classes([IsAuthenticated])
def grade_stock(request, pk):
    """
    Read or update the per-grade kit stock of a product.

    PUT updates an existing (color, grade) association; POST creates it when
    missing.
    """
    product = get_object_or_404(Product, pk=pk)

    if request.method == 'GET':
        rows = (
            ProductColorGrade.objects.filter(product=product, grade__is_active=True)
            .select_related('color', 'grade')
            .order_by('grade__name', 'color__name')
        )
        return Response(GradeStockRowSerializer(rows, many=True).data)

    serializer = GradeStockSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    color = services.get_color(data['color_id'])
    grade = services.get_grade(data['grade_id'])

    association, created = services.set_grade_stock(
        product, color, grade, data['stock_quantity'],
        create=request.method == 'POST',
        request=request,
    )
    return Response({
        'success': True,
        'message': 'Grade stock configured' if created else 'Grade stock updated',
        'grade_stock': GradeStockRowSerializer(association).data,
    }, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stock_summary(request, pk):
    product = get_object_or_404(Product, pk=pk)
    return Response(services.stock_summary(product))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def availability(request, pk):
    """Available quantity for ?color=<id> and either &size=<id> or &grade=<id>"""
    product = get_object_or_404(Product, pk=pk)
    try:
        color_id, size_id, grade_id = (
            int(request.query_params[key]) if request.query_params.get(key) else None
            for key in ('color', 'size', 'grade')
        )
    except ValueError:
        return Response({'error': 'color, size and grade must be integer ids'}, status=status.HTTP_400_BAD_REQUEST)
    if not color_id or bool(size_id) == bool(grade_id):
        return Response(
            {'error': 'color and exactly one of size or grade are required'},
            status=status.HTTP_400_BAD_REQUEST,
        )

    color = get_object_or_404(Color, pk=color_id)
    unit = get_object_or_404(Size, pk=size_id) if size_id else get_object_or_404(Grade, pk=grade_id)

    accessor = accessor_for(product)
    quantity = accessor.available_quantity(color, unit)
    unbounded = quantity == UNBOUNDED
    return Response({
        'product': product.pk,
        'color': color.pk,
        'size': unit.pk if size_id else None,
        'grade': unit.pk if grade_id else None,
        'stock_strategy': accessor.strategy,
        'unbounded': unbounded,
        'available': None if unbounded else quantity,
    })
