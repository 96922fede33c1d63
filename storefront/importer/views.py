import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from storefront.catalog.models import Product
from storefront.core.exceptions import DuplicateKey
from .reconciliation import ReconciliationCoordinator, SizeProductImporter
from .serializers import (
    BulkImportSerializer, SingleImportSerializer, ProductByNamesSerializer,
    to_product_records,
)

logger = logging.getLogger(__name__)


def _strict_from_query(request):
    value = request.query_params.get('strict')
    if value is None:
        return None
    return value.lower() in ('1', 'true', 'yes')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def bulk_import(request):
    """
    Import a batch of products with their color variants.

    Existing products are partially updated, existing (product, color) pairs
    are reported as ``existing`` and left untouched. ``?strict=true`` (or
    ``"strict": true`` in the body) makes the batch all-or-nothing.
    """
    serializer = BulkImportSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    strict = _strict_from_query(request)
    if strict is None:
        strict = serializer.validated_data['strict']

    records = to_product_records(serializer.validated_data['products'])
    report = ReconciliationCoordinator(strict=strict, request=request).reconcile(records)
    return Response({
        'success': True,
        'message': f"{report.produtos_processados} products processed",
        'data': report.as_dict(),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def single_import(request):
    """Import one new product with one variant; an existing code is rejected"""
    serializer = SingleImportSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    records = to_product_records(serializer.validated_data['products'])
    if Product.objects.filter(code=records[0].codigo).exists():
        raise DuplicateKey(f"Product code '{records[0].codigo}' already exists", field='products[0].codigo')

    report = ReconciliationCoordinator(strict=True, request=request).reconcile(records)
    return Response({
        'success': True,
        'message': 'Product created',
        'data': report.as_dict(),
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def products_by_names(request):
    """Create a per-size product from (size, color, stock) lines given by name"""
    serializer = ProductByNamesSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    result = SizeProductImporter(request=request).import_product(serializer.to_record())
    return Response({
        'success': True,
        'message': 'Product created',
        'data': result,
    }, status=status.HTTP_201_CREATED)
