"""
Stock-management operations shared by the API views.

Every change is written to the audit trail, refreshes the denormalized
ColorVariant.stock_total of the colors it touched and drops the cached
product listing.
"""
import logging

from django.db import transaction
from rest_framework.exceptions import NotFound

from storefront.catalog.models import Color, ColorVariant, Grade, Product, ProductColorGrade, SizeVariant
from storefront.core.cache_utils import invalidate_products_cache
from storefront.core.exceptions import RecordValidationError
from storefront.core.utils import create_audit_log
from .accessors import STRATEGY_ACCESSORS, accessor_for

logger = logging.getLogger(__name__)


def refresh_stock_total(product, colors=None, using='default'):
    """Recompute ColorVariant.stock_total from the product's authoritative ledger."""
    accessor = accessor_for(product, using=using)
    color_variants = ColorVariant.objects.db_manager(using).filter(product=product).select_related('color')
    if colors is not None:
        color_variants = color_variants.filter(color__in=colors)
    for color_variant in color_variants:
        total = accessor.color_total(color_variant.color)
        if color_variant.stock_total != total:
            color_variant.stock_total = total
            color_variant.save(update_fields=['stock_total', 'updated_at'])


def set_stock_strategy(product, strategy, request=None, using='default'):
    """Switch the ledger a product's availability is read from."""
    if strategy not in STRATEGY_ACCESSORS:
        raise RecordValidationError(f"Invalid stock strategy '{strategy}'", field='stock_type')

    old_strategy = product.stock_strategy
    if old_strategy == strategy:
        return product

    with transaction.atomic(using=using):
        product.stock_strategy = strategy
        product.save(using=using, update_fields=['stock_strategy', 'updated_at'])
        refresh_stock_total(product, using=using)
        create_audit_log(
            request=request,
            action='stock_type_change',
            model_name='Product',
            object_id=product.pk,
            object_name=product.name,
            object_reference=product.code,
            changes={'stock_strategy': {'old': old_strategy, 'new': strategy}},
            using=using,
        )

    invalidate_products_cache()
    logger.info(f"Product {product.code} stock strategy changed from {old_strategy} to {strategy}")
    return product


def update_size_stock(product, updates, request=None, using='default'):
    """
    Set SizeVariant.stock for the given variants of ``product``.

    ``updates`` is a list of ``{'variant_id': int, 'stock': int}``.
    Returns the updated variants.
    """
    variant_ids = [item['variant_id'] for item in updates]
    with transaction.atomic(using=using):
        variants = {
            v.pk: v for v in SizeVariant.objects.db_manager(using)
            .select_for_update()
            .filter(product=product, pk__in=variant_ids)
            .select_related('color', 'size')
        }
        missing = [vid for vid in variant_ids if vid not in variants]
        if missing:
            raise NotFound(f"Size variants {missing} do not belong to product {product.code}")

        changes = {}
        touched_colors = set()
        for item in updates:
            variant = variants[item['variant_id']]
            if variant.stock == item['stock']:
                continue
            changes[str(variant.pk)] = {
                'color': variant.color.name,
                'size': variant.size.name,
                'old': variant.stock,
                'new': item['stock'],
            }
            variant.stock = item['stock']
            variant.save(update_fields=['stock', 'updated_at'])
            touched_colors.add(variant.color)

        if changes:
            refresh_stock_total(product, colors=touched_colors, using=using)
            create_audit_log(
                request=request,
                action='stock_adjust',
                model_name='SizeVariant',
                object_id=product.pk,
                object_name=product.name,
                object_reference=product.code,
                changes=changes,
                using=using,
            )

    if changes:
        invalidate_products_cache()
        logger.info(f"Updated size stock of {len(changes)} variants for product {product.code}")
    return [variants[vid] for vid in variant_ids]


def set_grade_stock(product, color, grade, quantity, create=False, request=None, using='default'):
    """
    Set the kit count of a (product, color, grade) association.

    With ``create`` a missing association is created (upsert); without it a
    missing association raises NotFound. Returns ``(association, created)``.
    """
    with transaction.atomic(using=using):
        association = (
            ProductColorGrade.objects.db_manager(using)
            .select_for_update()
            .filter(product=product, color=color, grade=grade)
            .first()
        )
        created = False
        if association is None:
            if not create:
                raise NotFound(f"Product {product.code} has no grade '{grade.name}' in color '{color.name}'")
            association = ProductColorGrade.objects.db_manager(using).create(
                product=product, color=color, grade=grade, stock_quantity=quantity
            )
            created = True
            old_quantity = None
        else:
            old_quantity = association.stock_quantity
            association.stock_quantity = quantity
            association.save(update_fields=['stock_quantity', 'updated_at'])

        refresh_stock_total(product, colors=[color], using=using)
        create_audit_log(
            request=request,
            action='stock_adjust',
            model_name='ProductColorGrade',
            object_id=association.pk,
            object_name=product.name,
            object_reference=product.code,
            changes={
                'color': color.name,
                'grade': grade.name,
                'old': old_quantity,
                'new': quantity,
            },
            using=using,
        )

    invalidate_products_cache()
    logger.info(f"Grade stock for {product.code}/{color.name}/{grade.name} set to {quantity}")
    return association, created


def stock_summary(product, using='default'):
    """Strategy-aware stock figures for one product."""
    accessor = accessor_for(product, using=using)
    summary = {
        'product': {
            'id': product.pk,
            'name': product.name,
            'code': product.code,
            'stock_strategy': product.stock_strategy,
            'allow_oversell': product.allow_oversell,
        },
    }
    stats_key = 'size_stats' if accessor.strategy == 'size' else 'grade_stats'
    summary[stats_key] = accessor.summary()
    return summary


def get_product(pk, using='default'):
    try:
        return Product.objects.db_manager(using).get(pk=pk)
    except Product.DoesNotExist:
        raise NotFound(f"Product {pk} not found")


def get_color(pk, using='default'):
    try:
        return Color.objects.db_manager(using).get(pk=pk)
    except Color.DoesNotExist:
        raise NotFound(f"Color {pk} not found")


def get_grade(pk, using='default'):
    try:
        return Grade.objects.db_manager(using).get(pk=pk)
    except Grade.DoesNotExist:
        raise NotFound(f"Grade {pk} not found")
