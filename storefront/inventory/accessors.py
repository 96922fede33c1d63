"""
Inventory accessors.

A product's ``stock_strategy`` decides which ledger is authoritative for it:
per-size stock on SizeVariant, or per-grade kit stock on ProductColorGrade.
Each strategy is one accessor class; callers go through ``accessor_for`` and
never branch on the strategy themselves.

A grade's kit count is a pooled number of its own. It is never derived from
the stock of the sizes that make up the kit.
"""
import math

from django.db.models import Count, Q, Sum

from storefront.catalog.models import Grade, ProductColorGrade, Size, SizeVariant
from storefront.core.exceptions import RecordValidationError

# Returned instead of a count when the product may be oversold
UNBOUNDED = math.inf


class InventoryAccessor:
    strategy = None
    unit_model = None
    unit_label = None

    def __init__(self, product, using='default'):
        self.product = product
        self.using = using

    def check_unit(self, unit):
        if not isinstance(unit, self.unit_model):
            raise RecordValidationError(
                f"Product {self.product.code} tracks stock per {self.strategy}; a {self.unit_label} is required",
                field=self.unit_label,
            )

    def available_quantity(self, color, unit):
        """Sellable quantity for (color, unit), or UNBOUNDED when oversell is allowed."""
        self.check_unit(unit)
        if self.product.allow_oversell:
            return UNBOUNDED
        return self.stored_quantity(color, unit)

    def can_sell(self, color, unit, quantity=1):
        return self.available_quantity(color, unit) >= quantity

    def stored_quantity(self, color, unit):
        raise NotImplementedError

    def color_total(self, color):
        raise NotImplementedError

    def summary(self):
        raise NotImplementedError


class PerSizeInventory(InventoryAccessor):
    strategy = 'size'
    unit_model = Size
    unit_label = 'size'

    def _variants(self):
        return SizeVariant.objects.db_manager(self.using).filter(product=self.product)

    def stored_quantity(self, color, unit):
        variant = self._variants().filter(color=color, size=unit).only('stock').first()
        return variant.stock if variant is not None else 0

    def color_total(self, color):
        return self._variants().filter(color=color).aggregate(total=Sum('stock'))['total'] or 0

    def summary(self):
        stats = self._variants().aggregate(
            total_variants=Count('id'),
            total_stock=Sum('stock'),
            available_variants=Count('id', filter=Q(stock__gt=0)),
        )
        stats['total_stock'] = stats['total_stock'] or 0
        return stats


class PerGradeInventory(InventoryAccessor):
    strategy = 'grade'
    unit_model = Grade
    unit_label = 'grade'

    def _kits(self):
        return ProductColorGrade.objects.db_manager(self.using).filter(product=self.product, grade__is_active=True)

    def stored_quantity(self, color, unit):
        kit = self._kits().filter(color=color, grade=unit).only('stock_quantity').first()
        return kit.stock_quantity if kit is not None else 0

    def color_total(self, color):
        return self._kits().filter(color=color).aggregate(total=Sum('stock_quantity'))['total'] or 0

    def summary(self):
        stats = self._kits().aggregate(
            total_combinations=Count('id'),
            total_stock=Sum('stock_quantity'),
            available_combinations=Count('id', filter=Q(stock_quantity__gt=0)),
        )
        stats['total_stock'] = stats['total_stock'] or 0
        return stats


STRATEGY_ACCESSORS = {
    PerSizeInventory.strategy: PerSizeInventory,
    PerGradeInventory.strategy: PerGradeInventory,
}


def accessor_for(product, using='default'):
    """Accessor matching the product's stock strategy."""
    try:
        accessor_class = STRATEGY_ACCESSORS[product.stock_strategy]
    except KeyError:
        raise ValueError(f"Unknown stock strategy '{product.stock_strategy}' for product {product.code}")
    return accessor_class(product, using=using)


def available_quantity(product, color, unit, using='default'):
    return accessor_for(product, using=using).available_quantity(color, unit)
