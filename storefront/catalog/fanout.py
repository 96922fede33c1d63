"""
Variant fan-out: materialize the size variants a grade implies for one
(product, color) pair.
"""
import logging
from dataclasses import dataclass, field

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils.module_loading import import_string

from .models import ColorVariant, GradeTemplate, SizeVariant, ProductColorGrade

logger = logging.getLogger(__name__)


@dataclass
class FanoutResult:
    color_variant_id: int
    size_variant_ids: list = field(default_factory=list)
    created: bool = True


def get_image_fetcher():
    """Configured image collaborator, or None when image handling is disabled."""
    path = getattr(settings, 'IMAGE_FETCHER', '')
    if not path:
        return None
    return import_string(path)


class VariantFanout:
    """Create a ColorVariant plus one SizeVariant per grade template.

    An existing (product, color) ColorVariant is left untouched: the first
    import of a color decides its price and image.
    """

    def __init__(self, using='default', image_fetcher=None):
        self.using = using
        self.image_fetcher = image_fetcher

    def existing_color_variant(self, product, color):
        return ColorVariant.objects.db_manager(self.using).filter(product=product, color=color).first()

    def fanout(self, product, color, grade, unit_price, image_ref=None, sku=None):
        existing = self.existing_color_variant(product, color)
        if existing is not None:
            return FanoutResult(color_variant_id=existing.pk, size_variant_ids=[], created=False)

        with transaction.atomic(using=self.using):
            is_first = not ColorVariant.objects.db_manager(self.using).filter(product=product).exists()
            try:
                with transaction.atomic(using=self.using):
                    color_variant = ColorVariant.objects.db_manager(self.using).create(
                        product=product,
                        color=color,
                        variant_name=f"{product.name} - {color.name}",
                        sku=sku or None,
                        price=unit_price,
                        image_url=image_ref or None,
                        is_main_catalog=is_first,
                    )
            except IntegrityError:
                # Another import created the pair first
                existing = self.existing_color_variant(product, color)
                if existing is None:
                    raise
                return FanoutResult(color_variant_id=existing.pk, size_variant_ids=[], created=False)

            templates = list(
                GradeTemplate.objects.db_manager(self.using)
                .filter(grade=grade)
                .select_related('size')
                .order_by('size__display_order', 'id')
            )
            if not templates:
                logger.warning(f"Grade '{grade.name}' has no templates; {product.code}/{color.name} has no sizes to sell")

            size_variant_ids = []
            for template in templates:
                size_variant, _ = SizeVariant.objects.db_manager(self.using).get_or_create(
                    product=product,
                    color=color,
                    size=template.size,
                    defaults={'price_override': unit_price, 'stock': 0},
                )
                size_variant_ids.append(size_variant.pk)

            ProductColorGrade.objects.db_manager(self.using).get_or_create(
                product=product,
                color=color,
                grade=grade,
                defaults={'stock_quantity': 0},
            )

        if image_ref:
            self._schedule_image(color_variant.pk, image_ref)

        logger.info(f"Fan-out {product.code}/{color.name}/{grade.name}: color variant {color_variant.pk}, {len(size_variant_ids)} sizes")
        return FanoutResult(color_variant_id=color_variant.pk, size_variant_ids=size_variant_ids, created=True)

    def _schedule_image(self, color_variant_id, image_ref):
        fetcher = self.image_fetcher or get_image_fetcher()
        if fetcher is None:
            return
        # Runs only after the outermost transaction commits
        transaction.on_commit(lambda: fetcher(color_variant_id, image_ref), using=self.using)
