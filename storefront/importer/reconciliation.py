"""
Reconciliation of external catalog data onto the product graph.

Records are processed one at a time, in order; later records may reuse
entities created by earlier ones. Every record runs in its own transaction.
In non-strict mode a failing record rolls back alone and the records before
it stay committed (the raised error says so through ``partial_batch``).
In strict mode the whole batch shares one outer transaction.
"""
import logging

from django.db import IntegrityError, InterfaceError, OperationalError, connections, transaction

from storefront.catalog.fanout import VariantFanout
from storefront.catalog.grades import GradeSynthesizer
from storefront.catalog.models import ColorVariant, Product, SizeVariant
from storefront.catalog.resolver import EntityResolver
from storefront.core.cache_utils import invalidate_products_cache
from storefront.core.exceptions import DuplicateKey, EngineError, RecordValidationError, StorageUnavailable
from storefront.core.utils import create_audit_log
from storefront.inventory.services import refresh_stock_total
from .report import BatchReport, ProductReport, VariantReport

logger = logging.getLogger(__name__)

REQUIRED_FOR_NEW_PRODUCT = ('nome', 'categoria', 'tipo')


def check_storage(using):
    """Fail fast with StorageUnavailable when the database cannot be reached."""
    try:
        connections[using].ensure_connection()
    except (OperationalError, InterfaceError) as e:
        logger.error(f"Database '{using}' unavailable: {e}")
        raise StorageUnavailable(f"Database '{using}' is unavailable") from e


class ReconciliationCoordinator:

    def __init__(self, using='default', strict=False, resolver=None, synthesizer=None, fanout=None, request=None):
        self.using = using
        self.strict = strict
        self.request = request
        self.resolver = resolver or EntityResolver(using=using)
        self.synthesizer = synthesizer or GradeSynthesizer(using=using, resolver=self.resolver)
        self.fanout = fanout or VariantFanout(using=using)

    def reconcile(self, records):
        """Reconcile ``records`` (ProductImportRecord) and return a BatchReport."""
        check_storage(self.using)
        records = list(records)
        report = BatchReport()
        logger.info(f"Reconciling {len(records)} product records (strict={self.strict})")

        completed = False
        try:
            if self.strict:
                with transaction.atomic(using=self.using):
                    for index, record in enumerate(records):
                        self._reconcile_record(index, record, report)
            else:
                for index, record in enumerate(records):
                    try:
                        self._reconcile_record(index, record, report)
                    except EngineError as exc:
                        exc.partial_batch = report.produtos_processados > 0
                        exc.report = report.as_dict()
                        raise
            completed = True
        finally:
            # Committed records change what the storefront lists
            if report.produtos_processados and (completed or not self.strict):
                invalidate_products_cache()

        self._audit_batch(report)
        logger.info(
            f"Import finished: {report.produtos_novos} new, {report.produtos_atualizados} updated, "
            f"{report.variantes_novas} variants created, {report.variantes_existentes} existing"
        )
        return report

    def _reconcile_record(self, index, record, report):
        self._validate(index, record)
        record_report = BatchReport()
        try:
            with transaction.atomic(using=self.using):
                product, status, changes = self._upsert_product(index, record, record_report)
                product_report = ProductReport(id=product.pk, codigo=product.code, nome=product.name, status=status)
                for variant in record.variantes:
                    product_report.variantes.append(self._reconcile_variant(product, variant, record_report))
                create_audit_log(
                    request=self.request,
                    action='create' if status == 'created' else 'update',
                    model_name='Product',
                    object_id=product.pk,
                    object_name=product.name,
                    object_reference=product.code,
                    changes=changes,
                    using=self.using,
                )
        except EngineError as e:
            logger.error(f"Record {index} ({record.codigo}) failed: {e.message}")
            raise
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Record {index} ({record.codigo}) failed: storage error", exc_info=True)
            raise StorageUnavailable(f"Database '{self.using}' failed while importing {record.codigo}") from e

        report.merge_created(record_report)
        report.add_product(product_report)

    def _validate(self, index, record):
        path = f"products[{index}]"
        if not record.codigo:
            raise RecordValidationError("codigo is required", field=f"{path}.codigo", record_index=index)
        if not record.variantes:
            raise RecordValidationError(
                f"Product {record.codigo} needs at least one variant", field=f"{path}.variantes", record_index=index
            )
        for v_index, variant in enumerate(record.variantes):
            v_path = f"{path}.variantes[{v_index}]"
            if not variant.cor:
                raise RecordValidationError("cor is required", field=f"{v_path}.cor", record_index=index)
            if variant.preco is None or variant.preco <= 0:
                raise RecordValidationError("preco must be greater than zero", field=f"{v_path}.preco", record_index=index)
            if not variant.grade:
                raise RecordValidationError("grade is required", field=f"{v_path}.grade", record_index=index)

    def _resolve(self, kind, name, record_report):
        instance, created = self.resolver.resolve_or_create(kind, name)
        if created:
            record_report.note_created(kind, instance.name)
        return instance

    def _upsert_product(self, index, record, record_report):
        product = Product.objects.db_manager(self.using).filter(code=record.codigo).first()
        if product is None:
            return self._create_product(index, record, record_report)
        return self._update_product(product, record, record_report)

    def _create_product(self, index, record, record_report):
        for field_name in REQUIRED_FOR_NEW_PRODUCT:
            if not getattr(record, field_name):
                raise RecordValidationError(
                    f"{field_name} is required for new product {record.codigo}",
                    field=f"products[{index}].{field_name}",
                    record_index=index,
                )

        category = self._resolve('category', record.categoria, record_report)
        product_type = self._resolve('type', record.tipo, record_report)
        gender = self._resolve('gender', record.genero, record_report) if record.genero else None

        try:
            with transaction.atomic(using=self.using):
                product = Product.objects.db_manager(self.using).create(
                    code=record.codigo,
                    name=record.nome,
                    description=record.descricao or '',
                    category=category,
                    type=product_type,
                    gender=gender,
                    base_price=record.variantes[0].preco,
                    suggested_price=record.preco_sugerido,
                    allow_oversell=bool(record.vender_infinito),
                    stock_strategy=record.tipo_estoque or 'grade',
                )
        except IntegrityError:
            raise DuplicateKey(
                f"Product code '{record.codigo}' already exists",
                field=f"products[{index}].codigo",
            )

        logger.info(f"Created product {product.code} (id={product.pk})")
        return product, 'created', {'code': product.code, 'name': product.name}

    def _update_product(self, product, record, record_report):
        """Overwrite only the fields the record actually carries; base_price is left alone."""
        changes = {}

        def apply(field_name, value):
            old = getattr(product, field_name)
            if old != value:
                changes[field_name] = {'old': str(old) if old is not None else None, 'new': str(value)}
                setattr(product, field_name, value)

        if record.nome:
            apply('name', record.nome)
        if record.descricao:
            apply('description', record.descricao)
        if record.categoria:
            apply('category', self._resolve('category', record.categoria, record_report))
        if record.tipo:
            apply('type', self._resolve('type', record.tipo, record_report))
        if record.genero:
            apply('gender', self._resolve('gender', record.genero, record_report))
        if record.preco_sugerido is not None:
            apply('suggested_price', record.preco_sugerido)
        if record.vender_infinito is not None:
            apply('allow_oversell', record.vender_infinito)
        if record.tipo_estoque:
            apply('stock_strategy', record.tipo_estoque)

        product.save(using=self.using)
        if 'stock_strategy' in changes:
            # Denormalized totals follow the ledger the product now reads from
            refresh_stock_total(product, using=self.using)
        if changes:
            logger.info(f"Updated product {product.code}: {', '.join(changes)}")
        return product, 'updated', changes

    def _reconcile_variant(self, product, variant, record_report):
        color = self._resolve('color', variant.cor, record_report)

        existing = self.fanout.existing_color_variant(product, color)
        if existing is not None:
            return VariantReport(
                cor=color.name, grade=variant.grade, status='existing',
                color_variant_id=existing.pk, size_variant_ids=[],
            )

        grade, grade_created = self.synthesizer.resolve_or_create_grade(variant.grade)
        if grade_created:
            record_report.note_created('grade', grade.name)

        result = self.fanout.fanout(product, color, grade, variant.preco, image_ref=variant.foto, sku=variant.sku)
        return VariantReport(
            cor=color.name,
            grade=grade.name,
            status='created' if result.created else 'existing',
            color_variant_id=result.color_variant_id,
            size_variant_ids=result.size_variant_ids,
        )

    def _audit_batch(self, report):
        if not report.produtos_processados:
            return
        create_audit_log(
            request=self.request,
            action='import_batch',
            model_name='Product',
            object_id='batch',
            object_name=f"{report.produtos_processados} products",
            changes={
                'produtos_novos': report.produtos_novos,
                'produtos_atualizados': report.produtos_atualizados,
                'variantes_novas': report.variantes_novas,
                'variantes_existentes': report.variantes_existentes,
            },
            using=self.using,
        )


class SizeProductImporter:
    """
    Create a per-size product from explicit (size, color, stock) lines.

    Sizes here need not belong to any grade. One ColorVariant is created per
    color and one SizeVariant per line.
    """

    def __init__(self, using='default', resolver=None, request=None):
        self.using = using
        self.request = request
        self.resolver = resolver or EntityResolver(using=using)

    def import_product(self, record):
        check_storage(self.using)
        created = BatchReport()

        def resolve(kind, name):
            instance, was_created = self.resolver.resolve_or_create(kind, name)
            if was_created:
                created.note_created(kind, instance.name)
            return instance

        with transaction.atomic(using=self.using):
            if Product.objects.db_manager(self.using).filter(code=record.code).exists():
                raise DuplicateKey(f"Product code '{record.code}' already exists", field='code')

            category = resolve('category', record.category_name) if record.category_name else None
            try:
                with transaction.atomic(using=self.using):
                    product = Product.objects.db_manager(self.using).create(
                        code=record.code,
                        name=record.name,
                        description=record.description or '',
                        category=category,
                        base_price=record.base_price or 0,
                        suggested_price=record.suggested_price,
                        stock_strategy='size',
                    )
            except IntegrityError:
                raise DuplicateKey(f"Product code '{record.code}' already exists", field='code')

            color_variants = {}
            color_totals = {}
            size_variant_ids = []
            for line in record.variants:
                color = resolve('color', line.color_name)
                size = resolve('size', line.size_name)
                if color.pk not in color_variants:
                    color_variants[color.pk] = ColorVariant.objects.db_manager(self.using).create(
                        product=product,
                        color=color,
                        variant_name=f"{product.name} - {color.name}",
                        price=record.base_price,
                        image_url=record.photo,
                        is_main_catalog=not color_variants,
                    )
                size_variant = SizeVariant.objects.db_manager(self.using).create(
                    product=product,
                    color=color,
                    size=size,
                    stock=line.stock,
                    price_override=line.price_override,
                )
                size_variant_ids.append(size_variant.pk)
                color_totals[color.pk] = color_totals.get(color.pk, 0) + line.stock

            for color_id, color_variant in color_variants.items():
                color_variant.stock_total = color_totals[color_id]
                color_variant.save(update_fields=['stock_total'])

            create_audit_log(
                request=self.request,
                action='create',
                model_name='Product',
                object_id=product.pk,
                object_name=product.name,
                object_reference=product.code,
                changes={'stock_strategy': 'size', 'lines': len(record.variants)},
                using=self.using,
            )

        invalidate_products_cache()
        logger.info(f"Created size-based product {product.code} with {len(size_variant_ids)} size variants")
        return {
            'id': product.pk,
            'codigo': product.code,
            'nome': product.name,
            'stock_strategy': product.stock_strategy,
            'color_variant_ids': [cv.pk for cv in color_variants.values()],
            'size_variant_ids': size_variant_ids,
            'categorias_criadas': created.categorias_criadas,
            'cores_criadas': created.cores_criadas,
        }
