"""
Test suite for the importer module
Tests: reconciliation of batches, strict and partial batch semantics, import endpoints, CLI
"""
import json
import os
import tempfile
from io import StringIO
from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import OperationalError
from django.test import TestCase
from rest_framework import status

from storefront.catalog.models import (
    Category, Color, ColorVariant, Grade, GradeTemplate, Product, ProductColorGrade, SizeVariant,
)
from storefront.catalog.grades import GradeSynthesizer
from storefront.core.exceptions import ConstraintRace, DuplicateKey, RecordValidationError, StorageUnavailable
from storefront.core.models import AuditLog
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.importer.reconciliation import ReconciliationCoordinator
from storefront.importer.records import ProductImportRecord, VariantImportRecord


def variant(cor='Azul', preco='39.90', grade='Grade Masculina', **extra):
    return VariantImportRecord(cor=cor, preco=Decimal(preco), grade=grade, **extra)


def record(codigo='SKU1', variantes=None, **extra):
    fields = {'nome': 'X', 'categoria': 'Chinelos', 'tipo': 'Casual'}
    fields.update(extra)
    return ProductImportRecord(codigo=codigo, variantes=tuple(variantes or [variant()]), **fields)


class ReconciliationCoordinatorTests(TestCase):

    def setUp(self):
        self.coordinator = ReconciliationCoordinator()

    def test_first_import_creates_graph(self):
        report = self.coordinator.reconcile([record()])
        self.assertEqual(report.produtos_novos, 1)
        self.assertEqual(report.variantes_novas, 1)
        self.assertEqual(report.categorias_criadas, ['Chinelos'])
        self.assertEqual(report.tipos_criados, ['Casual'])
        self.assertEqual(report.cores_criadas, ['Azul'])
        self.assertEqual(report.grades_criadas, ['Grade Masculina'])

        product = Product.objects.get(code='SKU1')
        self.assertEqual(product.base_price, Decimal('39.90'))
        self.assertEqual(product.stock_strategy, 'grade')
        self.assertFalse(product.allow_oversell)
        self.assertEqual(SizeVariant.objects.filter(product=product).count(), 7)
        variant_report = report.produtos[0].variantes[0]
        self.assertEqual(variant_report.status, 'created')
        self.assertEqual(len(variant_report.size_variant_ids), 7)

    def test_reimport_reports_existing(self):
        self.coordinator.reconcile([record()])
        report = ReconciliationCoordinator().reconcile([record()])
        self.assertEqual(report.produtos_novos, 0)
        self.assertEqual(report.produtos_atualizados, 1)
        self.assertEqual(report.variantes_existentes, 1)
        self.assertEqual(report.variantes_novas, 0)
        self.assertEqual(report.cores_criadas, [])
        self.assertEqual(ColorVariant.objects.count(), 1)
        self.assertEqual(ProductColorGrade.objects.count(), 1)

    def test_grade_infantil_sizes(self):
        self.coordinator.reconcile([record(variantes=[variant(grade='Grade Infantil')])])
        grade = Grade.objects.get(name='Grade Infantil')
        sizes = set(GradeTemplate.objects.filter(grade=grade).values_list('size__name', flat=True))
        self.assertEqual(sizes, {str(s) for s in range(20, 34)})

    def test_same_color_twice_in_one_record(self):
        report = self.coordinator.reconcile([record(variantes=[
            variant(cor='Azul', grade='Grade Masculina'),
            variant(cor='Azul', grade='Grade Feminina'),
        ])])
        statuses = [v.status for v in report.produtos[0].variantes]
        self.assertEqual(statuses, ['created', 'existing'])
        self.assertEqual(ColorVariant.objects.count(), 1)
        # The second grade is never synthesized
        self.assertFalse(Grade.objects.filter(name='Grade Feminina').exists())

    def test_records_share_new_entities(self):
        report = self.coordinator.reconcile([
            record(codigo='A'),
            record(codigo='B', variantes=[variant(cor='Preto')]),
        ])
        self.assertEqual(report.produtos_novos, 2)
        self.assertEqual(report.categorias_criadas, ['Chinelos'])
        self.assertEqual(Category.objects.count(), 1)
        self.assertEqual(Grade.objects.count(), 1)

    def test_partial_update_keeps_missing_fields(self):
        self.coordinator.reconcile([record(descricao='Original', preco_sugerido=Decimal('79.90'))])
        update = ProductImportRecord(
            codigo='SKU1', variantes=(variant(preco='99.00'),), nome='Novo nome',
            vender_infinito=True, tipo_estoque='size',
        )
        report = ReconciliationCoordinator().reconcile([update])
        product = Product.objects.get(code='SKU1')
        self.assertEqual(report.produtos[0].status, 'updated')
        self.assertEqual(product.name, 'Novo nome')
        self.assertEqual(product.description, 'Original')
        self.assertEqual(product.suggested_price, Decimal('79.90'))
        self.assertEqual(product.category.name, 'Chinelos')
        self.assertEqual(product.base_price, Decimal('39.90'))
        self.assertTrue(product.allow_oversell)
        self.assertEqual(product.stock_strategy, 'size')

    def test_update_resolves_new_category(self):
        self.coordinator.reconcile([record()])
        report = ReconciliationCoordinator().reconcile([
            ProductImportRecord(codigo='SKU1', variantes=(variant(),), categoria='Sandálias', genero='Masculino'),
        ])
        product = Product.objects.get(code='SKU1')
        self.assertEqual(product.category.name, 'Sandálias')
        self.assertEqual(product.gender.name, 'Masculino')
        self.assertEqual(report.categorias_criadas, ['Sandálias'])

    def test_new_product_requires_name(self):
        with self.assertRaises(RecordValidationError) as ctx:
            self.coordinator.reconcile([record(nome=None)])
        self.assertEqual(ctx.exception.field, 'products[0].nome')
        self.assertFalse(ctx.exception.partial_batch)
        self.assertFalse(Product.objects.exists())

    def test_invalid_variant_is_located(self):
        with self.assertRaises(RecordValidationError) as ctx:
            self.coordinator.reconcile([record(variantes=[variant(), variant(cor='Preto', preco='0')])])
        self.assertEqual(ctx.exception.field, 'products[0].variantes[1].preco')

    def test_non_strict_keeps_earlier_records(self):
        with self.assertRaises(RecordValidationError) as ctx:
            self.coordinator.reconcile([
                record(codigo='A'),
                record(codigo='B', tipo=None),
                record(codigo='C'),
            ])
        exc = ctx.exception
        self.assertTrue(exc.partial_batch)
        self.assertEqual(exc.record_index, 1)
        self.assertEqual(exc.field, 'products[1].tipo')
        self.assertEqual(exc.report['produtos_processados'], 1)
        self.assertEqual(list(Product.objects.values_list('code', flat=True)), ['A'])

    def _fail_grade(self, name, error):
        """Patch grade synthesis so the grade called ``name`` raises ``error``."""
        real = GradeSynthesizer.resolve_or_create_grade

        def resolve(synthesizer, grade_name):
            if grade_name == name:
                raise error
            return real(synthesizer, grade_name)

        return patch.object(GradeSynthesizer, 'resolve_or_create_grade', autospec=True, side_effect=resolve)

    def test_non_strict_race_reports_committed_records(self):
        with self._fail_grade('Outra', ConstraintRace('grade', 'Outra')):
            with self.assertRaises(ConstraintRace) as ctx:
                self.coordinator.reconcile([
                    record(codigo='A1'),
                    record(codigo='A2', variantes=[variant(grade='Outra')]),
                ])
        exc = ctx.exception
        self.assertTrue(exc.partial_batch)
        self.assertEqual(exc.report['produtos_processados'], 1)
        self.assertEqual(exc.as_dict()['report']['produtos'][0]['codigo'], 'A1')
        self.assertEqual(list(Product.objects.values_list('code', flat=True)), ['A1'])

    def test_non_strict_storage_failure_reports_committed_records(self):
        with self._fail_grade('Outra', OperationalError('connection lost')):
            with self.assertRaises(StorageUnavailable) as ctx:
                self.coordinator.reconcile([
                    record(codigo='A1'),
                    record(codigo='A2', variantes=[variant(grade='Outra')]),
                ])
        self.assertTrue(ctx.exception.partial_batch)
        self.assertEqual(ctx.exception.report['produtos_novos'], 1)

    def test_first_record_race_is_not_partial(self):
        with self._fail_grade('Outra', ConstraintRace('grade', 'Outra')):
            with self.assertRaises(ConstraintRace) as ctx:
                self.coordinator.reconcile([record(codigo='A2', variantes=[variant(grade='Outra')])])
        self.assertFalse(ctx.exception.partial_batch)
        self.assertEqual(ctx.exception.report['produtos_processados'], 0)

    def test_stock_type_change_refreshes_color_totals(self):
        self.coordinator.reconcile([record()])
        product = Product.objects.get(code='SKU1')
        SizeVariant.objects.filter(product=product, size__name__in=['38', '39']).update(stock=4)
        color_variant = ColorVariant.objects.get(product=product)
        self.assertEqual(color_variant.stock_total, 0)

        ReconciliationCoordinator().reconcile([
            ProductImportRecord(codigo='SKU1', variantes=(variant(),), tipo_estoque='size'),
        ])
        color_variant.refresh_from_db()
        self.assertEqual(color_variant.stock_total, 8)

    def test_failed_record_rolls_back_alone(self):
        self.coordinator.reconcile([record(codigo='A')])
        with patch.object(GradeSynthesizer, 'resolve_or_create_grade',
                          side_effect=RecordValidationError('boom', field='grade')):
            with self.assertRaises(RecordValidationError):
                ReconciliationCoordinator().reconcile([
                    record(codigo='B', categoria='Botas', variantes=[variant(cor='Verde')]),
                ])
        # Entities resolved by the failed record are rolled back with it
        self.assertFalse(Category.objects.filter(name='Botas').exists())
        self.assertFalse(Color.objects.filter(name='Verde').exists())
        self.assertFalse(Product.objects.filter(code='B').exists())
        self.assertTrue(Product.objects.filter(code='A').exists())

    def test_strict_rolls_back_everything(self):
        with self.assertRaises(RecordValidationError) as ctx:
            ReconciliationCoordinator(strict=True).reconcile([
                record(codigo='A'),
                record(codigo='B', categoria=None),
            ])
        self.assertFalse(ctx.exception.partial_batch)
        self.assertFalse(Product.objects.exists())
        self.assertFalse(Category.objects.exists())

    def test_duplicate_code_on_create(self):
        self.coordinator.reconcile([record()])
        with patch.object(ReconciliationCoordinator, '_upsert_product',
                          lambda self, index, rec, rep: self._create_product(index, rec, rep)):
            with self.assertRaises(DuplicateKey) as ctx:
                ReconciliationCoordinator().reconcile([record()])
        self.assertEqual(ctx.exception.field, 'products[0].codigo')

    def test_storage_unavailable(self):
        with patch('storefront.importer.reconciliation.connections') as mock_connections:
            mock_connections.__getitem__.return_value.ensure_connection.side_effect = OperationalError('down')
            with self.assertRaises(StorageUnavailable):
                self.coordinator.reconcile([record()])

    def test_audit_trail(self):
        self.coordinator.reconcile([record()])
        self.assertTrue(AuditLog.objects.filter(action='create', object_reference='SKU1').exists())
        self.assertTrue(AuditLog.objects.filter(action='import_batch').exists())

    def test_image_reference_stored(self):
        self.coordinator.reconcile([record(variantes=[variant(foto='https://cdn.example.com/a.jpg', sku='SKU1-AZ')])])
        color_variant = ColorVariant.objects.get()
        self.assertEqual(color_variant.image_url, 'https://cdn.example.com/a.jpg')
        self.assertEqual(color_variant.sku, 'SKU1-AZ')
        self.assertTrue(color_variant.is_main_catalog)


class ImportAPITests(TestCase):

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_bulk_import_twice(self):
        payload = TestDataFactory.import_payload()
        response = self.client.post('/api/v1/products/bulk/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['produtos_novos'], 1)
        self.assertEqual(response.data['data']['variantes_novas'], 1)

        response = self.client.post('/api/v1/products/bulk/', payload, format='json')
        data = response.data['data']
        self.assertEqual(data['produtos_atualizados'], 1)
        self.assertEqual(data['variantes_existentes'], 1)
        self.assertEqual(data['variantes_novas'], 0)
        self.assertEqual(data['produtos'][0]['variantes'][0]['status'], 'existing')

    def test_feminine_grade_via_api(self):
        payload = TestDataFactory.import_payload(variantes=[{'cor': 'Rosa', 'preco': '29.90', 'grade': 'Grade feminina'}])
        self.client.post('/api/v1/products/bulk/', payload, format='json')
        grade = Grade.objects.get(name='Grade feminina')
        sizes = sorted(int(s) for s in grade.templates.values_list('size__name', flat=True))
        self.assertEqual(sizes, list(range(34, 41)))
        self.assertFalse(grade.templates.exclude(required_quantity=0).exists())

    def test_bulk_import_invalid_body(self):
        payload = TestDataFactory.import_payload(variantes=[{'cor': 'Azul', 'preco': '0', 'grade': 'G'}])
        response = self.client.post('/api/v1/products/bulk/', payload, format='json')
        self.assertEqual(response.status_code, 422)
        self.assertIn('preco', response.data['products'][0]['variantes'][0])
        self.assertFalse(Product.objects.exists())

    def test_bulk_import_missing_variants(self):
        payload = {'products': [{'codigo': 'SKU1', 'nome': 'X', 'categoria': 'C', 'tipo': 'T', 'variantes': []}]}
        response = self.client.post('/api/v1/products/bulk/', payload, format='json')
        self.assertEqual(response.status_code, 422)

    def test_bulk_import_partial_batch_error(self):
        payload = {'products': [
            TestDataFactory.import_payload(codigo='A')['products'][0],
            {'codigo': 'B', 'variantes': [{'cor': 'Azul', 'preco': '10', 'grade': 'G'}]},
        ]}
        response = self.client.post('/api/v1/products/bulk/', payload, format='json')
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.data['error'], 'validation_error')
        self.assertEqual(response.data['field'], 'products[1].nome')
        self.assertTrue(response.data['partial_batch'])
        self.assertEqual(response.data['report']['produtos_novos'], 1)
        self.assertTrue(Product.objects.filter(code='A').exists())

    def test_bulk_import_race_after_commit_is_partial(self):
        payload = {'products': [
            TestDataFactory.import_payload(codigo='A1')['products'][0],
            TestDataFactory.import_payload(
                codigo='A2', variantes=[{'cor': 'Azul', 'preco': '10', 'grade': 'Outra'}]
            )['products'][0],
        ]}
        real = GradeSynthesizer.resolve_or_create_grade

        def resolve(synthesizer, name):
            if name == 'Outra':
                raise ConstraintRace('grade', name)
            return real(synthesizer, name)

        with patch.object(GradeSynthesizer, 'resolve_or_create_grade', autospec=True, side_effect=resolve):
            response = self.client.post('/api/v1/products/bulk/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['error'], 'constraint_race')
        self.assertEqual(response.data['kind'], 'grade')
        self.assertTrue(response.data['partial_batch'])
        self.assertEqual(response.data['report']['produtos_novos'], 1)
        self.assertTrue(Product.objects.filter(code='A1').exists())
        self.assertFalse(Product.objects.filter(code='A2').exists())

    def test_bulk_import_strict_query(self):
        payload = {'products': [
            TestDataFactory.import_payload(codigo='A')['products'][0],
            {'codigo': 'B', 'variantes': [{'cor': 'Azul', 'preco': '10', 'grade': 'G'}]},
        ]}
        response = self.client.post('/api/v1/products/bulk/?strict=true', payload, format='json')
        self.assertEqual(response.status_code, 422)
        self.assertFalse(response.data['partial_batch'])
        self.assertFalse(Product.objects.exists())

    def test_bulk_import_strict_body(self):
        payload = {'strict': True, 'products': [
            TestDataFactory.import_payload(codigo='A')['products'][0],
            {'codigo': 'B', 'variantes': [{'cor': 'Azul', 'preco': '10', 'grade': 'G'}]},
        ]}
        response = self.client.post('/api/v1/products/bulk/', payload, format='json')
        self.assertEqual(response.status_code, 422)
        self.assertFalse(Product.objects.exists())

    def test_bulk_import_invalidates_listing(self):
        self.assertEqual(self.client.get('/api/v1/products/').data['count'], 0)
        self.client.post('/api/v1/products/bulk/', TestDataFactory.import_payload(), format='json')
        self.assertEqual(self.client.get('/api/v1/products/').data['count'], 1)

    def test_single_import(self):
        payload = TestDataFactory.import_payload(codigo='NEW1')
        response = self.client.post('/api/v1/products/single/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['produtos'][0]['status'], 'created')

    def test_single_import_rejects_existing_code(self):
        TestDataFactory.create_product(code='OLD1')
        response = self.client.post('/api/v1/products/single/', TestDataFactory.import_payload(codigo='OLD1'), format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'duplicate_key')
        self.assertFalse(ColorVariant.objects.exists())

    def test_single_import_requires_one_variant(self):
        payload = TestDataFactory.import_payload(variantes=[
            {'cor': 'Azul', 'preco': '10', 'grade': 'G'},
            {'cor': 'Preto', 'preco': '10', 'grade': 'G'},
        ])
        response = self.client.post('/api/v1/products/single/', payload, format='json')
        self.assertEqual(response.status_code, 422)

    def test_products_by_names(self):
        payload = {
            'name': 'Tênis Runner',
            'code': 'RUN1',
            'category_name': 'Tênis',
            'base_price': '199.90',
            'variants': [
                {'size_name': '40', 'color_name': 'Preto', 'stock': 3},
                {'size_name': '41', 'color_name': 'Preto', 'stock': 2},
                {'size_name': '40', 'color_name': 'Branco', 'stock': 1, 'price_override': '209.90'},
            ],
        }
        response = self.client.post('/api/v1/products/by-names/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        product = Product.objects.get(code='RUN1')
        self.assertEqual(product.stock_strategy, 'size')
        self.assertEqual(ColorVariant.objects.filter(product=product).count(), 2)
        self.assertEqual(SizeVariant.objects.filter(product=product).count(), 3)
        preto = ColorVariant.objects.get(product=product, color__name='Preto')
        self.assertEqual(preto.stock_total, 5)
        self.assertTrue(preto.is_main_catalog)
        self.assertEqual(sorted(response.data['data']['cores_criadas']), ['Branco', 'Preto'])
        self.assertFalse(Grade.objects.exists())

    def test_products_by_names_rejects_existing_code(self):
        TestDataFactory.create_product(code='RUN1')
        payload = {'name': 'Tênis', 'code': 'RUN1', 'variants': [{'size_name': '40', 'color_name': 'Preto'}]}
        response = self.client.post('/api/v1/products/by-names/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(Color.objects.exists())

    def test_products_by_names_rejects_duplicate_lines(self):
        payload = {'name': 'Tênis', 'code': 'RUN1', 'variants': [
            {'size_name': '40', 'color_name': 'Preto'},
            {'size_name': '40', 'color_name': 'Preto'},
        ]}
        response = self.client.post('/api/v1/products/by-names/', payload, format='json')
        self.assertEqual(response.status_code, 422)


class ImportCommandTests(TestCase):

    def _write(self, payload):
        handle, path = tempfile.mkstemp(suffix='.json')
        with os.fdopen(handle, 'w', encoding='utf-8') as f:
            json.dump(payload, f)
        self.addCleanup(os.remove, path)
        return path

    def test_import_file(self):
        path = self._write(TestDataFactory.import_payload())
        call_command('import_products', path, stdout=StringIO())
        self.assertTrue(Product.objects.filter(code='SKU1').exists())

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command('import_products', '/nonexistent/products.json')

    def test_strict_failure(self):
        path = self._write({'products': [
            TestDataFactory.import_payload(codigo='A')['products'][0],
            {'codigo': 'B', 'variantes': [{'cor': 'Azul', 'preco': '10', 'grade': 'G'}]},
        ]})
        with self.assertRaises(CommandError):
            call_command('import_products', path, '--strict', stdout=StringIO())
        self.assertFalse(Product.objects.exists())
