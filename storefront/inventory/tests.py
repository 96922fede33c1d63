"""
Test suite for the inventory module
Tests: per-size and per-grade accessors, stock services, stock-management endpoints
"""
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from storefront.catalog.fanout import VariantFanout
from storefront.catalog.models import ColorVariant, ProductColorGrade, SizeVariant
from storefront.core.exceptions import RecordValidationError
from storefront.core.models import AuditLog
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.inventory.accessors import (
    UNBOUNDED, PerGradeInventory, PerSizeInventory, accessor_for, available_quantity,
)
from storefront.inventory import services


class InventoryAccessorTests(TestCase):

    def setUp(self):
        self.color = TestDataFactory.create_color('Azul')
        self.grade = TestDataFactory.create_grade(name='Grade P', sizes=['35', '36'], quantities={'35': 1, '36': 1})
        self.size = TestDataFactory.create_size('35')

    def _product(self, strategy, allow_oversell=False):
        product = TestDataFactory.create_product(stock_strategy=strategy, allow_oversell=allow_oversell)
        VariantFanout().fanout(product, self.color, self.grade, Decimal('39.90'))
        return product

    def test_accessor_for_strategy(self):
        self.assertIsInstance(accessor_for(self._product('size')), PerSizeInventory)
        self.assertIsInstance(accessor_for(self._product('grade')), PerGradeInventory)

    def test_per_size_reads_size_variant_stock(self):
        product = self._product('size')
        SizeVariant.objects.filter(product=product, size=self.size).update(stock=7)
        self.assertEqual(available_quantity(product, self.color, self.size), 7)

    def test_per_grade_reads_kit_stock(self):
        product = self._product('grade')
        ProductColorGrade.objects.filter(product=product).update(stock_quantity=4)
        self.assertEqual(available_quantity(product, self.color, self.grade), 4)

    def test_grade_stock_ignores_size_stock(self):
        product = self._product('grade')
        ProductColorGrade.objects.filter(product=product).update(stock_quantity=2)
        before = available_quantity(product, self.color, self.grade)
        SizeVariant.objects.filter(product=product).update(stock=50)
        self.assertEqual(available_quantity(product, self.color, self.grade), before)
        SizeVariant.objects.filter(product=product).update(stock=0)
        self.assertEqual(available_quantity(product, self.color, self.grade), before)

    def test_missing_row_is_zero(self):
        product = self._product('size')
        other_size = TestDataFactory.create_size('44')
        self.assertEqual(available_quantity(product, self.color, other_size), 0)

    def test_oversell_is_unbounded(self):
        product = self._product('grade', allow_oversell=True)
        accessor = accessor_for(product)
        self.assertEqual(accessor.available_quantity(self.color, self.grade), UNBOUNDED)
        self.assertTrue(accessor.can_sell(self.color, self.grade, quantity=1000))

    def test_wrong_unit_kind(self):
        product = self._product('grade')
        with self.assertRaises(RecordValidationError):
            available_quantity(product, self.color, self.size)

    def test_can_sell(self):
        product = self._product('size')
        SizeVariant.objects.filter(product=product, size=self.size).update(stock=1)
        accessor = accessor_for(product)
        self.assertTrue(accessor.can_sell(self.color, self.size))
        self.assertFalse(accessor.can_sell(self.color, self.size, quantity=2))


class StockServiceTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.color = TestDataFactory.create_color('Azul')
        self.grade = TestDataFactory.create_grade(name='Grade P', sizes=['35', '36'])
        self.product = TestDataFactory.create_product(stock_strategy='grade')
        VariantFanout().fanout(self.product, self.color, self.grade, Decimal('39.90'))

    def test_set_stock_strategy(self):
        services.set_stock_strategy(self.product, 'size')
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_strategy, 'size')
        entry = AuditLog.objects.get(action='stock_type_change')
        self.assertEqual(entry.changes['stock_strategy'], {'old': 'grade', 'new': 'size'})

    def test_set_stock_strategy_rejects_unknown(self):
        with self.assertRaises(RecordValidationError):
            services.set_stock_strategy(self.product, 'pallet')

    def test_grade_stock_refreshes_stock_total(self):
        services.set_grade_stock(self.product, self.color, self.grade, 6)
        self.assertEqual(ColorVariant.objects.get(product=self.product, color=self.color).stock_total, 6)

    def test_size_stock_refreshes_stock_total(self):
        services.set_stock_strategy(self.product, 'size')
        variants = list(SizeVariant.objects.filter(product=self.product))
        services.update_size_stock(self.product, [
            {'variant_id': variants[0].pk, 'stock': 3},
            {'variant_id': variants[1].pk, 'stock': 2},
        ])
        self.assertEqual(ColorVariant.objects.get(product=self.product, color=self.color).stock_total, 5)

    def test_switching_strategy_recomputes_stock_total(self):
        SizeVariant.objects.filter(product=self.product).update(stock=4)
        services.set_grade_stock(self.product, self.color, self.grade, 1)
        services.set_stock_strategy(self.product, 'size')
        self.assertEqual(ColorVariant.objects.get(product=self.product).stock_total, 8)

    def test_stock_summary_per_strategy(self):
        services.set_grade_stock(self.product, self.color, self.grade, 3)
        summary = services.stock_summary(self.product)
        self.assertEqual(summary['grade_stats'], {
            'total_combinations': 1, 'total_stock': 3, 'available_combinations': 1,
        })
        services.set_stock_strategy(self.product, 'size')
        summary = services.stock_summary(self.product)
        self.assertEqual(summary['size_stats'], {
            'total_variants': 2, 'total_stock': 0, 'available_variants': 0,
        })


class StockManagementAPITests(TestCase):

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.color = TestDataFactory.create_color('Azul')
        self.grade = TestDataFactory.create_grade(name='Grade P', sizes=['35', '36'])
        self.product = TestDataFactory.create_product(stock_strategy='grade')
        VariantFanout().fanout(self.product, self.color, self.grade, Decimal('39.90'))

    def test_stock_type_update(self):
        url = f'/api/v1/products/{self.product.pk}/stock-type/'
        response = self.client.put(url, {'stock_type': 'size'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stock_type'], 'size')
        response = self.client.put(url, {'stock_type': 'pallet'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_size_stock_read_and_update(self):
        url = f'/api/v1/products/{self.product.pk}/size-stock/'
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['size'] for row in response.data], ['35', '36'])

        variant_id = response.data[0]['variant_id']
        response = self.client.put(url, {'variant_id': variant_id, 'stock': 9}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(SizeVariant.objects.get(pk=variant_id).stock, 9)

    def test_size_stock_rejects_foreign_variant(self):
        other = TestDataFactory.create_product()
        variant = TestDataFactory.create_size_variant(other, self.color, TestDataFactory.create_size('40'))
        url = f'/api/v1/products/{self.product.pk}/size-stock/'
        response = self.client.put(url, {'variant_id': variant.pk, 'stock': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_grade_stock_update(self):
        url = f'/api/v1/products/{self.product.pk}/grade-stock/'
        data = {'grade_id': self.grade.pk, 'color_id': self.color.pk, 'stock_quantity': 5}
        response = self.client.put(url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.get(url)
        self.assertEqual(response.data[0]['stock_quantity'], 5)
        self.assertEqual(response.data[0]['grade_name'], 'Grade P')

    def test_grade_stock_put_requires_existing_association(self):
        other_grade = TestDataFactory.create_grade(name='Grade G', sizes=['40'])
        url = f'/api/v1/products/{self.product.pk}/grade-stock/'
        data = {'grade_id': other_grade.pk, 'color_id': self.color.pk, 'stock_quantity': 5}
        response = self.client.put(url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_grade_stock_post_creates_association(self):
        other_grade = TestDataFactory.create_grade(name='Grade G', sizes=['40'])
        url = f'/api/v1/products/{self.product.pk}/grade-stock/'
        data = {'grade_id': other_grade.pk, 'color_id': self.color.pk, 'stock_quantity': 2}
        response = self.client.post(url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(
            ProductColorGrade.objects.get(product=self.product, grade=other_grade).stock_quantity, 2
        )
        response = self.client.post(url, dict(data, stock_quantity=3), format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(ProductColorGrade.objects.filter(product=self.product, grade=other_grade).count(), 1)

    def test_stock_summary(self):
        response = self.client.get(f'/api/v1/products/{self.product.pk}/stock-summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['product']['stock_strategy'], 'grade')
        self.assertIn('grade_stats', response.data)

    def test_availability(self):
        services.set_grade_stock(self.product, self.color, self.grade, 3)
        url = f'/api/v1/products/{self.product.pk}/availability/'
        response = self.client.get(url, {'color': self.color.pk, 'grade': self.grade.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['available'], 3)
        self.assertFalse(response.data['unbounded'])

    def test_availability_unbounded(self):
        self.product.allow_oversell = True
        self.product.save()
        url = f'/api/v1/products/{self.product.pk}/availability/'
        response = self.client.get(url, {'color': self.color.pk, 'grade': self.grade.pk})
        self.assertTrue(response.data['unbounded'])
        self.assertIsNone(response.data['available'])

    def test_availability_wrong_unit(self):
        size = SizeVariant.objects.filter(product=self.product).first().size
        url = f'/api/v1/products/{self.product.pk}/availability/'
        response = self.client.get(url, {'color': self.color.pk, 'size': size.pk})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.data['field'], 'grade')

    def test_availability_requires_one_unit(self):
        url = f'/api/v1/products/{self.product.pk}/availability/'
        response = self.client.get(url, {'color': self.color.pk})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
