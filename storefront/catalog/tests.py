"""
Test suite for the catalog module
Tests: entity resolution, grade synthesis, variant fan-out, catalog endpoints
"""
import json
from decimal import Decimal
from unittest.mock import Mock, patch

from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework import status

from storefront.catalog.fanout import VariantFanout
from storefront.catalog.grades import GradeSynthesizer
from storefront.catalog.models import (
    Category, Color, Size, Grade, GradeTemplate, ColorVariant, SizeVariant, ProductColorGrade,
)
from storefront.catalog.resolver import EntityResolver, size_display_order
from storefront.core.exceptions import ConstraintRace, RecordValidationError
from storefront.core.models import Setting
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient


def template_sizes(grade):
    return [t.size.name for t in GradeTemplate.objects.filter(grade=grade).select_related('size')]


class EntityResolverTests(TestCase):

    def setUp(self):
        self.resolver = EntityResolver()

    def test_resolve_twice_returns_same_row(self):
        first, created_first = self.resolver.resolve_or_create('category', 'Chinelos')
        second, created_second = self.resolver.resolve_or_create('category', 'Chinelos')
        self.assertTrue(created_first)
        self.assertFalse(created_second)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Category.objects.filter(name='Chinelos').count(), 1)

    def test_name_match_is_exact(self):
        self.resolver.resolve_or_create('color', 'Azul')
        _, created = self.resolver.resolve_or_create('color', 'azul')
        self.assertTrue(created)
        self.assertEqual(Color.objects.count(), 2)

    def test_name_is_stripped(self):
        color, _ = self.resolver.resolve_or_create('color', '  Preto ')
        self.assertEqual(color.name, 'Preto')

    def test_blank_name_rejected(self):
        with self.assertRaises(RecordValidationError):
            self.resolver.resolve_or_create('type', '   ')

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            self.resolver.resolve_or_create('brand', 'Havaianas')

    def test_sizes_get_display_order(self):
        size, _ = self.resolver.resolve_or_create('size', '38')
        self.assertEqual(size.display_order, 38)
        self.assertEqual(size_display_order('PP'), 1000)

    def test_lost_race_returns_winner(self):
        winner = Color.objects.create(name='Azul')
        with patch.object(self.resolver, '_lookup', side_effect=[None, winner]):
            color, created = self.resolver.resolve_or_create('color', 'Azul')
        self.assertEqual(color.pk, winner.pk)
        self.assertFalse(created)
        self.assertEqual(Color.objects.filter(name='Azul').count(), 1)

    def test_lost_race_without_winner_raises(self):
        Color.objects.create(name='Azul')
        with patch.object(self.resolver, '_lookup', side_effect=[None, None]):
            with self.assertRaises(ConstraintRace) as ctx:
                self.resolver.resolve_or_create('color', 'Azul')
        self.assertEqual(ctx.exception.kind, 'color')
        self.assertEqual(ctx.exception.name, 'Azul')


class GradeSynthesizerTests(TestCase):

    def setUp(self):
        self.synthesizer = GradeSynthesizer()

    def test_feminine_grade(self):
        grade, created = self.synthesizer.resolve_or_create_grade('Grade Feminina P')
        self.assertTrue(created)
        self.assertEqual(template_sizes(grade), [str(s) for s in range(34, 41)])
        self.assertFalse(GradeTemplate.objects.filter(grade=grade, required_quantity__gt=0).exists())

    def test_profile_labels_are_stripped_before_dedup(self):
        synthesizer = GradeSynthesizer(
            profiles=[{'name': 'teste', 'match': ['teste'], 'sizes': [' 34', '34', '', ' 35 ']}],
            default_sizes=['38', ' 38'],
        )
        grade, created = synthesizer.resolve_or_create_grade('Grade Teste')
        self.assertTrue(created)
        self.assertEqual(template_sizes(grade), ['34', '35'])
        self.assertEqual(synthesizer.get_default_profile().sizes, ('38',))

    def test_masculine_grade(self):
        grade, _ = self.synthesizer.resolve_or_create_grade('Grade Masculina')
        self.assertEqual(template_sizes(grade), [str(s) for s in range(38, 45)])

    def test_children_grade(self):
        grade, _ = self.synthesizer.resolve_or_create_grade('Grade Infantil')
        self.assertEqual(set(template_sizes(grade)), {str(s) for s in range(20, 34)})

    def test_children_grade_accented(self):
        grade, _ = self.synthesizer.resolve_or_create_grade('GRADE CRIANÇA')
        self.assertEqual(template_sizes(grade)[0], '20')

    def test_default_grade(self):
        grade, _ = self.synthesizer.resolve_or_create_grade('Grade Unissex')
        self.assertEqual(template_sizes(grade), [str(s) for s in range(35, 43)])

    def test_existing_grade_untouched(self):
        existing = TestDataFactory.create_grade(name='Grade Feminina', sizes=['35', '36'], quantities={'35': 2})
        grade, created = self.synthesizer.resolve_or_create_grade('Grade Feminina')
        self.assertFalse(created)
        self.assertEqual(grade.pk, existing.pk)
        self.assertEqual(template_sizes(grade), ['35', '36'])

    def test_sizes_are_shared_between_grades(self):
        self.synthesizer.resolve_or_create_grade('Grade Feminina')
        self.synthesizer.resolve_or_create_grade('Grade Masculina')
        # 34-40 and 38-44 overlap on 38-40
        self.assertEqual(Size.objects.count(), 11)

    def test_profile_override_from_setting(self):
        Setting.objects.create(
            key='GRADE_SIZE_PROFILES',
            value=json.dumps([{'name': 'adulto', 'match': ['adulto'], 'sizes': ['39', '40']}]),
        )
        Setting.objects.create(key='GRADE_DEFAULT_SIZES', value=json.dumps(['33', '34']))
        grade, _ = self.synthesizer.resolve_or_create_grade('Grade Adulto')
        self.assertEqual(template_sizes(grade), ['39', '40'])
        # Settings-file profiles no longer apply
        self.assertEqual(self.synthesizer.profile_for('Grade Feminina').sizes, ('33', '34'))

    def test_invalid_setting_falls_back(self):
        Setting.objects.create(key='GRADE_SIZE_PROFILES', value='not json')
        with self.assertLogs('storefront.catalog.grades', level='ERROR'):
            profile = self.synthesizer.profile_for('Grade Feminina')
        self.assertEqual(profile.name, 'feminino')

    def test_constructor_profiles(self):
        synthesizer = GradeSynthesizer(
            profiles=[{'name': 'kids', 'match': ['kids'], 'sizes': [25, 26]}],
            default_sizes=[40],
        )
        self.assertEqual(synthesizer.profile_for('Kids Box').sizes, ('25', '26'))
        self.assertEqual(synthesizer.profile_for('Outra').sizes, ('40',))

    @override_settings(GRADE_SIZE_PROFILES=[{'name': 'unico', 'match': ['x'], 'sizes': ['1']}])
    def test_profiles_read_from_settings(self):
        self.assertEqual(self.synthesizer.profile_for('Grade X').name, 'unico')

    def test_blank_grade_name(self):
        with self.assertRaises(RecordValidationError):
            self.synthesizer.resolve_or_create_grade('')


class VariantFanoutTests(TestCase):

    def setUp(self):
        self.fanout = VariantFanout()
        self.product = TestDataFactory.create_product(name='Chinelo', code='CHN1')
        self.color = TestDataFactory.create_color('Azul')
        self.grade = TestDataFactory.create_grade(name='Grade P', sizes=['35', '36', '37'])

    def test_fanout_cardinality(self):
        result = self.fanout.fanout(self.product, self.color, self.grade, Decimal('39.90'))
        self.assertTrue(result.created)
        self.assertEqual(len(result.size_variant_ids), 3)
        self.assertEqual(ColorVariant.objects.filter(product=self.product).count(), 1)
        self.assertEqual(SizeVariant.objects.filter(product=self.product, color=self.color).count(), 3)
        self.assertTrue(ProductColorGrade.objects.filter(product=self.product, color=self.color, grade=self.grade).exists())

    def test_fanout_sets_prices_and_flags(self):
        result = self.fanout.fanout(self.product, self.color, self.grade, Decimal('49.90'), sku='CHN1-AZ')
        color_variant = ColorVariant.objects.get(pk=result.color_variant_id)
        self.assertEqual(color_variant.variant_name, 'Chinelo - Azul')
        self.assertEqual(color_variant.price, Decimal('49.90'))
        self.assertEqual(color_variant.sku, 'CHN1-AZ')
        self.assertTrue(color_variant.is_main_catalog)
        prices = set(SizeVariant.objects.filter(product=self.product).values_list('price_override', flat=True))
        self.assertEqual(prices, {Decimal('49.90')})

    def test_size_variants_follow_display_order(self):
        grade = TestDataFactory.create_grade(name='Grade Mista', sizes=['40', '38', '39'])
        result = self.fanout.fanout(self.product, self.color, grade, Decimal('10'))
        sizes = [SizeVariant.objects.get(pk=pk).size.name for pk in result.size_variant_ids]
        self.assertEqual(sizes, ['38', '39', '40'])

    def test_existing_color_variant_is_skipped(self):
        first = self.fanout.fanout(self.product, self.color, self.grade, Decimal('39.90'))
        second = self.fanout.fanout(self.product, self.color, self.grade, Decimal('99.90'))
        self.assertFalse(second.created)
        self.assertEqual(second.color_variant_id, first.color_variant_id)
        self.assertEqual(second.size_variant_ids, [])
        self.assertEqual(ColorVariant.objects.get(pk=first.color_variant_id).price, Decimal('39.90'))

    def test_second_color_is_not_main_catalog(self):
        self.fanout.fanout(self.product, self.color, self.grade, Decimal('39.90'))
        result = self.fanout.fanout(self.product, TestDataFactory.create_color('Preto'), self.grade, Decimal('39.90'))
        self.assertFalse(ColorVariant.objects.get(pk=result.color_variant_id).is_main_catalog)

    def test_empty_grade_logs_warning(self):
        empty = TestDataFactory.create_grade(name='Grade Vazia')
        with self.assertLogs('storefront.catalog.fanout', level='WARNING'):
            result = self.fanout.fanout(self.product, self.color, empty, Decimal('39.90'))
        self.assertTrue(result.created)
        self.assertEqual(result.size_variant_ids, [])
        self.assertTrue(ColorVariant.objects.filter(pk=result.color_variant_id).exists())

    def test_image_fetcher_runs_after_commit(self):
        fetcher = Mock()
        fanout = VariantFanout(image_fetcher=fetcher)
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            result = fanout.fanout(self.product, self.color, self.grade, Decimal('39.90'),
                                   image_ref='https://cdn.example.com/azul.jpg')
            fetcher.assert_not_called()
        self.assertEqual(len(callbacks), 1)
        fetcher.assert_called_once_with(result.color_variant_id, 'https://cdn.example.com/azul.jpg')

    def test_no_fetcher_configured(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            self.fanout.fanout(self.product, self.color, self.grade, Decimal('39.90'),
                               image_ref='https://cdn.example.com/azul.jpg')
        self.assertEqual(callbacks, [])


class CatalogAPITests(TestCase):

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_lookup_lists(self):
        TestDataFactory.create_category('Chinelos')
        TestDataFactory.create_color('Azul')
        TestDataFactory.create_size('38')
        for url in ('/api/v1/categories/', '/api/v1/types/', '/api/v1/genders/', '/api/v1/colors/', '/api/v1/sizes/'):
            response = self.client.get(url)
            self.assertEqual(response.status_code, status.HTTP_200_OK, url)
        self.assertEqual(self.client.get('/api/v1/categories/').data[0]['name'], 'Chinelos')

    def test_product_list_rejects_out_of_range_limit(self):
        TestDataFactory.create_product(code='CHN1')
        for query in ('limit=0', 'limit=-5', 'limit=1000', 'page=0', 'limit=abc'):
            response = self.client.get(f'/api/v1/products/?{query}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, query)
        response = self.client.get('/api/v1/products/?limit=1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 1)

    def test_product_list_and_filters(self):
        chinelos = TestDataFactory.create_category('Chinelos')
        TestDataFactory.create_product(name='Chinelo Praia', code='CHN1', category=chinelos)
        TestDataFactory.create_product(name='Sandália', code='SND1')
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        response = self.client.get(f'/api/v1/products/?category={chinelos.pk}')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['code'], 'CHN1')

        response = self.client.get('/api/v1/products/?search=praia')
        self.assertEqual(response.data['count'], 1)

    def test_product_detail(self):
        product = TestDataFactory.create_product(code='CHN1')
        color = TestDataFactory.create_color('Azul')
        grade = TestDataFactory.create_grade(name='Grade P', sizes=['35', '36'])
        VariantFanout().fanout(product, color, grade, Decimal('39.90'))
        response = self.client.get(f'/api/v1/products/{product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['color_variants']), 1)
        self.assertEqual(len(response.data['size_variants']), 2)
        self.assertEqual(len(response.data['color_grades']), 1)

    def test_grade_detail(self):
        grade = TestDataFactory.create_grade(name='Grade P', sizes=['35', '36'], quantities={'35': 1, '36': 2})
        response = self.client.get(f'/api/v1/grades/{grade.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_pairs'], 3)
        self.assertEqual([t['size_name'] for t in response.data['templates']], ['35', '36'])

    def test_update_grade_templates(self):
        grade = TestDataFactory.create_grade(name='Grade P', sizes=['35', '36'])
        data = {'templates': [{'size': '35', 'required_quantity': 2}, {'size': '37', 'required_quantity': 1}]}
        response = self.client.put(f'/api/v1/grades/{grade.pk}/templates/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        quantities = {t.size.name: t.required_quantity for t in grade.templates.select_related('size')}
        self.assertEqual(quantities, {'35': 2, '36': 0, '37': 1})
        self.assertEqual(response.data['total_pairs'], 3)

    def test_update_grade_templates_rejects_negative(self):
        grade = TestDataFactory.create_grade(name='Grade P', sizes=['35'])
        data = {'templates': [{'size': '35', 'required_quantity': -1}]}
        response = self.client.put(f'/api/v1/grades/{grade.pk}/templates/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_grade_preview(self):
        response = self.client.get('/api/v1/grades/preview/', {'name': 'Grade Feminina'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['exists'])
        self.assertEqual(response.data['profile']['sizes'], [str(s) for s in range(34, 41)])
        self.assertFalse(Grade.objects.exists())

    def test_grade_preview_existing(self):
        TestDataFactory.create_grade(name='Grade Feminina', sizes=['35'])
        response = self.client.get('/api/v1/grades/preview/', {'name': 'Grade Feminina'})
        self.assertTrue(response.data['exists'])
        self.assertEqual(len(response.data['grade']['templates']), 1)
