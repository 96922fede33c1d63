"""
Test suite for the core module
Tests: audit trail, settings endpoints, JWT login, error rendering, listing cache
"""
import json

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from storefront.core.cache_utils import (
    get_cached_products_list, cache_products_list, invalidate_products_cache,
)
from storefront.core.exceptions import (
    ConstraintRace, DuplicateKey, RecordValidationError, StorageUnavailable, api_exception_handler,
)
from storefront.core.models import AuditLog, Setting
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.core.utils import create_audit_log


class AuditLogTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()

    def test_create_audit_log(self):
        entry = create_audit_log(
            action='create', model_name='Product', object_id=10,
            user=self.user, object_name='Chinelo', object_reference='SKU1',
            changes={'name': 'Chinelo'},
        )
        self.assertIsNotNone(entry)
        self.assertEqual(entry.user, self.user)
        self.assertEqual(entry.object_id, '10')
        self.assertEqual(AuditLog.objects.count(), 1)

    def test_missing_fields_skip_entry(self):
        self.assertIsNone(create_audit_log(action='create', model_name=None, object_id=1))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_audit_log_list_filters_by_reference(self):
        staff = TestDataFactory.create_user(is_staff=True)
        create_audit_log(action='create', model_name='Product', object_id=1, user=staff, object_reference='A')
        create_audit_log(action='create', model_name='Product', object_id=2, user=staff, object_reference='B')
        client = AuthenticatedAPIClient().authenticate_user(staff)
        response = client.get('/api/v1/audit-logs/?reference=A')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['object_reference'], 'A')


class SettingAPITests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_user(is_staff=True)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_grade_profile_setting(self):
        value = json.dumps([{'name': 'adulto', 'match': ['adulto'], 'sizes': ['36', '37']}])
        response = self.client.post('/api/v1/settings/', {'key': 'GRADE_SIZE_PROFILES', 'value': value}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Setting.objects.filter(key='GRADE_SIZE_PROFILES').exists())

    def test_grade_profile_setting_rejects_invalid_json(self):
        response = self.client.post('/api/v1/settings/', {'key': 'GRADE_DEFAULT_SIZES', 'value': '[35, 36'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('value', response.data)

    def test_non_staff_cannot_manage_settings(self):
        client = AuthenticatedAPIClient().authenticate_user(TestDataFactory.create_user())
        response = client.get('/api/v1/settings/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuthTests(TestCase):

    def test_obtain_token(self):
        TestDataFactory.create_user(username='operador', password='segredo123')
        response = APIClient().post('/api/v1/token/', {'username': 'operador', 'password': 'segredo123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_endpoints_require_authentication(self):
        response = APIClient().get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class ExceptionHandlerTests(TestCase):

    def test_validation_error_body(self):
        exc = RecordValidationError('nome is required', field='products[2].nome', record_index=2)
        response = api_exception_handler(exc, {})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.data['error'], 'validation_error')
        self.assertEqual(response.data['field'], 'products[2].nome')
        self.assertEqual(response.data['record_index'], 2)
        self.assertFalse(response.data['partial_batch'])
        self.assertNotIn('report', response.data)

    def test_duplicate_key_is_conflict(self):
        response = api_exception_handler(DuplicateKey('exists', field='codigo'), {})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['field'], 'codigo')

    def test_transient_errors_are_503(self):
        race = api_exception_handler(ConstraintRace('color', 'Azul'), {})
        self.assertEqual(race.status_code, 503)
        self.assertEqual(race.data['kind'], 'color')
        self.assertEqual(race.data['name'], 'Azul')
        storage = api_exception_handler(StorageUnavailable(), {})
        self.assertEqual(storage.status_code, 503)
        self.assertEqual(storage.data['error'], 'storage_unavailable')

    def test_partial_batch_fields_on_every_engine_error(self):
        race = ConstraintRace('grade', 'Outra')
        body = api_exception_handler(race, {}).data
        self.assertFalse(body['partial_batch'])
        self.assertNotIn('report', body)

        race.partial_batch = True
        race.report = {'produtos_processados': 1}
        body = api_exception_handler(race, {}).data
        self.assertTrue(body['partial_batch'])
        self.assertEqual(body['report'], {'produtos_processados': 1})
        self.assertEqual(body['kind'], 'grade')


class ProductsCacheTests(TestCase):

    def test_invalidation_changes_key(self):
        _, key = get_cached_products_list({'page': '1'})
        cache_products_list(key, {'results': []})
        cached, same_key = get_cached_products_list({'page': '1'})
        self.assertEqual(same_key, key)
        self.assertEqual(cached, {'results': []})

        invalidate_products_cache()
        cached, new_key = get_cached_products_list({'page': '1'})
        self.assertNotEqual(new_key, key)
        self.assertIsNone(cached)
