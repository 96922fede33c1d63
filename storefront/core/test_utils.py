"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from storefront.catalog.models import (
    Category, ProductType, Gender, Color, Size, Grade, GradeTemplate,
    Product, ColorVariant, SizeVariant, ProductColorGrade,
)
from storefront.catalog.resolver import size_display_order
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_category(name=None):
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(name=name, description=f'Test category {name}')

    @staticmethod
    def create_product_type(name=None):
        if not name:
            name = f'Type_{TestDataFactory.random_string(6)}'
        return ProductType.objects.create(name=name)

    @staticmethod
    def create_gender(name=None):
        if not name:
            name = f'Gender_{TestDataFactory.random_string(6)}'
        return Gender.objects.create(name=name)

    @staticmethod
    def create_color(name=None, hex_code=''):
        if not name:
            name = f'Color_{TestDataFactory.random_string(6)}'
        return Color.objects.create(name=name, hex_code=hex_code)

    @staticmethod
    def create_size(name):
        size, _ = Size.objects.get_or_create(name=str(name), defaults={'display_order': size_display_order(str(name))})
        return size

    @staticmethod
    def create_grade(name=None, sizes=None, quantities=None):
        """Create a grade with one template per size

        ``quantities`` maps size label to required quantity (default 0).
        """
        if not name:
            name = f'Grade_{TestDataFactory.random_string(6)}'
        grade = Grade.objects.create(name=name)
        quantities = quantities or {}
        for label in sizes or []:
            GradeTemplate.objects.create(
                grade=grade,
                size=TestDataFactory.create_size(label),
                required_quantity=quantities.get(str(label), 0),
            )
        return grade

    @staticmethod
    def create_product(name=None, code=None, category=None, product_type=None,
                       stock_strategy='grade', allow_oversell=False, base_price=None):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not code:
            code = f'SKU_{TestDataFactory.random_string(8)}'
        if not category:
            category = TestDataFactory.create_category()
        if not product_type:
            product_type = TestDataFactory.create_product_type()
        return Product.objects.create(
            name=name,
            code=code,
            category=category,
            type=product_type,
            base_price=base_price if base_price is not None else Decimal('39.90'),
            stock_strategy=stock_strategy,
            allow_oversell=allow_oversell,
        )

    @staticmethod
    def create_color_variant(product, color, price=None, is_main_catalog=False):
        return ColorVariant.objects.create(
            product=product,
            color=color,
            variant_name=f'{product.name} - {color.name}',
            price=price if price is not None else product.base_price,
            is_main_catalog=is_main_catalog,
        )

    @staticmethod
    def create_size_variant(product, color, size, stock=0):
        return SizeVariant.objects.create(product=product, color=color, size=size, stock=stock)

    @staticmethod
    def create_color_grade(product, color, grade, stock_quantity=0):
        return ProductColorGrade.objects.create(
            product=product, color=color, grade=grade, stock_quantity=stock_quantity
        )

    @staticmethod
    def import_payload(codigo='SKU1', nome='X', categoria='Chinelos', tipo='Casual', variantes=None, **extra):
        """Bulk import body with one product"""
        product = {
            'codigo': codigo,
            'nome': nome,
            'categoria': categoria,
            'tipo': tipo,
            'variantes': variantes or [{'cor': 'Azul', 'preco': '39.90', 'grade': 'Grade Masculina'}],
        }
        product.update(extra)
        return {'products': [product]}


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
