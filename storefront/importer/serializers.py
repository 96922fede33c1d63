"""
Request bodies of the import endpoints.

They run before the reconciliation coordinator touches the database; a body
that fails here is rejected as a whole with nothing written.
"""
from decimal import Decimal

from rest_framework import serializers

from storefront.catalog.models import Product
from .records import (
    ProductImportRecord, VariantImportRecord,
    SizeProductRecord, SizeLineRecord,
)


class VariantImportSerializer(serializers.Serializer):
    cor = serializers.CharField(max_length=100)
    preco = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))
    grade = serializers.CharField(max_length=200)
    foto = serializers.URLField(max_length=500, required=False, allow_blank=True, allow_null=True)
    sku = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)


class ProductImportSerializer(serializers.Serializer):
    codigo = serializers.CharField(max_length=100)
    nome = serializers.CharField(max_length=200, required=False, allow_blank=True, allow_null=True)
    categoria = serializers.CharField(max_length=200, required=False, allow_blank=True, allow_null=True)
    tipo = serializers.CharField(max_length=200, required=False, allow_blank=True, allow_null=True)
    genero = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    descricao = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    preco_sugerido = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True
    )
    vender_infinito = serializers.BooleanField(required=False, allow_null=True, default=None)
    tipo_estoque = serializers.ChoiceField(choices=Product.STOCK_STRATEGY_CHOICES, required=False, allow_null=True)
    variantes = VariantImportSerializer(many=True, allow_empty=False)


class BulkImportSerializer(serializers.Serializer):
    products = ProductImportSerializer(many=True, allow_empty=False)
    strict = serializers.BooleanField(required=False, default=False)


class SingleImportSerializer(serializers.Serializer):
    """Exactly one product carrying exactly one variant"""
    products = ProductImportSerializer(many=True, allow_empty=False)

    def validate_products(self, value):
        if len(value) != 1:
            raise serializers.ValidationError('Exactly one product is required.')
        if len(value[0]['variantes']) != 1:
            raise serializers.ValidationError('Exactly one variant is required.')
        return value


def _clean(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def to_product_records(validated_products):
    """Convert validated serializer data into ProductImportRecord objects."""
    records = []
    for product in validated_products:
        variants = tuple(
            VariantImportRecord(
                cor=variant['cor'].strip(),
                preco=variant['preco'],
                grade=variant['grade'].strip(),
                foto=_clean(variant.get('foto')),
                sku=_clean(variant.get('sku')),
            )
            for variant in product['variantes']
        )
        records.append(ProductImportRecord(
            codigo=product['codigo'].strip(),
            variantes=variants,
            nome=_clean(product.get('nome')),
            categoria=_clean(product.get('categoria')),
            tipo=_clean(product.get('tipo')),
            genero=_clean(product.get('genero')),
            descricao=_clean(product.get('descricao')),
            preco_sugerido=product.get('preco_sugerido'),
            vender_infinito=product.get('vender_infinito'),
            tipo_estoque=product.get('tipo_estoque') or None,
        ))
    return records


class SizeLineSerializer(serializers.Serializer):
    size_name = serializers.CharField(max_length=20)
    color_name = serializers.CharField(max_length=100)
    stock = serializers.IntegerField(min_value=0, required=False, default=0)
    price_override = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True
    )


class ProductByNamesSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    code = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    category_name = serializers.CharField(max_length=200, required=False, allow_blank=True, allow_null=True)
    base_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True
    )
    suggested_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True
    )
    photo = serializers.URLField(max_length=500, required=False, allow_blank=True, allow_null=True)
    variants = SizeLineSerializer(many=True, allow_empty=False)

    def validate_variants(self, value):
        pairs = [(v['color_name'].strip(), v['size_name'].strip()) for v in value]
        if len(pairs) != len(set(pairs)):
            raise serializers.ValidationError('Each (color_name, size_name) pair may appear only once.')
        return value

    def to_record(self):
        data = self.validated_data
        return SizeProductRecord(
            name=data['name'].strip(),
            code=data['code'].strip(),
            description=_clean(data.get('description')),
            category_name=_clean(data.get('category_name')),
            base_price=data.get('base_price'),
            suggested_price=data.get('suggested_price'),
            photo=_clean(data.get('photo')),
            variants=tuple(
                SizeLineRecord(
                    size_name=line['size_name'].strip(),
                    color_name=line['color_name'].strip(),
                    stock=line.get('stock', 0),
                    price_override=line.get('price_override'),
                )
                for line in data['variants']
            ),
        )
