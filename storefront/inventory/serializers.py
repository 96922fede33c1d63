from rest_framework import serializers

from storefront.catalog.models import Product


class StockTypeSerializer(serializers.Serializer):
    stock_type = serializers.ChoiceField(choices=Product.STOCK_STRATEGY_CHOICES)


class SizeStockItemSerializer(serializers.Serializer):
    variant_id = serializers.IntegerField()
    stock = serializers.IntegerField(min_value=0)


class SizeStockUpdateSerializer(serializers.Serializer):
    """Accepts either a single ``{variant_id, stock}`` or ``{updates: [...]}``"""
    variant_id = serializers.IntegerField(required=False)
    stock = serializers.IntegerField(min_value=0, required=False)
    updates = SizeStockItemSerializer(many=True, required=False, allow_empty=False)

    def validate(self, attrs):
        if 'updates' in attrs:
            ids = [item['variant_id'] for item in attrs['updates']]
            if len(ids) != len(set(ids)):
                raise serializers.ValidationError({'updates': 'Each variant may appear only once.'})
            return {'updates': attrs['updates']}
        if 'variant_id' not in attrs or 'stock' not in attrs:
            raise serializers.ValidationError('Provide variant_id and stock, or a list of updates.')
        return {'updates': [{'variant_id': attrs['variant_id'], 'stock': attrs['stock']}]}


class GradeStockSerializer(serializers.Serializer):
    grade_id = serializers.IntegerField()
    color_id = serializers.IntegerField()
    stock_quantity = serializers.IntegerField(min_value=0)


class SizeStockRowSerializer(serializers.Serializer):
    variant_id = serializers.IntegerField(source='id')
    stock = serializers.IntegerField()
    size = serializers.CharField(source='size.name')
    color_id = serializers.IntegerField()
    color_name = serializers.CharField(source='color.name')
    hex_code = serializers.CharField(source='color.hex_code')
    price_override = serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True)


class GradeStockRowSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    grade_id = serializers.IntegerField()
    grade_name = serializers.CharField(source='grade.name')
    color_id = serializers.IntegerField()
    color_name = serializers.CharField(source='color.name')
    hex_code = serializers.CharField(source='color.hex_code')
    stock_quantity = serializers.IntegerField()
