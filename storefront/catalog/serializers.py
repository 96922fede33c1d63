from rest_framework import serializers

from .models import (
    Category, ProductType, Gender, Color, Size, Grade, GradeTemplate,
    Product, ColorVariant, SizeVariant, ProductColorGrade,
)


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'is_active']


class ProductTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductType
        fields = ['id', 'name', 'description', 'is_active']


class GenderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Gender
        fields = ['id', 'name', 'description', 'is_active']


class ColorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Color
        fields = ['id', 'name', 'hex_code', 'is_active']


class SizeSerializer(serializers.ModelSerializer):
    class Meta:
        model = Size
        fields = ['id', 'name', 'display_order']


class GradeTemplateSerializer(serializers.ModelSerializer):
    size_name = serializers.CharField(source='size.name', read_only=True)

    class Meta:
        model = GradeTemplate
        fields = ['id', 'size', 'size_name', 'required_quantity']


class GradeSerializer(serializers.ModelSerializer):
    templates = GradeTemplateSerializer(many=True, read_only=True)
    total_pairs = serializers.SerializerMethodField()

    class Meta:
        model = Grade
        fields = ['id', 'name', 'description', 'is_active', 'templates', 'total_pairs']

    def get_total_pairs(self, obj):
        return obj.get_total_pairs()


class TemplateQuantitySerializer(serializers.Serializer):
    size = serializers.CharField(max_length=20)
    required_quantity = serializers.IntegerField(min_value=0)


class GradeTemplatesUpdateSerializer(serializers.Serializer):
    """Operator input: required quantity per size label of a grade"""
    templates = TemplateQuantitySerializer(many=True, allow_empty=False)

    def validate_templates(self, value):
        labels = [item['size'].strip() for item in value]
        if len(labels) != len(set(labels)):
            raise serializers.ValidationError('Each size may appear only once.')
        return value


class SizeVariantSerializer(serializers.ModelSerializer):
    color_name = serializers.CharField(source='color.name', read_only=True)
    size_name = serializers.CharField(source='size.name', read_only=True)

    class Meta:
        model = SizeVariant
        fields = ['id', 'color', 'color_name', 'size', 'size_name', 'stock', 'price_override', 'is_active']


class ColorVariantSerializer(serializers.ModelSerializer):
    color_name = serializers.CharField(source='color.name', read_only=True)

    class Meta:
        model = ColorVariant
        fields = ['id', 'color', 'color_name', 'variant_name', 'sku', 'price', 'image_url',
                  'stock_total', 'is_active', 'is_main_catalog']


class ProductColorGradeSerializer(serializers.ModelSerializer):
    color_name = serializers.CharField(source='color.name', read_only=True)
    grade_name = serializers.CharField(source='grade.name', read_only=True)

    class Meta:
        model = ProductColorGrade
        fields = ['id', 'color', 'color_name', 'grade', 'grade_name', 'stock_quantity']


class ProductListSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    type_name = serializers.CharField(source='type.name', read_only=True, default=None)
    gender_name = serializers.CharField(source='gender.name', read_only=True, default=None)
    main_image = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'code', 'category', 'category_name', 'type', 'type_name',
                  'gender', 'gender_name', 'base_price', 'suggested_price', 'is_active',
                  'allow_oversell', 'stock_strategy', 'main_image', 'updated_at']

    def get_main_image(self, obj):
        # Uses the prefetched color variants
        for variant in obj.color_variants.all():
            if variant.is_main_catalog:
                return variant.image_url
        return None


class ProductDetailSerializer(ProductListSerializer):
    color_variants = ColorVariantSerializer(many=True, read_only=True)
    size_variants = SizeVariantSerializer(many=True, read_only=True)
    color_grades = ProductColorGradeSerializer(many=True, read_only=True)

    class Meta(ProductListSerializer.Meta):
        fields = ProductListSerializer.Meta.fields + ['description', 'color_variants', 'size_variants', 'color_grades']
