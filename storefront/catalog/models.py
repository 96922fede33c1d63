from django.db import models
from decimal import Decimal


class Category(models.Model):
    """Product categories"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'


class ProductType(models.Model):
    """Product types (casual, social, sport...)"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'product_types'


class Gender(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'genders'


class Color(models.Model):
    name = models.CharField(max_length=100, unique=True)
    hex_code = models.CharField(max_length=7, blank=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'colors'


class Size(models.Model):
    """Shoe size labels; numeric labels sort by their value"""
    name = models.CharField(max_length=20, unique=True)
    display_order = models.IntegerField(default=0)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'sizes'
        ordering = ['display_order', 'name']


class Grade(models.Model):
    """A named kit of sizes sold as a single unit"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def get_total_pairs(self):
        """Number of pairs in one kit"""
        return sum(t.required_quantity for t in self.templates.all())

    class Meta:
        db_table = 'grades'


class GradeTemplate(models.Model):
    """One (size, required quantity) line of a grade"""
    grade = models.ForeignKey(Grade, on_delete=models.CASCADE, related_name='templates')
    size = models.ForeignKey(Size, on_delete=models.PROTECT, related_name='grade_templates')
    required_quantity = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.grade.name} - {self.size.name} x{self.required_quantity}"

    class Meta:
        db_table = 'grade_templates'
        ordering = ['size__display_order', 'id']
        constraints = [
            models.UniqueConstraint(fields=['grade', 'size'], name='uniq_grade_template_size'),
        ]


class Product(models.Model):
    """Product master"""
    STOCK_STRATEGY_CHOICES = [
        ('size', 'Per size'),
        ('grade', 'Per grade'),
    ]

    name = models.CharField(max_length=200, db_index=True)
    code = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    type = models.ForeignKey(ProductType, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    gender = models.ForeignKey(Gender, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    base_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    suggested_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    allow_oversell = models.BooleanField(default=False, help_text='Keep selling when the available quantity is zero or less')
    stock_strategy = models.CharField(max_length=10, choices=STOCK_STRATEGY_CHOICES, default='grade')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.code})"

    class Meta:
        db_table = 'products'


class ColorVariant(models.Model):
    """A product in one color, independent of size"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='color_variants')
    color = models.ForeignKey(Color, on_delete=models.PROTECT, related_name='color_variants')
    variant_name = models.CharField(max_length=255)
    sku = models.CharField(max_length=100, blank=True, null=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    image_url = models.URLField(max_length=500, blank=True, null=True)
    stock_total = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    is_main_catalog = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.variant_name

    class Meta:
        db_table = 'product_color_variants'
        ordering = ['id']
        constraints = [
            models.UniqueConstraint(fields=['product', 'color'], name='uniq_color_variant'),
        ]


class SizeVariant(models.Model):
    """A purchasable (product, color, size) unit"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='size_variants')
    color = models.ForeignKey(Color, on_delete=models.PROTECT, related_name='size_variants')
    size = models.ForeignKey(Size, on_delete=models.PROTECT, related_name='size_variants')
    stock = models.IntegerField(default=0)
    price_override = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.code} - {self.color.name} - {self.size.name}"

    class Meta:
        db_table = 'product_variants'
        ordering = ['color_id', 'size__display_order', 'id']
        constraints = [
            models.UniqueConstraint(fields=['product', 'color', 'size'], name='uniq_size_variant'),
        ]


class ProductColorGrade(models.Model):
    """Kit stock for a (product, color, grade); independent of the kit's sizes"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='color_grades')
    color = models.ForeignKey(Color, on_delete=models.PROTECT, related_name='color_grades')
    grade = models.ForeignKey(Grade, on_delete=models.PROTECT, related_name='color_grades')
    stock_quantity = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.code} - {self.color.name} - {self.grade.name}"

    class Meta:
        db_table = 'product_color_grades'
        ordering = ['id']
        constraints = [
            models.UniqueConstraint(fields=['product', 'color', 'grade'], name='uniq_product_color_grade'),
        ]
