from decimal import Decimal
from django.db import migrations, models
import django.db.models.deletion


def _lookup_fields(name_length):
    return [
        ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
        ('name', models.CharField(max_length=name_length, unique=True)),
        ('description', models.TextField(blank=True)),
        ('is_active', models.BooleanField(default=True)),
        ('created_at', models.DateTimeField(auto_now_add=True)),
        ('updated_at', models.DateTimeField(auto_now=True)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Category',
            fields=_lookup_fields(200),
            options={
                'db_table': 'categories',
                'verbose_name_plural': 'categories',
            },
        ),
        migrations.CreateModel(
            name='ProductType',
            fields=_lookup_fields(200),
            options={
                'db_table': 'product_types',
            },
        ),
        migrations.CreateModel(
            name='Gender',
            fields=_lookup_fields(100),
            options={
                'db_table': 'genders',
            },
        ),
        migrations.CreateModel(
            name='Color',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, unique=True)),
                ('hex_code', models.CharField(blank=True, max_length=7)),
                ('description', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'colors',
            },
        ),
        migrations.CreateModel(
            name='Size',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=20, unique=True)),
                ('display_order', models.IntegerField(default=0)),
                ('description', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'sizes',
                'ordering': ['display_order', 'name'],
            },
        ),
        migrations.CreateModel(
            name='Grade',
            fields=_lookup_fields(200),
            options={
                'db_table': 'grades',
            },
        ),
        migrations.CreateModel(
            name='GradeTemplate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('required_quantity', models.PositiveIntegerField(default=0)),
                ('grade', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='templates', to='catalog.grade')),
                ('size', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='grade_templates', to='catalog.size')),
            ],
            options={
                'db_table': 'grade_templates',
                'ordering': ['size__display_order', 'id'],
            },
        ),
        migrations.AddConstraint(
            model_name='gradetemplate',
            constraint=models.UniqueConstraint(fields=('grade', 'size'), name='uniq_grade_template_size'),
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, max_length=200)),
                ('code', models.CharField(max_length=100, unique=True)),
                ('description', models.TextField(blank=True)),
                ('base_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('suggested_price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('allow_oversell', models.BooleanField(default=False, help_text='Keep selling when the available quantity is zero or less')),
                ('stock_strategy', models.CharField(choices=[('size', 'Per size'), ('grade', 'Per grade')], default='grade', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('category', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='products', to='catalog.category')),
                ('gender', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='products', to='catalog.gender')),
                ('type', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='products', to='catalog.producttype')),
            ],
            options={
                'db_table': 'products',
            },
        ),
        migrations.CreateModel(
            name='ColorVariant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('variant_name', models.CharField(max_length=255)),
                ('sku', models.CharField(blank=True, max_length=100, null=True)),
                ('price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('image_url', models.URLField(blank=True, max_length=500, null=True)),
                ('stock_total', models.IntegerField(default=0)),
                ('is_active', models.BooleanField(default=True)),
                ('is_main_catalog', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('color', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='color_variants', to='catalog.color')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='color_variants', to='catalog.product')),
            ],
            options={
                'db_table': 'product_color_variants',
                'ordering': ['id'],
            },
        ),
        migrations.AddConstraint(
            model_name='colorvariant',
            constraint=models.UniqueConstraint(fields=('product', 'color'), name='uniq_color_variant'),
        ),
        migrations.CreateModel(
            name='SizeVariant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('stock', models.IntegerField(default=0)),
                ('price_override', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('color', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='size_variants', to='catalog.color')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='size_variants', to='catalog.product')),
                ('size', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='size_variants', to='catalog.size')),
            ],
            options={
                'db_table': 'product_variants',
                'ordering': ['color_id', 'size__display_order', 'id'],
            },
        ),
        migrations.AddConstraint(
            model_name='sizevariant',
            constraint=models.UniqueConstraint(fields=('product', 'color', 'size'), name='uniq_size_variant'),
        ),
        migrations.CreateModel(
            name='ProductColorGrade',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('stock_quantity', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('color', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='color_grades', to='catalog.color')),
                ('grade', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='color_grades', to='catalog.grade')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='color_grades', to='catalog.product')),
            ],
            options={
                'db_table': 'product_color_grades',
                'ordering': ['id'],
            },
        ),
        migrations.AddConstraint(
            model_name='productcolorgrade',
            constraint=models.UniqueConstraint(fields=('product', 'color', 'grade'), name='uniq_product_color_grade'),
        ),
    ]
