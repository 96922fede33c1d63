from django.contrib import admin
from .models import (
    Category, ProductType, Gender, Color, Size, Grade, GradeTemplate,
    Product, ColorVariant, SizeVariant, ProductColorGrade,
)


@admin.register(Category, ProductType, Gender)
class LookupAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'created_at']
    search_fields = ['name']
    list_filter = ['is_active']


@admin.register(Color)
class ColorAdmin(admin.ModelAdmin):
    list_display = ['name', 'hex_code', 'is_active']
    search_fields = ['name']


@admin.register(Size)
class SizeAdmin(admin.ModelAdmin):
    list_display = ['name', 'display_order', 'is_active']
    ordering = ['display_order', 'name']


class GradeTemplateInline(admin.TabularInline):
    model = GradeTemplate
    extra = 0


@admin.register(Grade)
class GradeAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'created_at']
    search_fields = ['name']
    inlines = [GradeTemplateInline]


class ColorVariantInline(admin.TabularInline):
    model = ColorVariant
    extra = 0
    readonly_fields = ['stock_total']


class ProductColorGradeInline(admin.TabularInline):
    model = ProductColorGrade
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'category', 'type', 'stock_strategy', 'allow_oversell', 'is_active']
    list_filter = ['stock_strategy', 'is_active', 'category']
    search_fields = ['name', 'code']
    inlines = [ColorVariantInline, ProductColorGradeInline]


@admin.register(SizeVariant)
class SizeVariantAdmin(admin.ModelAdmin):
    list_display = ['product', 'color', 'size', 'stock', 'price_override']
    search_fields = ['product__code', 'product__name']
    list_filter = ['color']
