"""Immutable import records handed to the reconciliation coordinator."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Tuple


@dataclass(frozen=True)
class VariantImportRecord:
    cor: str
    preco: Decimal
    grade: str
    foto: Optional[str] = None
    sku: Optional[str] = None


@dataclass(frozen=True)
class ProductImportRecord:
    codigo: str
    variantes: Tuple[VariantImportRecord, ...] = field(default_factory=tuple)
    nome: Optional[str] = None
    categoria: Optional[str] = None
    tipo: Optional[str] = None
    genero: Optional[str] = None
    descricao: Optional[str] = None
    preco_sugerido: Optional[Decimal] = None
    vender_infinito: Optional[bool] = None
    tipo_estoque: Optional[str] = None


@dataclass(frozen=True)
class SizeLineRecord:
    size_name: str
    color_name: str
    stock: int = 0
    price_override: Optional[Decimal] = None


@dataclass(frozen=True)
class SizeProductRecord:
    """A product imported with explicit (size, color, stock) lines"""
    name: str
    code: str
    variants: Tuple[SizeLineRecord, ...]
    description: Optional[str] = None
    category_name: Optional[str] = None
    base_price: Optional[Decimal] = None
    suggested_price: Optional[Decimal] = None
    photo: Optional[str] = None
