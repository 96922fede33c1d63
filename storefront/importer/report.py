"""Batch report returned by the reconciliation coordinator."""
from dataclasses import dataclass, field


@dataclass
class VariantReport:
    cor: str
    grade: str
    status: str  # created | existing
    color_variant_id: int
    size_variant_ids: list = field(default_factory=list)

    def as_dict(self):
        return {
            'cor': self.cor,
            'grade': self.grade,
            'status': self.status,
            'color_variant_id': self.color_variant_id,
            'size_variant_ids': list(self.size_variant_ids),
        }


@dataclass
class ProductReport:
    id: int
    codigo: str
    nome: str
    status: str  # created | updated
    variantes: list = field(default_factory=list)

    def as_dict(self):
        return {
            'id': self.id,
            'codigo': self.codigo,
            'nome': self.nome,
            'status': self.status,
            'variantes': [v.as_dict() for v in self.variantes],
        }


@dataclass
class BatchReport:
    produtos_processados: int = 0
    produtos_novos: int = 0
    produtos_atualizados: int = 0
    variantes_novas: int = 0
    variantes_existentes: int = 0
    categorias_criadas: list = field(default_factory=list)
    tipos_criados: list = field(default_factory=list)
    cores_criadas: list = field(default_factory=list)
    grades_criadas: list = field(default_factory=list)
    produtos: list = field(default_factory=list)

    CREATED_LISTS = {
        'category': 'categorias_criadas',
        'type': 'tipos_criados',
        'color': 'cores_criadas',
        'grade': 'grades_criadas',
    }

    def note_created(self, kind, name):
        attr = self.CREATED_LISTS.get(kind)
        if attr is None:
            return
        names = getattr(self, attr)
        if name not in names:
            names.append(name)

    def add_product(self, product_report):
        self.produtos.append(product_report)
        self.produtos_processados += 1
        if product_report.status == 'created':
            self.produtos_novos += 1
        else:
            self.produtos_atualizados += 1
        for variant in product_report.variantes:
            if variant.status == 'created':
                self.variantes_novas += 1
            else:
                self.variantes_existentes += 1

    def merge_created(self, other):
        """Fold the created-entity names of a committed record into this report."""
        for attr in self.CREATED_LISTS.values():
            for name in getattr(other, attr):
                if name not in getattr(self, attr):
                    getattr(self, attr).append(name)

    def as_dict(self):
        return {
            'produtos_processados': self.produtos_processados,
            'produtos_novos': self.produtos_novos,
            'produtos_atualizados': self.produtos_atualizados,
            'variantes_novas': self.variantes_novas,
            'variantes_existentes': self.variantes_existentes,
            'categorias_criadas': list(self.categorias_criadas),
            'tipos_criados': list(self.tipos_criados),
            'cores_criadas': list(self.cores_criadas),
            'grades_criadas': list(self.grades_criadas),
            'produtos': [p.as_dict() for p in self.produtos],
        }
