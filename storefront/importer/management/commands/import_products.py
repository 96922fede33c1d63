"""
Management command to import products from a JSON file

The file holds the same body the bulk import endpoint accepts:
{"products": [{"codigo": ..., "variantes": [...]}, ...]}
"""
import json
import os

from django.core.management.base import BaseCommand, CommandError

from storefront.core.exceptions import EngineError
from storefront.importer.reconciliation import ReconciliationCoordinator
from storefront.importer.serializers import BulkImportSerializer, to_product_records


class Command(BaseCommand):
    help = "Imports products, colors and grades from a JSON file"

    def add_arguments(self, parser):
        parser.add_argument('json_file', type=str, help='Path to the JSON file')
        parser.add_argument(
            '--strict',
            action='store_true',
            help='Roll back the whole batch when any record fails',
        )
        parser.add_argument(
            '--database',
            default='default',
            help='Database alias to import into (default: default)',
        )

    def handle(self, *args, **options):
        json_file = options['json_file']

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS("IMPORTING PRODUCTS FROM JSON"))
        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"JSON File: {json_file}")

        if not os.path.exists(json_file):
            raise CommandError(f"JSON file not found at {json_file}")

        with open(json_file, 'r', encoding='utf-8') as f:
            try:
                payload = json.load(f)
            except ValueError as e:
                raise CommandError(f"Invalid JSON: {e}")

        if isinstance(payload, list):
            payload = {'products': payload}

        serializer = BulkImportSerializer(data=payload)
        if not serializer.is_valid():
            raise CommandError(f"Invalid import file: {json.dumps(serializer.errors, default=str)}")

        strict = options['strict'] or serializer.validated_data['strict']
        records = to_product_records(serializer.validated_data['products'])
        coordinator = ReconciliationCoordinator(using=options['database'], strict=strict)

        try:
            report = coordinator.reconcile(records)
        except EngineError as e:
            self.stdout.write(self.style.ERROR(f"Import failed: {e.message}"))
            partial = getattr(e, 'report', None)
            if partial:
                self.stdout.write(self.style.WARNING(
                    f"Committed before the failure: {partial['produtos_processados']} products"
                ))
            raise CommandError(json.dumps(e.as_dict(), default=str))

        for product in report.produtos:
            self.stdout.write(f"  ✓ {product.codigo} ({product.status})")
            for variant in product.variantes:
                self.stdout.write(f"      {variant.cor} / {variant.grade}: {variant.status}")

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS(
            f"Products: {report.produtos_novos} created, {report.produtos_atualizados} updated"
        ))
        self.stdout.write(self.style.SUCCESS(
            f"Variants: {report.variantes_novas} created, {report.variantes_existentes} existing"
        ))
        for label, names in (
            ('Categories', report.categorias_criadas),
            ('Types', report.tipos_criados),
            ('Colors', report.cores_criadas),
            ('Grades', report.grades_criadas),
        ):
            if names:
                self.stdout.write(f"New {label}: {', '.join(names)}")
