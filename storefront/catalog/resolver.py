"""
Idempotent get-or-create for the named lookup entities of the catalog.

The database unique constraint on ``name`` is the source of truth: an insert
that loses a race against another writer re-reads the winner instead of
failing the whole import.
"""
import logging
import re

from django.db import IntegrityError, transaction

from storefront.core.exceptions import ConstraintRace, RecordValidationError
from .models import Category, ProductType, Gender, Color, Size

logger = logging.getLogger(__name__)

RESOLVABLE_MODELS = {
    'category': Category,
    'type': ProductType,
    'gender': Gender,
    'color': Color,
    'size': Size,
}

DEFAULT_DESCRIPTIONS = {
    'category': 'Categoria criada via importação',
    'type': 'Tipo criado via importação',
    'gender': 'Gênero criado via importação',
    'color': 'Cor criada via importação',
    'size': 'Tamanho criado via importação',
}

# Non-numeric sizes (PP, P, M...) sort after every numeric label
NON_NUMERIC_SIZE_ORDER = 1000


def size_display_order(label):
    match = re.match(r'^\d+', label)
    if match:
        return int(match.group(0))
    return NON_NUMERIC_SIZE_ORDER


class EntityResolver:
    """Resolve a lookup entity by exact name, creating it when missing."""

    def __init__(self, using='default'):
        self.using = using

    def _model(self, kind):
        try:
            return RESOLVABLE_MODELS[kind]
        except KeyError:
            raise ValueError(f"Unknown entity kind: {kind}")

    def _lookup(self, model, name):
        return model.objects.db_manager(self.using).filter(name=name).first()

    def _defaults(self, kind, name):
        defaults = {'description': DEFAULT_DESCRIPTIONS[kind]}
        if kind == 'size':
            defaults['display_order'] = size_display_order(name)
        return defaults

    def resolve_or_create(self, kind, name):
        """
        Return ``(instance, created)`` for ``kind`` named ``name``.

        Raises RecordValidationError for a blank name and ConstraintRace when
        an insert collides with a concurrent writer and the second lookup
        still finds nothing.
        """
        model = self._model(kind)
        name = (name or '').strip()
        if not name:
            raise RecordValidationError(f"{kind} name must not be empty", field=kind)

        instance = self._lookup(model, name)
        if instance is not None:
            return instance, False

        try:
            with transaction.atomic(using=self.using):
                instance = model.objects.db_manager(self.using).create(name=name, **self._defaults(kind, name))
        except IntegrityError:
            logger.warning(f"Concurrent insert detected for {kind} '{name}', retrying lookup")
            instance = self._lookup(model, name)
            if instance is None:
                raise ConstraintRace(kind, name)
            return instance, False

        logger.info(f"Created {kind} '{name}' (id={instance.pk})")
        return instance, True

    def resolve(self, kind, name):
        """Same as resolve_or_create but returns only the instance."""
        return self.resolve_or_create(kind, name)[0]
