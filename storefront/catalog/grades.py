"""
Grade synthesis.

A grade name that has never been seen gets a size range chosen from an
ordered table of profiles (substring match on the name, first match wins).
The table ships in settings and can be replaced at runtime through the
``Setting`` rows with the same keys.
"""
import json
import logging
from dataclasses import dataclass, field

from django.conf import settings
from django.db import IntegrityError, transaction

from storefront.core.exceptions import ConstraintRace, RecordValidationError
from storefront.core.models import Setting
from .models import Grade, GradeTemplate
from .resolver import EntityResolver

logger = logging.getLogger(__name__)

PROFILES_SETTING_KEY = 'GRADE_SIZE_PROFILES'
DEFAULT_SIZES_SETTING_KEY = 'GRADE_DEFAULT_SIZES'
DEFAULT_PROFILE_NAME = 'default'


@dataclass(frozen=True)
class SizeProfile:
    name: str
    sizes: tuple
    match: tuple = field(default_factory=tuple)

    def matches(self, grade_name):
        lowered = grade_name.lower()
        return any(token.lower() in lowered for token in self.match)

    def as_dict(self):
        return {'name': self.name, 'match': list(self.match), 'sizes': list(self.sizes)}


def clean_size_labels(labels):
    """Stripped, non-blank labels in their first-seen order."""
    return tuple(dict.fromkeys(label for label in (str(s).strip() for s in labels) if label))


def build_profiles(raw_profiles):
    """Turn the configured list of dicts into SizeProfile objects."""
    profiles = []
    for entry in raw_profiles:
        sizes = clean_size_labels(entry['sizes'])
        if not sizes:
            raise ValueError(f"profile {entry['name']} has no sizes")
        profiles.append(SizeProfile(
            name=str(entry['name']),
            match=tuple(str(m) for m in entry.get('match', [])),
            sizes=sizes,
        ))
    return profiles


class GradeSynthesizer:
    """Reuse an existing grade by name or create one with synthesized templates."""

    def __init__(self, using='default', resolver=None, profiles=None, default_sizes=None):
        self.using = using
        self.resolver = resolver or EntityResolver(using=using)
        self._profiles = build_profiles(profiles) if profiles is not None else None
        self._default_sizes = clean_size_labels(default_sizes) if default_sizes is not None else None

    def _setting_override(self, key):
        row = Setting.objects.db_manager(self.using).filter(key=key).first()
        if row is None or not row.value:
            return None
        try:
            return json.loads(row.value)
        except ValueError:
            logger.error(f"Setting {key} is not valid JSON, using the configured default")
            return None

    def get_profiles(self):
        if self._profiles is not None:
            return self._profiles
        raw = self._setting_override(PROFILES_SETTING_KEY)
        if raw is not None:
            try:
                return build_profiles(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Setting {PROFILES_SETTING_KEY} is malformed ({e}), using the configured default")
        return build_profiles(settings.GRADE_SIZE_PROFILES)

    def get_default_profile(self):
        if self._default_sizes is not None:
            sizes = self._default_sizes
        else:
            raw = self._setting_override(DEFAULT_SIZES_SETTING_KEY)
            sizes = clean_size_labels(raw) if isinstance(raw, list) else ()
            if not sizes:
                sizes = clean_size_labels(settings.GRADE_DEFAULT_SIZES)
        return SizeProfile(name=DEFAULT_PROFILE_NAME, sizes=sizes)

    def profile_for(self, name):
        """Size profile a grade called ``name`` would be synthesized with."""
        for profile in self.get_profiles():
            if profile.matches(name):
                return profile
        return self.get_default_profile()

    def _lookup(self, name):
        return Grade.objects.db_manager(self.using).filter(name=name).first()

    def resolve_or_create_grade(self, name):
        """
        Return ``(grade, created)``.

        An existing grade is returned as is; its templates are never
        regenerated. A new grade gets one template per profile size with
        ``required_quantity = 0``.
        """
        name = (name or '').strip()
        if not name:
            raise RecordValidationError("grade name must not be empty", field='grade')

        grade = self._lookup(name)
        if grade is not None:
            return grade, False

        profile = self.profile_for(name)
        try:
            with transaction.atomic(using=self.using):
                grade = Grade.objects.db_manager(self.using).create(
                    name=name,
                    description=f"Grade criada via importação (perfil {profile.name})",
                )
                templates = []
                for label in profile.sizes:
                    size = self.resolver.resolve('size', label)
                    templates.append(GradeTemplate(grade=grade, size=size, required_quantity=0))
                GradeTemplate.objects.db_manager(self.using).bulk_create(templates)
        except IntegrityError:
            logger.warning(f"Concurrent insert detected for grade '{name}', retrying lookup")
            grade = self._lookup(name)
            if grade is None:
                raise ConstraintRace('grade', name)
            return grade, False

        logger.info(f"Synthesized grade '{name}' with profile '{profile.name}' ({len(profile.sizes)} sizes)")
        return grade, True
