"""
Django model fields that protect their values at rest.
"""

import math
from typing import Optional

from django.core import validators
from django.db import models

from .backends import get_protection_backend
from .iv import BLOCK_SIZE
from .schema import FieldProtection, ProtectionSchema, field_id

# Lookups that still work on deterministic ciphertext.
EQUALITY_LOOKUPS = ('exact', 'in')

# Worst case number of UTF-8 bytes per character.
_MAX_CHAR_BYTES = 4


def protected_length(max_length: int) -> int:
    """
    Column length needed to store ``max_length`` characters protected.

    Assumes the random IV layout, which is the longer of the two.
    """
    padded = (max_length * _MAX_CHAR_BYTES // BLOCK_SIZE + 1) * BLOCK_SIZE
    return 4 * math.ceil((BLOCK_SIZE + padded) / 3)


def schema_for_model(model) -> ProtectionSchema:
    """Get the protection schema registered by ``model``'s protected fields."""
    return getattr(model, '_protection_schema', None) or ProtectionSchema()


class ProtectedFieldMixin:
    """
    Base mixin for protected text fields.

    Values are encrypted in ``get_prep_value`` and decrypted in
    ``from_db_value``, using the backend configured by the
    ``DATA_PROTECTION`` setting.
    """

    def __init__(self, *args, searchable: Optional[str] = None, **kwargs):
        """
        Initialize protected field.

        Args:
            searchable: Search tag. Values of the field are encrypted with an
                IV derived from this string instead of a random one, so the
                field can be queried with ``exact`` and ``in``. Changing the
                tag makes existing values unreadable.
        """
        self.searchable = searchable or None
        super().__init__(*args, **kwargs)

    @property
    def protection(self) -> FieldProtection:
        return FieldProtection(search_tag=self.searchable)

    @property
    def is_searchable(self) -> bool:
        """Whether stored values are deterministic under the current settings."""
        return get_protection_backend().is_deterministic(self.searchable)

    def contribute_to_class(self, cls, name, **kwargs):
        """
        Register this field in the model's protection schema.
        """
        super().contribute_to_class(cls, name, **kwargs)

        identifier = field_id(cls._meta.app_label, cls.__name__, name)
        schema = cls.__dict__.get('_protection_schema') or ProtectionSchema(
            schema_for_model(cls).as_dict()
        )
        cls._protection_schema = schema.with_field(identifier, self.protection)

    def get_prep_value(self, value):
        """
        Encrypt value before saving to database.
        """
        value = super().get_prep_value(value)
        if value is None:
            return value

        return get_protection_backend().protect(value, self.searchable)

    def from_db_value(self, value, expression, connection):
        """
        Decrypt value when loading from database.
        """
        if value is None:
            return value

        return get_protection_backend().unprotect(value, self.searchable)

    def get_lookup(self, lookup_name):
        if lookup_name == 'isnull':
            return super().get_lookup(lookup_name)

        if lookup_name in EQUALITY_LOOKUPS and self.is_searchable:
            return super().get_lookup(lookup_name)

        # Django reports unsupported lookups as FieldError.
        return None

    def deconstruct(self):
        name, path, args, kwargs = super().deconstruct()
        if self.searchable:
            kwargs['searchable'] = self.searchable
        return name, path, args, kwargs


class _WidenedLengthMixin:
    """
    Stores the declared ``max_length`` and widens the column to fit the
    encrypted envelope; validation and forms use the declared length.
    """

    default_max_length = None

    def __init__(self, *args, **kwargs):
        if self.default_max_length is not None:
            kwargs.setdefault('max_length', self.default_max_length)

        self.declared_max_length = kwargs.get('max_length')
        if self.declared_max_length is not None:
            kwargs['max_length'] = protected_length(self.declared_max_length)

        super().__init__(*args, **kwargs)

        if self.declared_max_length is not None:
            self.validators.append(validators.MaxLengthValidator(self.declared_max_length))

    def formfield(self, **kwargs):
        if self.declared_max_length is not None:
            kwargs.setdefault('max_length', self.declared_max_length)
        return super().formfield(**kwargs)

    def deconstruct(self):
        name, path, args, kwargs = super().deconstruct()
        if self.declared_max_length is not None:
            kwargs['max_length'] = self.declared_max_length
        return name, path, args, kwargs


class ProtectedCharField(_WidenedLengthMixin, ProtectedFieldMixin, models.CharField):
    """
    Protected version of CharField.

    ``max_length`` is the number of characters accepted; the column is
    created wide enough for the encrypted form.
    """


class ProtectedTextField(ProtectedFieldMixin, models.TextField):
    """
    Protected version of TextField.
    """


class ProtectedEmailField(_WidenedLengthMixin, ProtectedFieldMixin, models.EmailField):
    """
    Protected version of EmailField.

    Email addresses are usually looked up, so this field is typically
    declared with a ``searchable`` tag.
    """

    default_max_length = 254
