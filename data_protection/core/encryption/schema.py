"""
Explicit registry of protected fields.

The registry maps a field identifier (``"<app_label>.<Model>.<field>"`` for
Django models, any stable string otherwise) to whether the field is
protected and which search tag it uses. It is built once when models are
declared and read-only afterwards.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from .backends import DataProtectionBackend
from .config import DataProtectionConfiguration


@dataclass(frozen=True)
class FieldProtection:
    """
    Protection settings of one field.

    Attributes:
        protected: Whether values of the field are encrypted
        search_tag: String the field's IV is derived from. Setting it makes
            the field's ciphertext deterministic, so it can be matched by
            equality at the cost of revealing repeated values. It must not
            change once data has been written.
    """

    protected: bool = True
    search_tag: Optional[str] = None

    @property
    def searchable(self) -> bool:
        return self.protected and bool(self.search_tag)


UNPROTECTED = FieldProtection(protected=False)


def field_id(app_label: str, model_name: str, field_name: str) -> str:
    """Build the registry identifier of a model field."""
    return f"{app_label}.{model_name}.{field_name}"


def _coerce(value: Any) -> FieldProtection:
    if isinstance(value, FieldProtection):
        return value
    if isinstance(value, bool):
        return FieldProtection(protected=value)
    if isinstance(value, str):
        return FieldProtection(search_tag=value or None)
    if isinstance(value, tuple) and len(value) == 2:
        protected, search_tag = value
        return FieldProtection(protected=bool(protected), search_tag=search_tag or None)

    raise TypeError(
        f"Cannot interpret {value!r} as field protection; expected "
        f"FieldProtection, bool, str or (bool, str) tuple"
    )


class ProtectionSchema:
    """Read-only mapping from field identifier to :class:`FieldProtection`."""

    def __init__(self, fields: Optional[Mapping[str, FieldProtection]] = None):
        self._fields = MappingProxyType(dict(fields or {}))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Union[FieldProtection, bool, str, tuple]]) -> 'ProtectionSchema':
        """
        Build a schema from a plain mapping.

        Values may be a :class:`FieldProtection`, a bool (protected or not),
        a string (protected with that search tag) or a
        ``(protected, search_tag)`` tuple.
        """
        return cls({key: _coerce(value) for key, value in mapping.items()})

    def get(self, identifier: str) -> FieldProtection:
        """Get the protection of a field; unknown fields are unprotected."""
        return self._fields.get(identifier, UNPROTECTED)

    def protected_fields(self) -> List[str]:
        return [key for key, value in self._fields.items() if value.protected]

    def searchable_fields(self) -> List[str]:
        return [key for key, value in self._fields.items() if value.searchable]

    def with_field(self, identifier: str, protection: FieldProtection) -> 'ProtectionSchema':
        """Return a new schema with ``identifier`` added or replaced."""
        fields = dict(self._fields)
        fields[identifier] = protection
        return ProtectionSchema(fields)

    def as_dict(self) -> Dict[str, FieldProtection]:
        return dict(self._fields)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self):
        return f"<ProtectionSchema fields={len(self._fields)} protected={len(self.protected_fields())}>"


class ProtectedValueConverter:
    """
    Column conversion for persistence layers other than the Django ORM.

    Applies protect on the way to storage and unprotect on the way back for
    every field the schema marks as protected, using the field's search tag
    in both directions.
    """

    def __init__(self, backend: Union[DataProtectionBackend, DataProtectionConfiguration],
                 schema: ProtectionSchema):
        if isinstance(backend, DataProtectionConfiguration):
            backend = DataProtectionBackend(backend)
        self.backend = backend
        self.schema = schema

    def _protection(self, identifier: str, value: Any) -> FieldProtection:
        protection = self.schema.get(identifier)
        if protection.protected and value is not None and not isinstance(value, str):
            raise TypeError(
                f"Protected field {identifier} only supports text, got {type(value).__name__}"
            )
        return protection

    def to_storage(self, identifier: str, value: Any) -> Any:
        protection = self._protection(identifier, value)
        if not protection.protected:
            return value
        return self.backend.protect(value, protection.search_tag)

    def from_storage(self, identifier: str, value: Any) -> Any:
        protection = self._protection(identifier, value)
        if not protection.protected:
            return value
        return self.backend.unprotect(value, protection.search_tag)

    def row_to_storage(self, prefix: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Convert every column of ``row``; identifiers are ``prefix.column``."""
        return {name: self.to_storage(f"{prefix}.{name}", value) for name, value in row.items()}

    def row_from_storage(self, prefix: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        return {name: self.from_storage(f"{prefix}.{name}", value) for name, value in row.items()}
