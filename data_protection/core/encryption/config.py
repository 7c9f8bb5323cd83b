"""
Data protection (column-level encryption) configuration.

The configuration is created once, when the process or the Django project
starts, and is read-only from then on. Every protect/unprotect call receives
it explicitly.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from decouple import config as env_config, UndefinedValueError

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Name of the Django setting holding the configuration section.
SETTINGS_SECTION = 'DATA_PROTECTION'

DEFAULT_ITERATIONS = 10000

ENV_DATABASE_KEY = 'DATA_PROTECTION_DATABASE_KEY'
ENV_INITIALISATION_VECTOR = 'DATA_PROTECTION_INITIALISATION_VECTOR'
ENV_ITERATIONS = 'DATA_PROTECTION_ITERATIONS'

# Keys of the external configuration surface and their attribute names.
_SURFACE_KEYS = {
    'DatabaseKey': 'database_key',
    'InitialisationVector': 'initialisation_vector',
    'Iterations': 'iterations',
}


def validate_iterations(iterations: Any) -> int:
    """
    Check that ``iterations`` is a usable PBKDF2 round count.

    Raises:
        ConfigurationError: If the value is not an integer of at least 1
    """
    if isinstance(iterations, bool) or not isinstance(iterations, int):
        raise ConfigurationError(
            f"Iterations must be an integer, got {type(iterations).__name__}"
        )
    if iterations < 1:
        raise ConfigurationError(
            f"Iterations must be at least 1, got {iterations}"
        )
    return iterations


@dataclass(frozen=True)
class DataProtectionConfiguration:
    """
    Secret, optional global IV source and KDF rounds for column encryption.

    Once any value has been written under a given ``(database_key,
    initialisation_vector)`` pair, that pair must never change: values
    stored before the change cannot be decrypted afterwards. Switching
    ``initialisation_vector`` between empty and non-empty also changes the
    stored layout, because random IVs are embedded in the data while
    derived ones are not. This cannot be checked at runtime.

    Attributes:
        database_key: The secret passphrase the AES key is derived from
        initialisation_vector: Optional string every non-searchable field
            derives its IV from. If empty, a random IV is generated for each
            value and stored in front of the ciphertext.
        iterations: Number of PBKDF2 rounds for key and IV derivation
    """

    database_key: str = field(repr=False)
    initialisation_vector: Optional[str] = field(default=None, repr=False)
    iterations: int = DEFAULT_ITERATIONS

    def __post_init__(self):
        if not isinstance(self.database_key, str) or not self.database_key:
            raise ConfigurationError("DatabaseKey must be a non-empty string")

        if self.initialisation_vector is not None and not isinstance(
                self.initialisation_vector, str):
            raise ConfigurationError("InitialisationVector must be a string")

        validate_iterations(self.iterations)

    @property
    def uses_random_iv(self) -> bool:
        """Whether fields without a search tag get a random IV per write."""
        return not self.initialisation_vector

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> 'DataProtectionConfiguration':
        """
        Build a configuration from a settings section.

        Accepts the ``DatabaseKey``, ``InitialisationVector`` and
        ``Iterations`` keys as well as the attribute names.

        Raises:
            ConfigurationError: If the section is not a mapping or the
                values are invalid
        """
        if not isinstance(mapping, Mapping):
            raise ConfigurationError(
                f"{SETTINGS_SECTION} must be a mapping, got {type(mapping).__name__}"
            )

        values = {}
        for key, value in mapping.items():
            name = _SURFACE_KEYS.get(key, key)
            if name not in _SURFACE_KEYS.values():
                logger.warning(f"Ignoring unknown data protection setting: {key}")
                continue
            values[name] = value

        iterations = values.get('iterations', DEFAULT_ITERATIONS)
        if isinstance(iterations, str):
            try:
                iterations = int(iterations)
            except ValueError:
                raise ConfigurationError(
                    f"Iterations must be an integer, got {iterations!r}"
                )

        return cls(
            database_key=values.get('database_key'),
            initialisation_vector=values.get('initialisation_vector') or None,
            iterations=iterations,
        )

    @classmethod
    def from_settings(cls, settings=None) -> 'DataProtectionConfiguration':
        """
        Load the configuration from the ``DATA_PROTECTION`` Django setting.

        Args:
            settings: Settings object to read from, ``django.conf.settings``
                if omitted

        Raises:
            ConfigurationError: If the setting is missing or invalid
        """
        if settings is None:
            from django.conf import settings

        section = getattr(settings, SETTINGS_SECTION, None)
        if section is None:
            raise ConfigurationError(f"{SETTINGS_SECTION} not configured")

        return cls.from_mapping(section)

    @classmethod
    def from_env(cls) -> 'DataProtectionConfiguration':
        """
        Load the configuration from environment variables or a ``.env`` file.

        Raises:
            ConfigurationError: If the secret is missing or a value is invalid
        """
        try:
            database_key = env_config(ENV_DATABASE_KEY)
        except UndefinedValueError:
            raise ConfigurationError(f"{ENV_DATABASE_KEY} not configured")

        try:
            iterations = env_config(ENV_ITERATIONS, default=DEFAULT_ITERATIONS, cast=int)
        except ValueError as e:
            raise ConfigurationError(f"{ENV_ITERATIONS} must be an integer: {str(e)}")

        return cls(
            database_key=database_key,
            initialisation_vector=env_config(ENV_INITIALISATION_VECTOR, default='') or None,
            iterations=iterations,
        )
