"""
Utility functions for the data protection framework.
"""

import logging
import secrets
from typing import Any, Dict, List, Optional

from .backends import DataProtectionBackend, get_protection_backend
from .config import DataProtectionConfiguration

logger = logging.getLogger(__name__)


def bulk_protect(values: List[Optional[str]], override: Optional[str] = None,
                 backend: Optional[DataProtectionBackend] = None) -> List[Optional[str]]:
    """
    Protect multiple values of the same field.

    Args:
        values: Values to protect; ``None`` entries are kept
        override: The field's search tag
        backend: Backend to use, the settings-based one if omitted

    Returns:
        List of protected values in input order
    """
    if not backend:
        backend = get_protection_backend()

    return [backend.protect(value, override) for value in values]


def bulk_unprotect(values: List[Optional[str]], override: Optional[str] = None,
                   backend: Optional[DataProtectionBackend] = None) -> List[Optional[str]]:
    """
    Unprotect multiple values of the same field.

    Stops at the first value that fails; there are no partial results.

    Raises:
        DecodeError: If a value is not a valid envelope
        DecryptionError: If a value does not decrypt
    """
    if not backend:
        backend = get_protection_backend()

    return [backend.unprotect(value, override) for value in values]


def validate_protection_config(settings=None) -> DataProtectionConfiguration:
    """
    Validate that data protection is properly configured.

    Returns:
        The loaded configuration

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config = DataProtectionConfiguration.from_settings(settings)

    if config.iterations < 10000:
        logger.warning(
            f"DATA_PROTECTION Iterations is {config.iterations}; "
            f"values below 10000 weaken the key derivation"
        )

    return config


def generate_secret(num_bytes: int = 32) -> str:
    """
    Generate a new random DatabaseKey.

    Returns:
        URL-safe text with ``num_bytes`` bytes of entropy
    """
    return secrets.token_urlsafe(num_bytes)


def audit_protection_usage() -> Dict[str, Any]:
    """
    Audit which models and fields are protected.

    Returns:
        Dict with protection usage statistics
    """
    from django.apps import apps

    from .fields import schema_for_model

    stats = {
        'total_models': 0,
        'protected_models': 0,
        'protected_fields': 0,
        'searchable_fields': 0,
        'models': []
    }

    for model in apps.get_models():
        stats['total_models'] += 1

        schema = schema_for_model(model)
        prefix = f"{model._meta.app_label}.{model.__name__}."
        fields = [key for key in schema.protected_fields() if key.startswith(prefix)]
        if not fields:
            continue

        stats['protected_models'] += 1
        model_info = {
            'app_label': model._meta.app_label,
            'model_name': model.__name__,
            'protected_fields': []
        }

        for key in fields:
            protection = schema.get(key)
            stats['protected_fields'] += 1
            if protection.searchable:
                stats['searchable_fields'] += 1

            model_info['protected_fields'].append({
                'name': key[len(prefix):],
                'searchable': protection.searchable,
            })

        stats['models'].append(model_info)

    return stats
