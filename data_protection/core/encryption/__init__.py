"""
Column-level encryption of text values for Django.

Values are encrypted with AES-256-CBC under a key derived from a configured
secret. Fields without a search tag get a random IV per write, embedded in
the stored value; fields with a search tag (or any field when a global IV
source is configured) get an IV derived from that string, so equal
plaintexts encrypt to equal ciphertexts and can be queried by equality.
"""

from .backends import (
    DataProtectionBackend,
    ProtectionResult,
    get_protection_backend,
    protect,
    reset_protection_backend,
    try_protect,
    try_unprotect,
    unprotect,
)
from .config import DataProtectionConfiguration
from .exceptions import (
    ConfigurationError,
    DataProtectionError,
    DecodeError,
    DecryptionError,
    ErrorKind,
)
from .iv import DeterministicIV, RandomIV, resolve_iv_mode
from .keys import derive
from .schema import FieldProtection, ProtectedValueConverter, ProtectionSchema

__all__ = [
    # Engine
    'protect',
    'unprotect',
    'try_protect',
    'try_unprotect',
    'ProtectionResult',
    'DataProtectionBackend',
    'get_protection_backend',
    'reset_protection_backend',

    # Configuration
    'DataProtectionConfiguration',

    # Key and IV derivation
    'derive',
    'resolve_iv_mode',
    'DeterministicIV',
    'RandomIV',

    # Field registry
    'FieldProtection',
    'ProtectionSchema',
    'ProtectedValueConverter',

    # Exceptions
    'ErrorKind',
    'DataProtectionError',
    'ConfigurationError',
    'DecodeError',
    'DecryptionError',
]
