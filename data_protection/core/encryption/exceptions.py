"""
Custom exceptions for the data protection framework.
"""

from enum import Enum


class ErrorKind(Enum):
    """The closed set of failure kinds a protect/unprotect call can produce."""

    CONFIG = 'config'
    DECODE = 'decode'
    DECRYPTION = 'decryption'


class DataProtectionError(Exception):
    """Base exception for data protection errors."""

    kind: ErrorKind = None


class ConfigurationError(DataProtectionError):
    """Raised when the secret or the iteration count is unusable."""

    kind = ErrorKind.CONFIG


class DecodeError(DataProtectionError):
    """Raised when a stored value is not a well-formed envelope."""

    kind = ErrorKind.DECODE


class DecryptionError(DataProtectionError):
    """
    Raised when an envelope does not decrypt.

    A wrong key, a wrong IV source and corrupted data all end up here; they
    cannot be told apart without authenticated encryption.
    """

    kind = ErrorKind.DECRYPTION
