"""
AES-256-CBC protection of individual text values.

Stored layout, base64 encoded:

    random IV:   iv (16 bytes) || ciphertext
    derived IV:  ciphertext

The format carries no version byte and no authentication tag. A value
decrypted with the wrong key or IV source normally fails on padding or UTF-8
decoding, but CBC without a MAC cannot guarantee that it does.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .config import DataProtectionConfiguration
from .exceptions import (
    DataProtectionError,
    DecodeError,
    DecryptionError,
    ErrorKind,
)
from .iv import BLOCK_SIZE, resolve_iv_mode
from .keys import scoped_key

logger = logging.getLogger(__name__)


def aes_cbc_encrypt(key: bytes, iv: bytes, plaintext: bytes) -> bytes:
    """Encrypt ``plaintext`` with AES-CBC and PKCS#7 padding."""
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()

    cipher = Cipher(algorithms.AES(key), modes.CBC(iv), backend=default_backend())
    encryptor = cipher.encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def aes_cbc_decrypt(key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
    """
    Decrypt AES-CBC ``ciphertext`` and strip the PKCS#7 padding.

    Raises:
        DecodeError: If the ciphertext is empty
        DecryptionError: If the ciphertext is not block aligned or the
            padding is invalid
    """
    if not ciphertext:
        raise DecodeError("Ciphertext is empty")
    if len(ciphertext) % BLOCK_SIZE:
        raise DecryptionError(
            f"Ciphertext of {len(ciphertext)} bytes is not a multiple of the "
            f"{BLOCK_SIZE} byte block size"
        )

    cipher = Cipher(algorithms.AES(key), modes.CBC(iv), backend=default_backend())
    decryptor = cipher.decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    try:
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError:
        raise DecryptionError("Invalid padding after decryption")


def protect(config: DataProtectionConfiguration, value: Optional[str],
            override: Optional[str] = None) -> Optional[str]:
    """
    Encrypt a text value for storage.

    Args:
        config: The data protection configuration
        value: The text to encrypt; ``None`` is returned unchanged
        override: The field's search tag. A non-empty tag makes the result
            deterministic.

    Returns:
        The base64 encoded envelope, or ``None``

    Raises:
        ConfigurationError: If the configuration cannot derive a key
        TypeError: If ``value`` is not a string
    """
    if value is None:
        return None

    if not isinstance(value, str):
        raise TypeError(f"Only text can be protected, got {type(value).__name__}")

    mode = resolve_iv_mode(override, config.initialisation_vector)

    with scoped_key(config.database_key, config.iterations) as key, \
            mode.for_encryption(config.iterations) as (iv, prefix):
        envelope = prefix + aes_cbc_encrypt(key, iv, value.encode('utf-8'))

    return base64.b64encode(envelope).decode('ascii')


def unprotect(config: DataProtectionConfiguration, value: Optional[str],
              override: Optional[str] = None) -> Optional[str]:
    """
    Decrypt a value produced by :func:`protect`.

    ``override`` must be the search tag used when the value was written.

    The stored format carries no authentication tag, so reading with the
    wrong IV mode is not always detected. A deterministic value of one block
    or more read without its tag has its first block taken as the IV and may
    decrypt to a shortened string instead of raising. A value written with a
    random IV and read with a tag fails, but only through padding or UTF-8
    checks.

    Args:
        config: The data protection configuration
        value: The base64 encoded envelope; ``None`` is returned unchanged
        override: The field's search tag

    Returns:
        The decrypted text, or ``None``

    Raises:
        DecodeError: If ``value`` is not valid base64 or the envelope is
            truncated
        DecryptionError: If the envelope does not decrypt under this
            configuration and tag
        TypeError: If ``value`` is not a string
    """
    if value is None:
        return None

    if not isinstance(value, str):
        raise TypeError(f"Only text can be unprotected, got {type(value).__name__}")

    try:
        envelope = base64.b64decode(value, validate=True)
    except ValueError as e:
        logger.warning(f"Protected value is not valid base64: {str(e)}")
        raise DecodeError(f"Invalid base64: {str(e)}")

    mode = resolve_iv_mode(override, config.initialisation_vector)

    try:
        with mode.split(envelope, config.iterations) as (iv, ciphertext), \
                scoped_key(config.database_key, config.iterations) as key:
            plaintext = aes_cbc_decrypt(key, iv, ciphertext)
        return plaintext.decode('utf-8')

    except UnicodeDecodeError:
        logger.warning("Decrypted value is not valid UTF-8")
        raise DecryptionError("Decrypted value is not valid UTF-8")

    except (DecodeError, DecryptionError) as e:
        logger.warning(f"Failed to unprotect value: {str(e)}")
        raise


@dataclass(frozen=True)
class ProtectionResult:
    """Outcome of a protect/unprotect call as a value instead of an exception."""

    value: Optional[str] = None
    error: Optional[DataProtectionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> Optional[str]:
        """Return the value, or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.value


def try_protect(config: DataProtectionConfiguration, value: Optional[str],
                override: Optional[str] = None) -> ProtectionResult:
    try:
        return ProtectionResult(value=protect(config, value, override))
    except DataProtectionError as e:
        return ProtectionResult(error=e)


def try_unprotect(config: DataProtectionConfiguration, value: Optional[str],
                  override: Optional[str] = None) -> ProtectionResult:
    try:
        return ProtectionResult(value=unprotect(config, value, override))
    except DataProtectionError as e:
        return ProtectionResult(error=e)


class DataProtectionBackend:
    """
    Protect/unprotect bound to one configuration.

    Holds nothing but the configuration; keys are derived per call, so one
    instance can be shared between threads.

    Values must be read with the search tag they were written with. Because
    the format is unauthenticated, a deterministic value of a block or more
    read without its tag can come back as shortened text instead of an
    error; see :func:`unprotect`.
    """

    def __init__(self, config: DataProtectionConfiguration):
        self.config = config

    def protect(self, value: Optional[str], override: Optional[str] = None) -> Optional[str]:
        return protect(self.config, value, override)

    def unprotect(self, value: Optional[str], override: Optional[str] = None) -> Optional[str]:
        return unprotect(self.config, value, override)

    def try_protect(self, value: Optional[str], override: Optional[str] = None) -> ProtectionResult:
        return try_protect(self.config, value, override)

    def try_unprotect(self, value: Optional[str], override: Optional[str] = None) -> ProtectionResult:
        return try_unprotect(self.config, value, override)

    def is_deterministic(self, override: Optional[str] = None) -> bool:
        """Whether values written with ``override`` can be matched by equality."""
        return not resolve_iv_mode(override, self.config.initialisation_vector).embedded


# Backend built from Django settings, used by the model fields
_backend_instance = None


def get_protection_backend() -> DataProtectionBackend:
    """
    Get the backend configured by the ``DATA_PROTECTION`` setting.

    Raises:
        ConfigurationError: If the setting is missing or invalid
    """
    global _backend_instance

    if _backend_instance is None:
        _backend_instance = DataProtectionBackend(
            DataProtectionConfiguration.from_settings()
        )

    return _backend_instance


def reset_protection_backend():
    """
    Drop the settings-based backend so the next access reloads settings.
    """
    global _backend_instance
    _backend_instance = None
