"""
Key and IV derivation from secret strings.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import validate_iterations
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Fixed, non-secret PBKDF2 salts separating key derivation from IV derivation.
# Stored data depends on these exact bytes.
KEY_LABEL = b'DatabaseKey'
IV_LABEL = b'iv'

KEY_SIZE = 32  # AES-256


def derive(secret: str, label: bytes, iterations: int, length: int) -> bytes:
    """
    Derive ``length`` bytes from ``secret`` with PBKDF2-HMAC-SHA512.

    The result depends only on the arguments, which is what makes derived
    IVs reproducible on read.

    Args:
        secret: The string to derive from, encoded as UTF-8
        label: Domain separation label used as the PBKDF2 salt
        iterations: Number of PBKDF2 rounds
        length: Number of bytes to produce

    Returns:
        The derived bytes

    Raises:
        ConfigurationError: If ``iterations`` is not a positive integer
    """
    validate_iterations(iterations)
    if not isinstance(secret, str):
        raise ConfigurationError(f"Cannot derive from {type(secret).__name__}")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=length,
        salt=label,
        iterations=iterations,
        backend=default_backend()
    )
    return kdf.derive(secret.encode('utf-8'))


def wipe(buffer: bytearray) -> None:
    """Overwrite a mutable buffer with zeros in place."""
    buffer[:] = bytes(len(buffer))


@contextmanager
def scoped_material(secret: str, label: bytes, iterations: int,
                    length: int) -> Iterator[bytearray]:
    """
    Derive material into a buffer that is zeroed when the block exits.

    The buffer is wiped on every exit path, including failed decryption.
    Python may still hold transient copies; this only bounds the lifetime of
    the copy the caller works with.
    """
    buffer = bytearray(derive(secret, label, iterations, length))
    try:
        yield buffer
    finally:
        wipe(buffer)


def scoped_key(secret: str, iterations: int):
    """Derive the AES-256 key for ``secret`` into a scoped buffer."""
    return scoped_material(secret, KEY_LABEL, iterations, KEY_SIZE)
