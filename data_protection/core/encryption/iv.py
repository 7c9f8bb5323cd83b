"""
Initialisation vector resolution.

Every protect/unprotect call picks one of two IV modes with a fixed
precedence: a per-field search tag wins over the globally configured IV
source, which wins over a random IV.

Both modes hand out the IV through a context manager. A derived IV is held
in a buffer that is zeroed when the block exits, like the key.
"""

import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple, Union

from .exceptions import DecodeError
from .keys import IV_LABEL, scoped_material

BLOCK_SIZE = 16  # AES block size and CBC IV length, in bytes


@dataclass(frozen=True)
class DeterministicIV:
    """
    IV derived from a string, so it can be rebuilt on read.

    Nothing is embedded in the stored value. Equal plaintexts under the same
    source produce equal ciphertexts, which is what makes equality search
    possible.
    """

    source: str = field(repr=False)

    embedded = False

    def derive(self, iterations: int):
        """Derive the IV into a buffer that is wiped when the block exits."""
        return scoped_material(self.source, IV_LABEL, iterations, BLOCK_SIZE)

    @contextmanager
    def for_encryption(self, iterations: int) -> Iterator[Tuple[bytearray, bytes]]:
        """Yield ``(iv, envelope_prefix)``; the prefix is empty."""
        with self.derive(iterations) as iv:
            yield iv, b''

    @contextmanager
    def split(self, envelope: bytes, iterations: int) -> Iterator[Tuple[bytearray, bytes]]:
        """Yield ``(iv, ciphertext)``; the whole envelope is ciphertext."""
        with self.derive(iterations) as iv:
            yield iv, envelope


@dataclass(frozen=True)
class RandomIV:
    """Fresh random IV per write, stored in front of the ciphertext."""

    embedded = True

    @contextmanager
    def for_encryption(self, iterations: int) -> Iterator[Tuple[bytes, bytes]]:
        iv = os.urandom(BLOCK_SIZE)
        yield iv, iv

    @contextmanager
    def split(self, envelope: bytes, iterations: int) -> Iterator[Tuple[bytes, bytes]]:
        """
        Yield ``(iv, ciphertext)`` read from the envelope.

        Raises:
            DecodeError: If the envelope cannot hold an IV and one block
        """
        if len(envelope) < 2 * BLOCK_SIZE:
            raise DecodeError(
                f"Envelope of {len(envelope)} bytes is too short to hold an IV "
                f"and one block"
            )
        yield envelope[:BLOCK_SIZE], envelope[BLOCK_SIZE:]


IVMode = Union[DeterministicIV, RandomIV]


def resolve_iv_mode(override: Optional[str], global_iv: Optional[str]) -> IVMode:
    """
    Decide how the IV for one value is obtained.

    Args:
        override: The field's search tag, if any
        global_iv: The configured global IV source, if any

    Returns:
        ``DeterministicIV`` for the first non-empty of ``override`` and
        ``global_iv``, otherwise ``RandomIV``
    """
    if override:
        return DeterministicIV(override)

    if global_iv:
        return DeterministicIV(global_iv)

    return RandomIV()
