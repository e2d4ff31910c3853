"""
Field hash used for public keys, commitments, nullifiers and Merkle nodes.

The proving circuit hashes with its own algebraic function; client-side values
only verify if this module computes the very same thing. `KeccakFieldHasher`
is a placeholder that is NOT circuit-compatible: it keeps commitments
deterministic and collision resistant so the rest of the client can run, and
the real circuit hash can be plugged in through the `FieldHasher` protocol
without touching any caller.
"""

from __future__ import annotations

from typing import Iterable, Protocol, Union

from Crypto.Hash import keccak

from privacy_cash.core.constants import FIELD_SIZE
from privacy_cash.core.errors import InvalidKeypair

FieldInput = Union[int, str]

_U256 = 1 << 256


class FieldHasher(Protocol):
    def hash(self, inputs: Iterable[FieldInput]) -> int: ...


def to_field_int(value: FieldInput) -> int:
    """Coerce an int or decimal string to a non-negative integer."""
    if isinstance(value, bool):
        raise InvalidKeypair(f"Not a field element: {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(value, 10)
    except (TypeError, ValueError) as e:
        raise InvalidKeypair(f"Not a decimal field element: {value!r}") from e


def keccak256(data: bytes) -> bytes:
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


class KeccakFieldHasher:
    """
    Keccak-256 over each input as 32 little-endian bytes, digest read
    big-endian and reduced into the field.
    """

    def hash(self, inputs: Iterable[FieldInput]) -> int:
        k = keccak.new(digest_bits=256)
        for value in inputs:
            k.update((to_field_int(value) % _U256).to_bytes(32, "little"))
        return int.from_bytes(k.digest(), "big") % FIELD_SIZE


DEFAULT_HASHER: FieldHasher = KeccakFieldHasher()


def field_hash(inputs: Iterable[FieldInput], hasher: FieldHasher | None = None) -> int:
    return (hasher or DEFAULT_HASHER).hash(inputs)
