"""
Solana address utilities: Base58 codec, program-derived addresses (PDAs),
associated token accounts and the pool program's well-known accounts.

A PDA is sha256(seeds || bump || program_id || "ProgramDerivedAddress") for
the highest bump in [255, 0] whose digest is NOT a valid Ed25519 point, so no
private key can ever sign for it.

Reference: https://solana.com/docs/core/pda
"""

from __future__ import annotations

import hashlib

from privacy_cash.core.constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)

# Base58 alphabet (same as Bitcoin)
_ALPHABET = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_ALPHABET_MAP = {char: i for i, char in enumerate(_ALPHABET)}

# Ed25519 field prime and twisted Edwards constant d = -121665/121666
_ED25519_P = 2**255 - 19
_ED25519_D = (-121665 * pow(121666, -1, _ED25519_P)) % _ED25519_P

_PDA_MARKER = b"ProgramDerivedAddress"
MAX_SEED_LENGTH = 32
MAX_SEEDS = 16


class AddressError(ValueError):
    """Raised for malformed Solana addresses or PDA seeds."""
    pass


def decode_address(address: str) -> bytes:
    """
    Decode a Base58 Solana address into its 32 raw bytes.

    Raises:
        AddressError: if the string is not Base58 or not 32 bytes long
    """
    try:
        raw = base58_decode(address)
    except (KeyError, UnicodeEncodeError) as err:
        raise AddressError(f"Invalid Base58 encoding: {address!r}") from err
    if len(raw) != 32:
        raise AddressError(f"Expected 32-byte address, got {len(raw)} bytes: {address!r}")
    return raw


def encode_address(raw: bytes) -> str:
    if len(raw) != 32:
        raise AddressError(f"Expected 32 bytes, got {len(raw)}")
    return base58_encode(raw)


def is_valid_address(address: str) -> bool:
    """Check if a string is a valid 32-byte Base58 address without raising."""
    try:
        decode_address(address)
        return True
    except AddressError:
        return False


def is_on_curve(raw: bytes) -> bool:
    """
    Return True if `raw` decompresses to a point on the Ed25519 curve.

    The encoding is y (255 bits, little-endian) plus the sign bit of x. The
    point exists iff x² = (y² - 1) / (d·y² + 1) has a square root mod p.
    """
    if len(raw) != 32:
        return False
    y = (int.from_bytes(raw, "little") & ((1 << 255) - 1)) % _ED25519_P
    y_sq = y * y % _ED25519_P
    u = (y_sq - 1) % _ED25519_P
    v = (_ED25519_D * y_sq + 1) % _ED25519_P
    x_sq = u * pow(v, -1, _ED25519_P) % _ED25519_P
    if x_sq == 0:
        return True
    # Euler criterion
    return pow(x_sq, (_ED25519_P - 1) // 2, _ED25519_P) == 1


def create_program_address(seeds: list[bytes], program_id: str) -> str:
    """
    Derive the address for an explicit seed list (bump included).

    Raises:
        AddressError: if the seeds are too long or the result lands on the curve
    """
    if len(seeds) > MAX_SEEDS:
        raise AddressError(f"Too many seeds: {len(seeds)} > {MAX_SEEDS}")
    hasher = hashlib.sha256()
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise AddressError(f"Seed exceeds {MAX_SEED_LENGTH} bytes: {len(seed)}")
        hasher.update(seed)
    hasher.update(decode_address(program_id))
    hasher.update(_PDA_MARKER)
    digest = hasher.digest()
    if is_on_curve(digest):
        raise AddressError("Derived address lies on the Ed25519 curve")
    return encode_address(digest)


def find_program_address(seeds: list[bytes], program_id: str) -> tuple[str, int]:
    """
    Find the canonical PDA for `seeds` under `program_id`.

    Returns:
        (address, bump) for the highest bump producing an off-curve address.
    """
    for bump in range(255, -1, -1):
        try:
            return create_program_address([*seeds, bytes([bump])], program_id), bump
        except AddressError:
            continue
    raise AddressError("Unable to find a viable program address bump seed")


def get_associated_token_address(owner: str, mint: str) -> str:
    """Return the associated token account of `owner` for `mint`."""
    address, _ = find_program_address(
        [decode_address(owner), decode_address(TOKEN_PROGRAM_ID), decode_address(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )
    return address


# ------------------------------------------------------------------
# Pool program accounts
# ------------------------------------------------------------------


def get_program_accounts(program_id: str = PROGRAM_ID) -> tuple[str, str, str]:
    """Return (tree_account, tree_token_account, global_config_account)."""
    tree_account, _ = find_program_address([b"merkle_tree"], program_id)
    tree_token_account, _ = find_program_address([b"tree_token"], program_id)
    global_config_account, _ = find_program_address([b"global_config"], program_id)
    return tree_account, tree_token_account, global_config_account


def get_spl_tree_account(mint: str, program_id: str = PROGRAM_ID) -> str:
    tree_account, _ = find_program_address([b"merkle_tree", decode_address(mint)], program_id)
    return tree_account


def nullifier_to_bytes(nullifier: int) -> bytes:
    """On-chain nullifier encoding: 32 bytes big-endian."""
    return nullifier.to_bytes(32, "big")


def find_nullifier_pdas(nullifiers: list[int], program_id: str = PROGRAM_ID) -> tuple[str, str]:
    """PDAs the program creates when the two input nullifiers are spent."""
    nullifier0_pda, _ = find_program_address(
        [b"nullifier0", nullifier_to_bytes(nullifiers[0])], program_id
    )
    nullifier1_pda, _ = find_program_address(
        [b"nullifier1", nullifier_to_bytes(nullifiers[1])], program_id
    )
    return nullifier0_pda, nullifier1_pda


def find_cross_check_nullifier_pdas(nullifiers: list[int], program_id: str = PROGRAM_ID) -> tuple[str, str]:
    """Cross-check PDAs: the same seed prefixes with the nullifiers swapped."""
    nullifier2_pda, _ = find_program_address(
        [b"nullifier0", nullifier_to_bytes(nullifiers[1])], program_id
    )
    nullifier3_pda, _ = find_program_address(
        [b"nullifier1", nullifier_to_bytes(nullifiers[0])], program_id
    )
    return nullifier2_pda, nullifier3_pda


def spent_marker_addresses(nullifier: int, program_id: str = PROGRAM_ID) -> tuple[str, str]:
    """
    Both accounts whose existence marks a single nullifier as spent.

    A nullifier may have been consumed in either input slot of a transaction,
    so it is looked up under both seed prefixes.
    """
    raw = nullifier_to_bytes(nullifier)
    first, _ = find_program_address([b"nullifier0", raw], program_id)
    second, _ = find_program_address([b"nullifier1", raw], program_id)
    return first, second


# ------------------------------------------------------------------
# Base58
# ------------------------------------------------------------------


def base58_decode(s: str) -> bytes:
    """Decode a Base58-encoded string to bytes."""
    n = 0
    for char in s.encode("ascii"):
        n = n * 58 + _ALPHABET_MAP[char]

    if n == 0:
        result = b""
    else:
        byte_length = (n.bit_length() + 7) // 8
        result = n.to_bytes(byte_length, "big")

    # Each leading '1' in Base58 is a 0x00 byte
    pad_size = 0
    for char in s.encode("ascii"):
        if char == _ALPHABET[0]:
            pad_size += 1
        else:
            break

    return b"\x00" * pad_size + result


def base58_encode(data: bytes) -> str:
    """Encode bytes to a Base58 string."""
    n = int.from_bytes(data, "big")
    result = []
    while n > 0:
        n, remainder = divmod(n, 58)
        result.append(_ALPHABET[remainder:remainder + 1])
    result.reverse()

    pad_size = 0
    for byte in data:
        if byte == 0:
            pad_size += 1
        else:
            break

    return (b"1" * pad_size + b"".join(result)).decode("ascii")
