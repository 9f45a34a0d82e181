"""
Program Derived Addresses (PDA)

find_program_address: for bump = 255..0
    digest = sha256(seed_1 || ... || seed_n || bump || program_id || "ProgramDerivedAddress")
and the first digest that does NOT decompress to an ed25519 point is the address.

Seeds used by Raydium CLMM:
- tick array:        ["tick_array", pool_id, start_index as i32 big-endian]
- bitmap extension:  ["pool_tick_array_bitmap_extension", pool_id]

The curve check is injected as a predicate. The default is the same
decompression check the Solana runtime uses (via solders); tests can pass
any callable.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Union

import base58
from solders.pubkey import Pubkey

from config import (
    RAYDIUM_CLMM,
    TICK_ARRAY_SEED,
    TICK_ARRAY_BITMAP_SEED,
    PDA_MARKER,
    MAX_SEEDS,
    MAX_SEED_LENGTH,
    PUBKEY_LENGTH,
)
from .exceptions import DomainError, NoValidAddressError

logger = logging.getLogger(__name__)

PubkeyLike = Union[bytes, str]
CurvePredicate = Callable[[bytes], bool]


@dataclass(frozen=True)
class DerivedAddress:
    """PDA and the bump that produced it."""
    address: bytes
    bump: int

    @property
    def base58(self) -> str:
        return encode_pubkey(self.address)

    def __str__(self) -> str:
        return self.base58


def decode_pubkey(value: PubkeyLike) -> bytes:
    """
    Normalize a pubkey to 32 raw bytes.

    Args:
        value: raw bytes or a base58 string

    Raises:
        DomainError: not valid base58 or not 32 bytes long
    """
    if isinstance(value, str):
        try:
            raw = base58.b58decode(value.strip())
        except ValueError as e:
            raise DomainError(f"Invalid base58 pubkey {value!r}: {e}")
    else:
        raw = bytes(value)
    if len(raw) != PUBKEY_LENGTH:
        raise DomainError(f"Pubkey must be {PUBKEY_LENGTH} bytes, got {len(raw)}")
    return raw


def encode_pubkey(raw: bytes) -> str:
    """32 raw bytes -> base58."""
    return base58.b58encode(raw).decode("ascii")


def is_on_curve(candidate: bytes) -> bool:
    """
    Default curve predicate: does candidate decompress to an ed25519 point?

    Only decompression is checked. Small-order points and points outside
    the prime-order subgroup still count as on-curve.
    """
    return Pubkey(bytes(candidate)).is_on_curve()


def _validate_seeds(seeds: Sequence[bytes]) -> None:
    if len(seeds) > MAX_SEEDS - 1:   # one slot is reserved for the bump
        raise DomainError(f"Too many seeds: {len(seeds)} (max {MAX_SEEDS - 1})")
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise DomainError(f"Seed longer than {MAX_SEED_LENGTH} bytes: {len(seed)}")


def hash_seeds(seeds: Sequence[bytes], bump: int, program_id: bytes) -> bytes:
    """sha256 over seeds, bump, program id and the PDA marker."""
    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(bytes([bump]))
    hasher.update(program_id)
    hasher.update(PDA_MARKER)
    return hasher.digest()


def find_program_address(
    seeds: Sequence[bytes],
    program_id: PubkeyLike,
    is_valid_curve_point: CurvePredicate = is_on_curve,
) -> DerivedAddress:
    """
    Canonical PDA for seeds under program_id.

    Tries bumps from 255 down to 0 and returns the first off-curve digest.

    Raises:
        DomainError: seeds too long / too many, bad program id
        NoValidAddressError: every bump produced an on-curve digest
    """
    program = decode_pubkey(program_id)
    seeds = [bytes(seed) for seed in seeds]
    _validate_seeds(seeds)

    for bump in range(255, -1, -1):
        digest = hash_seeds(seeds, bump, program)
        if not is_valid_curve_point(digest):
            return DerivedAddress(address=digest, bump=bump)

    raise NoValidAddressError(
        f"No off-curve address for seeds {[seed.hex() for seed in seeds]} "
        f"under program {encode_pubkey(program)}"
    )


def tick_array_seeds(pool_id: PubkeyLike, start_index: int) -> list:
    """Seeds of a tick array account."""
    if not -(2 ** 31) <= start_index < 2 ** 31:
        raise DomainError(f"Array start {start_index} does not fit in i32")
    return [
        TICK_ARRAY_SEED,
        decode_pubkey(pool_id),
        start_index.to_bytes(4, "big", signed=True),
    ]


def bitmap_extension_seeds(pool_id: PubkeyLike) -> list:
    """Seeds of the pool's TickArrayBitmapExtension account."""
    return [TICK_ARRAY_BITMAP_SEED, decode_pubkey(pool_id)]


def derive_tick_array_address(
    pool_id: PubkeyLike,
    start_index: int,
    program_id: Optional[PubkeyLike] = None,
    is_valid_curve_point: CurvePredicate = is_on_curve,
) -> DerivedAddress:
    """Tick array PDA for (pool, start_index)."""
    program_id = program_id or RAYDIUM_CLMM.program_id
    derived = find_program_address(
        tick_array_seeds(pool_id, start_index), program_id, is_valid_curve_point
    )
    logger.debug(f"Tick array {start_index}: {derived.base58} (bump {derived.bump})")
    return derived


def derive_bitmap_extension_address(
    pool_id: PubkeyLike,
    program_id: Optional[PubkeyLike] = None,
    is_valid_curve_point: CurvePredicate = is_on_curve,
) -> DerivedAddress:
    """The single bitmap extension PDA of a pool."""
    program_id = program_id or RAYDIUM_CLMM.program_id
    derived = find_program_address(
        bitmap_extension_seeds(pool_id), program_id, is_valid_curve_point
    )
    logger.debug(f"Bitmap extension: {derived.base58} (bump {derived.bump})")
    return derived
