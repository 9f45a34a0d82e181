"""
Tick array bitmap scanner.

One bit per tick array, counted in array offsets from a reference array:

- default bitmap (PoolState.tick_array_bitmap): 16 x u64, bit p -> offset p - 512,
  i.e. 512 arrays on each side of the reference array
- extension, positive side: chunk i, bit p -> offset 512 + 512 * i + p
- extension, negative side: chunk i, bit p -> offset -513 - 512 * i - (511 - p)
  (negative chunks are stored with the outermost array at bit 0)

Bits are read LSB first inside each little-endian u64 word.
On-chain the reference array is the one starting at tick 0.
"""

import logging
from typing import Iterable, Iterator, Optional, Sequence, Set

from config import (
    DEFAULT_BITMAP_WORDS,
    DEFAULT_BITMAP_HALF_WIDTH,
    EXTENSION_BITMAP_CHUNKS,
    EXTENSION_CHUNK_WORDS,
    ARRAYS_PER_EXTENSION_CHUNK,
    BITMAP_WORD_BITS,
)
from .exceptions import DomainError
from .math.arrays import array_start_from_offset
from .state import BitmapExtension, PoolSnapshot

logger = logging.getLogger(__name__)

U64_MAX = 2 ** 64 - 1


def iter_set_bits(words: Sequence[int]) -> Iterator[int]:
    """
    Positions of set bits across a word sequence (word_index * 64 + bit).

    Raises:
        DomainError: a word is not a u64
    """
    for word_idx, word in enumerate(words):
        if not 0 <= word <= U64_MAX:
            raise DomainError(f"Bitmap word {word_idx} is not a u64: {word}")
        if word == 0:
            continue
        for bit_idx in range(BITMAP_WORD_BITS):
            if word & (1 << bit_idx):
                yield word_idx * BITMAP_WORD_BITS + bit_idx


def default_bitmap_offsets(words: Sequence[int]) -> Iterator[int]:
    """Array offsets flagged in the default bitmap."""
    if len(words) != DEFAULT_BITMAP_WORDS:
        raise DomainError(
            f"Default bitmap must have {DEFAULT_BITMAP_WORDS} words, got {len(words)}"
        )
    for position in iter_set_bits(words):
        yield position - DEFAULT_BITMAP_HALF_WIDTH


def _validate_chunks(chunks: Sequence[Sequence[int]], side: str) -> None:
    if len(chunks) > EXTENSION_BITMAP_CHUNKS:
        raise DomainError(
            f"{side} extension has {len(chunks)} chunks, max {EXTENSION_BITMAP_CHUNKS}"
        )
    for chunk_idx, chunk in enumerate(chunks):
        if len(chunk) != EXTENSION_CHUNK_WORDS:
            raise DomainError(
                f"{side} extension chunk {chunk_idx} must have "
                f"{EXTENSION_CHUNK_WORDS} words, got {len(chunk)}"
            )


def positive_extension_offsets(chunks: Sequence[Sequence[int]]) -> Iterator[int]:
    """Array offsets flagged in the positive extension chunks."""
    _validate_chunks(chunks, "Positive")
    for chunk_idx, chunk in enumerate(chunks):
        base = DEFAULT_BITMAP_HALF_WIDTH + chunk_idx * ARRAYS_PER_EXTENSION_CHUNK
        for position in iter_set_bits(chunk):
            yield base + position


def negative_extension_offsets(chunks: Sequence[Sequence[int]]) -> Iterator[int]:
    """Array offsets flagged in the negative extension chunks."""
    _validate_chunks(chunks, "Negative")
    for chunk_idx, chunk in enumerate(chunks):
        base = -(DEFAULT_BITMAP_HALF_WIDTH + 1) - chunk_idx * ARRAYS_PER_EXTENSION_CHUNK
        for position in iter_set_bits(chunk):
            yield base - (ARRAYS_PER_EXTENSION_CHUNK - 1 - position)


def offsets_to_array_starts(offsets: Iterable[int], tick_spacing: int,
                            reference_start: int = 0) -> Set[int]:
    """Map array offsets to array start indices."""
    return {
        array_start_from_offset(offset, tick_spacing, reference_start)
        for offset in offsets
    }


def scan(
    default_bits: Sequence[int],
    extension_bits_pos: Optional[Sequence[Sequence[int]]],
    extension_bits_neg: Optional[Sequence[Sequence[int]]],
    tick_spacing: int,
    current_array_id: int = 0,
) -> Set[int]:
    """
    Initialized tick array starts from the default bitmap and both extension sides.

    Every set bit becomes current_array_id + offset * (60 * tick_spacing).
    The result is a set, so an array reported by more than one source
    appears once. Inputs are not modified. Nothing set -> empty set.

    Args:
        default_bits: 16 u64 words
        extension_bits_pos: positive extension chunks (8 words each), or None
        extension_bits_neg: negative extension chunks (8 words each), or None
        tick_spacing: pool tick spacing
        current_array_id: array start that offset 0 refers to

    Returns:
        Set of array start indices
    """
    initialized = offsets_to_array_starts(
        default_bitmap_offsets(default_bits), tick_spacing, current_array_id
    )
    default_count = len(initialized)

    if extension_bits_pos:
        initialized |= offsets_to_array_starts(
            positive_extension_offsets(extension_bits_pos), tick_spacing, current_array_id
        )
    if extension_bits_neg:
        initialized |= offsets_to_array_starts(
            negative_extension_offsets(extension_bits_neg), tick_spacing, current_array_id
        )

    logger.debug(
        f"Bitmap scan: {default_count} arrays in default bitmap, "
        f"{len(initialized) - default_count} more from extension"
    )
    return initialized


def scan_pool(snapshot: PoolSnapshot, extension: Optional[BitmapExtension] = None) -> Set[int]:
    """Initialized arrays of a pool; extension=None means no extension account."""
    return scan(
        snapshot.tick_array_bitmap,
        extension.positive if extension else None,
        extension.negative if extension else None,
        snapshot.tick_spacing,
        current_array_id=0,
    )
