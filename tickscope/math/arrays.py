"""
Tick array addressing.

A tick array is a fixed 60-slot account. Slot s of the array starting at
start_index holds tick start_index + s * tick_spacing, so one array covers
60 * tick_spacing tick indices. The start index is the array's identity:
it is part of the PDA seeds and the unit counted by the bitmaps.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, List, Tuple

from config import TICK_ARRAY_SIZE, MIN_TICK_SPACING, MAX_TICK_SPACING
from ..exceptions import AlignmentError, DomainError
from .ticks import align_tick_to_spacing


class TickDirection(IntEnum):
    """Direction of travel along the tick axis."""
    DOWN = -1
    UP = 1


@dataclass(frozen=True)
class TickLocation:
    """Where a tick lives: aligned tick, owning array, slot."""
    tick: int
    aligned_tick: int      # floored to tick_spacing
    array_start: int
    slot: int              # 0..59

    @property
    def is_aligned(self) -> bool:
        return self.tick == self.aligned_tick


def validate_tick_spacing(tick_spacing: int) -> None:
    """
    Raises:
        DomainError: spacing outside [1, 65535]
    """
    if not MIN_TICK_SPACING <= tick_spacing <= MAX_TICK_SPACING:
        raise DomainError(
            f"tick_spacing={tick_spacing} outside [{MIN_TICK_SPACING}, {MAX_TICK_SPACING}]"
        )


def ticks_per_array(tick_spacing: int) -> int:
    """Number of tick indices covered by one array (60 * spacing)."""
    validate_tick_spacing(tick_spacing)
    return TICK_ARRAY_SIZE * tick_spacing


def array_start_for_tick(tick: int, tick_spacing: int) -> int:
    """
    Start index of the array containing tick.

    Uses a true floor, so negative ticks go to the array below zero:
    with spacing 1 (60 ticks per array) tick -1 lives in the array at -60.

    Example:
        >>> array_start_for_tick(120, 60)
        0
        >>> array_start_for_tick(-5, 10)
        -600
    """
    width = ticks_per_array(tick_spacing)
    return (tick // width) * width


def validate_array_start(start_index: int, tick_spacing: int) -> None:
    """
    Raises:
        AlignmentError: start_index is not a multiple of 60 * spacing
    """
    width = ticks_per_array(tick_spacing)
    if start_index % width != 0:
        raise AlignmentError(
            f"Array start {start_index} is not a multiple of {width} "
            f"(tick_spacing={tick_spacing})"
        )


def slot_for_tick(tick: int, tick_spacing: int) -> Tuple[int, int]:
    """
    Array start and slot (0..59) for a spacing-aligned tick.

    Raises:
        AlignmentError: tick is not a multiple of tick_spacing
    """
    validate_tick_spacing(tick_spacing)
    if tick % tick_spacing != 0:
        raise AlignmentError(f"Tick {tick} is not a multiple of tick_spacing {tick_spacing}")
    start = array_start_for_tick(tick, tick_spacing)
    return start, (tick - start) // tick_spacing


def locate_tick(tick: int, tick_spacing: int) -> TickLocation:
    """Like slot_for_tick, but floors an unaligned tick first instead of failing."""
    validate_tick_spacing(tick_spacing)
    aligned = align_tick_to_spacing(tick, tick_spacing, round_down=True)
    start, slot = slot_for_tick(aligned, tick_spacing)
    return TickLocation(tick=tick, aligned_tick=aligned, array_start=start, slot=slot)


def tick_range_for_array(start_index: int, tick_spacing: int) -> Tuple[int, int]:
    """First and last usable tick of an array: (start, start + 59 * spacing)."""
    validate_array_start(start_index, tick_spacing)
    return start_index, start_index + (TICK_ARRAY_SIZE - 1) * tick_spacing


def array_tick_span(start_index: int, tick_spacing: int) -> Tuple[int, int]:
    """
    Full inclusive span of tick indices owned by an array: (start, start + W - 1).

    Wider than tick_range_for_array by spacing - 1 at the top; use it for
    overlap tests against arbitrary (unaligned) tick ranges.
    """
    validate_array_start(start_index, tick_spacing)
    return start_index, start_index + ticks_per_array(tick_spacing) - 1


def array_overlaps(start_index: int, tick_spacing: int, min_tick: int, max_tick: int) -> bool:
    """Does the array's span intersect [min_tick, max_tick]?"""
    first, last = array_tick_span(start_index, tick_spacing)
    return first <= max_tick and last >= min_tick


def next_array(start_index: int, tick_spacing: int, direction: TickDirection) -> int:
    """Neighbouring array start in the given direction."""
    validate_array_start(start_index, tick_spacing)
    return start_index + int(direction) * ticks_per_array(tick_spacing)


def array_offset(start_index: int, tick_spacing: int, reference_start: int = 0) -> int:
    """Signed distance in arrays from reference_start to start_index."""
    validate_array_start(start_index, tick_spacing)
    validate_array_start(reference_start, tick_spacing)
    return (start_index - reference_start) // ticks_per_array(tick_spacing)


def array_start_from_offset(offset: int, tick_spacing: int, reference_start: int = 0) -> int:
    """Inverse of array_offset."""
    validate_array_start(reference_start, tick_spacing)
    return reference_start + offset * ticks_per_array(tick_spacing)


def iter_array_starts(from_tick: int, to_tick: int, tick_spacing: int) -> Iterator[int]:
    """
    Array starts from the array containing from_tick to the array containing
    to_tick, inclusive, in traversal order (descending when to_tick < from_tick).
    """
    width = ticks_per_array(tick_spacing)
    first = array_start_for_tick(from_tick, tick_spacing)
    last = array_start_for_tick(to_tick, tick_spacing)
    step = width if last >= first else -width
    return iter(range(first, last + step, step))


def slot_ticks(start_index: int, tick_spacing: int) -> List[int]:
    """The 60 ticks of an array, slot order."""
    validate_array_start(start_index, tick_spacing)
    return [start_index + slot * tick_spacing for slot in range(TICK_ARRAY_SIZE)]
