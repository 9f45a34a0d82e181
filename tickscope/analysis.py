"""
Range analysis helpers.

Pure functions on top of the tick and array math, used by the CLI and
PoolInspector: price ranges of arrays, arrays crossed by a price range,
initialized arrays inside a tick range and their nearest neighbours.
"""

import logging
import math
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from .exceptions import InvalidBoundsError
from .math.arrays import array_overlaps, iter_array_starts, tick_range_for_array
from .math.ticks import PriceFormat, price_to_tick, tick_to_price

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArrayDescription:
    """An array's tick range and the prices at both ends."""
    start_index: int
    first_tick: int
    last_tick: int
    price_at_first: float     # price at first_tick, in price_format
    price_at_last: float
    price_format: PriceFormat

    @property
    def price_low(self) -> float:
        return min(self.price_at_first, self.price_at_last)

    @property
    def price_high(self) -> float:
        return max(self.price_at_first, self.price_at_last)


@dataclass
class InitializedRange:
    """Initialized arrays overlapping a tick range plus one neighbour on each side."""
    min_tick: int
    max_tick: int
    arrays: List[int] = field(default_factory=list)    # ascending
    lower_neighbor: Optional[int] = None
    upper_neighbor: Optional[int] = None


def describe_array(start_index: int, tick_spacing: int,
                   price_format: PriceFormat = PriceFormat.RAW_T1_PER_T0,
                   decimals_0: int = 0, decimals_1: int = 0) -> ArrayDescription:
    """Tick range of an array and its prices in the requested format."""
    first_tick, last_tick = tick_range_for_array(start_index, tick_spacing)
    return ArrayDescription(
        start_index=start_index,
        first_tick=first_tick,
        last_tick=last_tick,
        price_at_first=tick_to_price(first_tick, price_format, decimals_0, decimals_1),
        price_at_last=tick_to_price(last_tick, price_format, decimals_0, decimals_1),
        price_format=price_format,
    )


def price_range_to_ticks(price_a: float, price_b: float, price_format: PriceFormat,
                         decimals_0: int = 0, decimals_1: int = 0) -> Tuple[int, int]:
    """
    Floored ticks of two prices, ordered (min, max).

    Inverted formats flip the order, so the caller does not need to know
    which input price is "lower" on the tick axis.
    """
    tick_a = price_to_tick(price_a, price_format, decimals_0, decimals_1)
    tick_b = price_to_tick(price_b, price_format, decimals_0, decimals_1)
    return min(tick_a, tick_b), max(tick_a, tick_b)


def arrays_for_price_range(price_from: float, price_to: float, tick_spacing: int,
                           price_format: PriceFormat = PriceFormat.HUMAN_T1_PER_T0,
                           decimals_0: int = 0, decimals_1: int = 0) -> List[int]:
    """
    Every array crossed going from price_from to price_to, in that order.

    Example:
        >>> arrays_for_price_range(1.0, 1.02, 1, PriceFormat.RAW_T1_PER_T0)
        [0, 60, 120, 180]
    """
    tick_from = price_to_tick(price_from, price_format, decimals_0, decimals_1)
    tick_to = price_to_tick(price_to, price_format, decimals_0, decimals_1)
    return list(iter_array_starts(tick_from, tick_to, tick_spacing))


def percent_price_range(center_price: float, lower_pct: float, upper_pct: float) -> Tuple[float, float]:
    """
    (center * (1 - lower_pct%), center * (1 + upper_pct%))

    Raises:
        InvalidBoundsError: negative or non-finite percentages, or a lower bound <= 0
    """
    for name, value in (("lower_pct", lower_pct), ("upper_pct", upper_pct)):
        if math.isnan(value) or math.isinf(value) or value < 0:
            raise InvalidBoundsError(f"{name} must be a finite non-negative percentage, got {value}")
    if not center_price > 0 or math.isinf(center_price):
        raise InvalidBoundsError(f"Center price must be positive and finite, got {center_price}")

    low = center_price * (1.0 - lower_pct / 100.0)
    high = center_price * (1.0 + upper_pct / 100.0)
    if low <= 0:
        raise InvalidBoundsError(f"lower_pct={lower_pct} gives a non-positive price ({low})")
    return low, high


def initialized_in_range(initialized: Iterable[int], tick_spacing: int,
                         min_tick: int, max_tick: int) -> InitializedRange:
    """
    Initialized arrays overlapping [min_tick, max_tick].

    The lower neighbour is the highest initialized array ending below
    min_tick, the upper one the lowest starting above max_tick.
    """
    if max_tick < min_tick:
        min_tick, max_tick = max_tick, min_tick

    result = InitializedRange(min_tick=min_tick, max_tick=max_tick)
    for start_index in sorted(set(initialized)):
        _, last_tick = tick_range_for_array(start_index, tick_spacing)
        if array_overlaps(start_index, tick_spacing, min_tick, max_tick):
            result.arrays.append(start_index)
        elif last_tick < min_tick:
            result.lower_neighbor = start_index
        elif start_index > max_tick and result.upper_neighbor is None:
            result.upper_neighbor = start_index

    logger.debug(
        f"Tick range [{min_tick}, {max_tick}]: {len(result.arrays)} initialized arrays, "
        f"neighbours {result.lower_neighbor} / {result.upper_neighbor}"
    )
    return result


def current_array_position(sorted_arrays: List[int], tick_current: int) -> int:
    """
    Index at which the current tick falls in an ascending list of array starts
    (number of arrays starting at or below tick_current).
    """
    return bisect_right(sorted_arrays, tick_current)
