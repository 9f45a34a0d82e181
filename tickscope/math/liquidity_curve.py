"""
Liquidity curve over initialized ticks.

Crossing tick t upwards adds liquidity_net(t) to the active liquidity, so
the level reported at t is the liquidity active on [t, next initialized tick).
Ticks in arrays that were not supplied count as zero liquidity.
"""

import logging
import math
from typing import Iterable, Iterator, List, NamedTuple, Optional, Tuple

from ..exceptions import InvalidBoundsError
from ..state import TickArray, TickRecord

logger = logging.getLogger(__name__)


class LiquidityPoint(NamedTuple):
    tick: int
    liquidity: int      # active just above tick


class LiquidityBucket(NamedTuple):
    tick_lower: int     # inclusive
    tick_upper: int     # inclusive
    liquidity: int      # max active liquidity inside the bucket


class LiquidityRange(NamedTuple):
    tick_lower: int     # inclusive
    tick_upper: int     # inclusive
    liquidity: int


class LiquidityCurve:
    """
    Cumulative liquidity at every initialized tick of the supplied arrays.

    Iterating is lazy and can be repeated; each iteration starts from zero.
    """

    def __init__(self, tick_arrays: Iterable[TickArray]):
        seen = set()
        records: List[TickRecord] = []
        for tick_array in tick_arrays:
            if tick_array.start_index in seen:
                logger.warning(f"Tick array {tick_array.start_index} supplied twice, ignoring duplicate")
                continue
            seen.add(tick_array.start_index)
            records.extend(tick_array.initialized_records())

        self._records = sorted(records, key=lambda r: r.tick)
        self.array_starts = sorted(seen)

        if len(self._records) == 1:
            logger.warning(
                f"Only one initialized tick found ({self._records[0].tick}); "
                f"the array holding the other boundary was probably not fetched"
            )

    def __iter__(self) -> Iterator[LiquidityPoint]:
        liquidity = 0
        for record in self._records:
            liquidity += record.liquidity_net
            yield LiquidityPoint(record.tick, liquidity)

    def __len__(self) -> int:
        return len(self._records)

    @property
    def ticks(self) -> List[int]:
        return [record.tick for record in self._records]

    @property
    def tick_range(self) -> Optional[Tuple[int, int]]:
        """(first, last) initialized tick, None for an empty curve."""
        if not self._records:
            return None
        return self._records[0].tick, self._records[-1].tick

    def max_liquidity(self) -> int:
        return max((point.liquidity for point in self), default=0)

    def liquidity_at(self, tick: int) -> int:
        """Active liquidity at an arbitrary tick."""
        level = 0
        for point in self:
            if point.tick > tick:
                break
            level = point.liquidity
        return level


def bucket_liquidity(curve: LiquidityCurve, max_width: int,
                     tick_range: Optional[Tuple[int, int]] = None) -> List[LiquidityBucket]:
    """
    Reduce the curve to at most max_width equal-width buckets.

    The range (inclusive, defaults to the curve's own tick range) is split
    into n = min(max_width, span) buckets of ceil(span / n) ticks; the last
    one is clipped to the range end. Each bucket reports the highest level
    active anywhere inside it, including the level carried in from below.

    Args:
        curve: liquidity curve
        max_width: maximum number of buckets (e.g. terminal columns)
        tick_range: (low, high) inclusive; None = curve.tick_range

    Returns:
        Buckets in ascending tick order; [] when there is nothing to bucket

    Raises:
        InvalidBoundsError: max_width < 1 or high < low
    """
    if max_width < 1:
        raise InvalidBoundsError(f"max_width must be >= 1, got {max_width}")

    if tick_range is None:
        tick_range = curve.tick_range
        if tick_range is None:
            return []
    low, high = tick_range
    if high < low:
        raise InvalidBoundsError(f"Empty tick range [{low}, {high}]")

    span = high - low + 1
    count = min(max_width, span)
    width = math.ceil(span / count)

    buckets = []
    points = list(curve)
    idx = 0
    level = 0
    # level carried into the first bucket
    while idx < len(points) and points[idx].tick < low:
        level = points[idx].liquidity
        idx += 1

    bucket_low = low
    while bucket_low <= high:
        bucket_high = min(bucket_low + width - 1, high)
        peak = level
        while idx < len(points) and points[idx].tick <= bucket_high:
            level = points[idx].liquidity
            peak = max(peak, level)
            idx += 1
        buckets.append(LiquidityBucket(bucket_low, bucket_high, peak))
        bucket_low = bucket_high + 1

    return buckets


def liquidity_ranges(curve: LiquidityCurve) -> List[LiquidityRange]:
    """
    Exact ranges [t_i, t_(i+1) - 1] between consecutive initialized ticks
    that carry positive liquidity.
    """
    ranges = []
    previous: Optional[LiquidityPoint] = None
    for point in curve:
        if previous is not None and previous.liquidity > 0:
            ranges.append(LiquidityRange(previous.tick, point.tick - 1, previous.liquidity))
        previous = point
    return ranges
