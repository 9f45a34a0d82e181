"""
Swap Array Planner

Which tick arrays does a swap touch?

Direction table (raw price = token1 per token0):
- buy-t1: token1 leaves the pool, raw price and tick go DOWN
- buy-t0: token0 leaves the pool, raw price and tick go UP

From the start price two bounds are derived:
- adverse bound: adverse_pct away in the direction of travel, sizes the coverage
- favorable bound: favorable_pct the other way, reported separately

Coverage is every array from the one holding the start tick to the one
holding the adverse bound, in travel order. Blind mode returns it as is,
checked mode keeps only arrays flagged in the pool bitmaps.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from config import MIN_TICK, MAX_TICK
from .bitmap import scan_pool
from .exceptions import DomainError, InvalidBoundsError
from .math.arrays import (
    TickDirection,
    array_start_for_tick,
    iter_array_starts,
    ticks_per_array,
)
from .math.ticks import PriceFormat, price_to_tick, raw_price_to_tick, tick_to_raw_price
from .state import BitmapExtension, PoolSnapshot

logger = logging.getLogger(__name__)


class SwapDirection(Enum):
    """Which token the swap buys out of the pool."""
    BUY_T1 = "buy-t1"
    BUY_T0 = "buy-t0"

    @property
    def tick_direction(self) -> TickDirection:
        return SWAP_DIRECTION_TICK_STEP[self]


SWAP_DIRECTION_TICK_STEP: Dict[SwapDirection, TickDirection] = {
    SwapDirection.BUY_T1: TickDirection.DOWN,
    SwapDirection.BUY_T0: TickDirection.UP,
}


class GapPolicy(Enum):
    """What checked planning does with an uninitialized candidate array."""
    SKIP_GAPS = "skip-gaps"       # drop it, keep collecting further out
    STOP_AT_GAP = "stop-at-gap"   # stop at the first one


DEFAULT_GAP_POLICY = GapPolicy.SKIP_GAPS


@dataclass(frozen=True)
class SwapPlanRequest:
    """
    Parameters of one planning call.

    The swap starts at start_tick, or at start_price (in price_format, with
    the pool's decimals) floored to a tick. With neither set it starts at
    the pool's current tick.
    """
    direction: SwapDirection
    favorable_pct: float
    adverse_pct: float
    start_tick: Optional[int] = None
    start_price: Optional[float] = None
    price_format: PriceFormat = PriceFormat.RAW_T1_PER_T0
    checked: bool = True
    gap_policy: GapPolicy = DEFAULT_GAP_POLICY


@dataclass
class SwapPlan:
    """Result of plan_swap_arrays. All array lists are in travel order."""
    direction: SwapDirection
    start_tick: int
    favorable_tick: int
    adverse_tick: int
    arrays: List[int] = field(default_factory=list)            # core arrays (filtered when checked)
    candidates: List[int] = field(default_factory=list)        # unfiltered core arrays
    favorable_arrays: List[int] = field(default_factory=list)  # favorable side, not in core
    surrounding_array: Optional[int] = None                    # one array past the adverse end
    checked: bool = True

    @property
    def tick_range(self) -> Tuple[int, int]:
        """(min, max) over both bounds."""
        return (
            min(self.favorable_tick, self.adverse_tick),
            max(self.favorable_tick, self.adverse_tick),
        )

    def all_arrays(self) -> List[int]:
        """favorable + core + surrounding, the full list a swap transaction would pass."""
        result = list(self.favorable_arrays) + list(self.arrays)
        if self.surrounding_array is not None:
            result.append(self.surrounding_array)
        return result


def _validate_pct(name: str, value: float) -> None:
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise InvalidBoundsError(f"{name} must be a finite non-negative percentage, got {value}")


def price_bounds(start_raw_price: float, direction: SwapDirection,
                 favorable_pct: float, adverse_pct: float) -> Tuple[float, float]:
    """
    Raw favorable and adverse bound prices.

    Returns:
        (favorable_raw_price, adverse_raw_price)

    Raises:
        InvalidBoundsError: bad percentage or a bound price <= 0
    """
    _validate_pct("favorable_pct", favorable_pct)
    _validate_pct("adverse_pct", adverse_pct)

    if direction.tick_direction == TickDirection.DOWN:
        favorable = start_raw_price * (1.0 + favorable_pct / 100.0)
        adverse = start_raw_price * (1.0 - adverse_pct / 100.0)
    else:
        favorable = start_raw_price * (1.0 - favorable_pct / 100.0)
        adverse = start_raw_price * (1.0 + adverse_pct / 100.0)

    for name, price in (("favorable", favorable), ("adverse", adverse)):
        if price <= 0:
            raise InvalidBoundsError(
                f"{name} bound price {price} is not positive "
                f"(favorable_pct={favorable_pct}, adverse_pct={adverse_pct})"
            )
    return favorable, adverse


def bound_ticks(start_tick: int, direction: SwapDirection,
                favorable_pct: float, adverse_pct: float) -> Tuple[int, int]:
    """
    Floored favorable and adverse bound ticks around start_tick.

    Raises:
        InvalidBoundsError: bad percentage, or a bound outside [MIN_TICK, MAX_TICK]
    """
    if not MIN_TICK <= start_tick <= MAX_TICK:
        raise InvalidBoundsError(f"Start tick {start_tick} outside [{MIN_TICK}, {MAX_TICK}]")

    favorable_price, adverse_price = price_bounds(
        tick_to_raw_price(start_tick), direction, favorable_pct, adverse_pct
    )
    try:
        favorable_tick = raw_price_to_tick(favorable_price)
        adverse_tick = raw_price_to_tick(adverse_price)
    except DomainError as e:
        raise InvalidBoundsError(f"Swap bound outside the valid tick range: {e}")
    return favorable_tick, adverse_tick


def candidate_arrays(start_tick: int, adverse_tick: int, tick_spacing: int) -> List[int]:
    """Arrays from start_tick's array to adverse_tick's array, in travel order."""
    return list(iter_array_starts(start_tick, adverse_tick, tick_spacing))


def filter_initialized(candidates: Iterable[int], initialized: Set[int],
                       gap_policy: GapPolicy = DEFAULT_GAP_POLICY) -> List[int]:
    """Keep initialized candidates in order; STOP_AT_GAP ends at the first miss."""
    result = []
    for start_index in candidates:
        if start_index in initialized:
            result.append(start_index)
        elif gap_policy == GapPolicy.STOP_AT_GAP:
            break
    return result


def favorable_side_arrays(start_tick: int, favorable_tick: int, core: List[int],
                          tick_spacing: int, direction: SwapDirection) -> List[int]:
    """
    Arrays overlapping [start_tick, favorable_tick] that are not core arrays.

    Ordered in travel order, so favorable + core stays monotone.
    """
    low, high = min(start_tick, favorable_tick), max(start_tick, favorable_tick)
    core_set = set(core)
    overlapping = [
        start_index
        for start_index in iter_array_starts(low, high, tick_spacing)
        if start_index not in core_set
    ]
    descending = direction.tick_direction == TickDirection.DOWN
    return sorted(overlapping, reverse=descending)


def blind_surrounding_array(last_core: int, tick_spacing: int,
                            direction: SwapDirection) -> Optional[int]:
    """Next array past the adverse end; None when it would start beyond the tick bounds."""
    candidate = last_core + int(direction.tick_direction) * ticks_per_array(tick_spacing)
    if direction.tick_direction == TickDirection.DOWN:
        lowest = array_start_for_tick(MIN_TICK, tick_spacing)
        return candidate if candidate >= lowest else None
    return candidate if candidate <= MAX_TICK else None


def checked_surrounding_array(last_core: int, initialized: Set[int],
                              direction: SwapDirection) -> Optional[int]:
    """Nearest initialized array beyond the adverse end, if any."""
    if direction.tick_direction == TickDirection.DOWN:
        below = [s for s in initialized if s < last_core]
        return max(below) if below else None
    above = [s for s in initialized if s > last_core]
    return min(above) if above else None


def resolve_start_tick(snapshot: PoolSnapshot, request: SwapPlanRequest) -> int:
    """
    Tick the swap starts from.

    Raises:
        DomainError: both start_tick and start_price set, or an invalid price
    """
    if request.start_tick is not None and request.start_price is not None:
        raise DomainError("Give at most one of start_tick and start_price")
    if request.start_tick is not None:
        return request.start_tick
    if request.start_price is not None:
        return price_to_tick(
            request.start_price, request.price_format, snapshot.decimals_0, snapshot.decimals_1
        )
    return snapshot.tick_current


def plan_swap_arrays(snapshot: PoolSnapshot, request: SwapPlanRequest,
                     initialized: Optional[Set[int]] = None,
                     extension: Optional[BitmapExtension] = None) -> SwapPlan:
    """
    Plan the tick arrays a swap needs.

    Args:
        snapshot: pool state (tick spacing, current tick, default bitmap, decimals)
        request: start, direction, percentages, mode and gap policy
        initialized: initialized array starts for checked mode
        extension: the pool's bitmap extension; scanned together with the
            default bitmap when initialized is None

    Returns:
        SwapPlan with arrays in travel order

    Raises:
        InvalidBoundsError: bad percentages or bounds outside the tick range
        DomainError: bad start price
    """
    direction = request.direction
    spacing = snapshot.tick_spacing
    start_tick = resolve_start_tick(snapshot, request)

    favorable_tick, adverse_tick = bound_ticks(
        start_tick, direction, request.favorable_pct, request.adverse_pct
    )
    candidates = candidate_arrays(start_tick, adverse_tick, spacing)
    favorable = favorable_side_arrays(start_tick, favorable_tick, candidates, spacing, direction)

    if request.checked:
        if initialized is None:
            if extension is None:
                logger.warning(
                    "No bitmap extension supplied, arrays outside the default bitmap are ignored"
                )
            initialized = scan_pool(snapshot, extension)
        arrays = filter_initialized(candidates, initialized, request.gap_policy)
        favorable = [s for s in favorable if s in initialized]
        surrounding = checked_surrounding_array(candidates[-1], initialized, direction)
    else:
        arrays = list(candidates)
        surrounding = blind_surrounding_array(candidates[-1], spacing, direction)

    logger.debug(
        f"Swap plan {direction.value}: ticks start={start_tick} favorable={favorable_tick} "
        f"adverse={adverse_tick}, {len(arrays)}/{len(candidates)} core arrays, "
        f"{len(favorable)} favorable, surrounding={surrounding}"
    )

    return SwapPlan(
        direction=direction,
        start_tick=start_tick,
        favorable_tick=favorable_tick,
        adverse_tick=adverse_tick,
        arrays=arrays,
        candidates=candidates,
        favorable_arrays=favorable,
        surrounding_array=surrounding,
        checked=request.checked,
    )
